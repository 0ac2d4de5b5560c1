from .ports import (
    Store,
    UserRepository,
    DoctorRepository,
    AppointmentRepository,
    BedRepository,
    BedBookingRepository,
    ReviewRepository,
    MedicalRecordRepository,
)
