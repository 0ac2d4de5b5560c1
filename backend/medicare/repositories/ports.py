import datetime as dt
from dataclasses import dataclass
from typing import Any, Protocol

from medicare.constants import (
    AppointmentStatus,
    BedBookingStatus,
    BedStatus,
    RecordStatus,
    VisitType,
    WardType,
)
from medicare.domain.entities import (
    Appointment,
    Bed,
    BedBooking,
    Doctor,
    MedicalRecord,
    Review,
    User,
)


class UserRepository(Protocol):
    async def get(self, user_id: str) -> User | None:
        ...

    async def get_by_email(self, email: str) -> User | None:
        ...

    async def insert(self, user: User) -> User:
        """Persist a new account. Raises DuplicateRecordError on a taken e-mail."""
        ...

    async def update(self, user_id: str, changes: dict[str, Any]) -> User | None:
        ...


class DoctorRepository(Protocol):
    async def get(self, doctor_id: str) -> Doctor | None:
        ...

    async def get_by_email(self, email: str) -> Doctor | None:
        ...

    async def insert(self, doctor: Doctor) -> Doctor:
        ...

    async def search(
        self,
        *,
        specialization: str | None = None,
        search: str | None = None,
        min_experience: int | None = None,
        max_fees: int | None = None,
    ) -> list[Doctor]:
        """Active doctors matching every given filter, best rated first."""
        ...

    async def specializations(self) -> list[str]:
        ...

    async def set_rating(self, doctor_id: str, rating: float, num_reviews: int) -> None:
        ...

    async def update(self, doctor_id: str, changes: dict[str, Any]) -> Doctor | None:
        ...


class AppointmentRepository(Protocol):
    async def get(self, appointment_id: str) -> Appointment | None:
        ...

    async def insert(self, appointment: Appointment) -> Appointment:
        """Persist a new appointment.

        Raises DuplicateRecordError when another slot-holding appointment
        already exists for the same (doctor, date, time_slot).
        """
        ...

    async def find_holder(self, doctor_id: str, day: dt.date, time_slot: str) -> Appointment | None:
        """The Pending/Confirmed appointment occupying a slot, if any."""
        ...

    async def booked_slots(self, doctor_id: str, day: dt.date) -> list[str]:
        """Slot labels of the doctor's non-cancelled appointments on ``day``."""
        ...

    async def find_many(
        self,
        *,
        patient_id: str | None = None,
        doctor_id: str | None = None,
        statuses: list[AppointmentStatus] | None = None,
        day: dt.date | None = None,
    ) -> list[Appointment]:
        ...

    async def compare_and_set(
        self, appointment_id: str, expected: AppointmentStatus, changes: dict[str, Any]
    ) -> Appointment | None:
        """Apply ``changes`` only if the stored status is still ``expected``.

        Returns the updated appointment, or None when the status moved on.
        """
        ...

    async def update_notes(self, appointment_id: str, notes: str) -> Appointment | None:
        ...


class BedRepository(Protocol):
    async def get(self, bed_id: str) -> Bed | None:
        ...

    async def insert(self, bed: Bed) -> Bed:
        ...

    async def find_many(
        self, *, ward_type: WardType | None = None, status: BedStatus | None = None
    ) -> list[Bed]:
        """Beds sorted by floor then bed number."""
        ...

    async def compare_and_set(
        self, bed_id: str, expected: BedStatus, changes: dict[str, Any]
    ) -> Bed | None:
        ...


class BedBookingRepository(Protocol):
    async def get(self, booking_id: str) -> BedBooking | None:
        ...

    async def insert(self, booking: BedBooking) -> BedBooking:
        """Persist a booking.

        Raises DuplicateRecordError when the patient already holds a
        Confirmed or Admitted booking.
        """
        ...

    async def find_active_for_patient(self, patient_id: str) -> BedBooking | None:
        ...

    async def list_for_patient(self, patient_id: str) -> list[BedBooking]:
        """Newest first."""
        ...

    async def compare_and_set(
        self, booking_id: str, expected: BedBookingStatus, changes: dict[str, Any]
    ) -> BedBooking | None:
        ...


class ReviewRepository(Protocol):
    async def get_by_appointment(self, appointment_id: str) -> Review | None:
        ...

    async def insert(self, review: Review) -> Review:
        """Raises DuplicateRecordError when the appointment was already reviewed."""
        ...

    async def list_for_doctor(self, doctor_id: str) -> list[Review]:
        """Newest first."""
        ...

    async def ratings_for_doctor(self, doctor_id: str) -> list[int]:
        ...


class MedicalRecordRepository(Protocol):
    async def get(self, record_id: str) -> MedicalRecord | None:
        ...

    async def insert(self, record: MedicalRecord) -> MedicalRecord:
        """Raises DuplicateRecordError when the appointment already has a record."""
        ...

    async def find_for_patient(
        self,
        patient_id: str,
        *,
        status: RecordStatus | None = None,
        visit_type: VisitType | None = None,
    ) -> list[MedicalRecord]:
        """Most recent visit first."""
        ...


@dataclass
class Store:
    """Repositories handed to services for one request."""

    users: UserRepository
    doctors: DoctorRepository
    appointments: AppointmentRepository
    beds: BedRepository
    bed_bookings: BedBookingRepository
    reviews: ReviewRepository
    records: MedicalRecordRepository
