# Re-export Beanie documents
from .user import UserDocument
from .doctor import DoctorDocument, AvailabilityDoc
from .appointment import AppointmentDocument, PrescriptionDoc, MedicationDoc
from .bed import BedDocument, BedBookingDocument, BedBookingSnapshotDoc, EmergencyContactDoc
from .review import ReviewDocument
from .record import MedicalRecordDocument, VitalsDoc

DOCUMENT_MODELS = [
    UserDocument,
    DoctorDocument,
    AppointmentDocument,
    BedDocument,
    BedBookingDocument,
    ReviewDocument,
    MedicalRecordDocument,
]
