import datetime as dt

from pydantic import BaseModel, Field

from medicare.constants import (
    ACTIVE_BED_BOOKING_STATUSES,
    SLOT_HOLDING_STATUSES,
    AppointmentStatus,
    BedBookingStatus,
    BedStatus,
    RecordStatus,
    Role,
    VisitType,
    WardType,
)


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Actor(BaseModel):
    """Authenticated caller as supplied by the auth layer."""

    id: str
    role: Role


class User(BaseModel):
    """Patient (or admin) account."""

    id: str | None = None
    name: str
    email: str
    mobile: str = ""
    dob: dt.date | None = None
    role: Role = Role.PATIENT
    password_hash: str | None = None
    created_at: dt.datetime = Field(default_factory=utcnow)


class Availability(BaseModel):
    days: list[str] = Field(default_factory=list)
    slots: list[str] = Field(default_factory=list)


class Doctor(BaseModel):
    id: str | None = None
    name: str
    email: str | None = None
    mobile: str = ""
    specialization: str
    qualifications: str = ""
    experience: int = 0
    hospital: str = ""
    fees: int = 0
    availability: Availability = Field(default_factory=Availability)
    image: str = ""
    about: str = ""
    rating: float = 0.0
    num_reviews: int = 0
    is_active: bool = True
    password_hash: str | None = None
    created_at: dt.datetime = Field(default_factory=utcnow)


class Medication(BaseModel):
    name: str = ""
    dosage: str = ""
    duration: str = ""
    instructions: str | None = None


class Prescription(BaseModel):
    medications: list[Medication] = Field(default_factory=list)
    diagnosis: str = ""
    notes: str = ""
    issued_at: dt.datetime | None = None
    is_active: bool = True


class Appointment(BaseModel):
    id: str | None = None
    patient_id: str
    doctor_id: str
    date: dt.date
    time_slot: str
    reason: str
    status: AppointmentStatus = AppointmentStatus.PENDING
    rejection_reason: str = ""
    prescription: Prescription | None = None
    notes: str = ""
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)

    @property
    def holds_slot(self) -> bool:
        return self.status in SLOT_HOLDING_STATUSES


class EmergencyContact(BaseModel):
    name: str = ""
    phone: str = ""
    relation: str = ""


class BedBookingSnapshot(BaseModel):
    """Copy of the current booking embedded on a non-available bed."""

    patient_id: str
    admission_date: dt.date
    expected_discharge: dt.date
    reason: str
    emergency_contact: str | None = None
    booked_at: dt.datetime = Field(default_factory=utcnow)


class Bed(BaseModel):
    id: str | None = None
    bed_number: str
    ward_type: WardType = WardType.GENERAL
    status: BedStatus = BedStatus.AVAILABLE
    floor: int = 1
    price_per_day: int = 1500
    features: list[str] = Field(default_factory=list)
    current_patient_id: str | None = None
    booking: BedBookingSnapshot | None = None


class BedBooking(BaseModel):
    id: str | None = None
    bed_id: str
    patient_id: str
    ward_type: WardType
    bed_number: str
    admission_date: dt.date
    expected_discharge: dt.date
    actual_discharge: dt.date | None = None
    reason: str
    emergency_contact: EmergencyContact | None = None
    status: BedBookingStatus = BedBookingStatus.CONFIRMED
    total_amount: int = 0
    notes: str = ""
    created_at: dt.datetime = Field(default_factory=utcnow)

    @property
    def holds_bed(self) -> bool:
        return self.status in ACTIVE_BED_BOOKING_STATUSES


class Review(BaseModel):
    id: str | None = None
    doctor_id: str
    patient_id: str
    appointment_id: str
    rating: int
    comment: str
    created_at: dt.datetime = Field(default_factory=utcnow)


class SlotAvailability(BaseModel):
    all_slots: list[str]
    booked_slots: list[str]
    available_slots: list[str]


class PriceRange(BaseModel):
    min: int = 0
    max: int = 0
    avg: int = 0


class WardSummary(BaseModel):
    ward_type: WardType
    total: int = 0
    available: int = 0
    occupied: int = 0
    reserved: int = 0
    maintenance: int = 0
    booked: int = 0
    occupancy_rate: float = 0.0
    price_per_day: PriceRange = Field(default_factory=PriceRange)


class Vitals(BaseModel):
    blood_pressure: str | None = None
    temperature: str | None = None
    pulse: str | None = None
    weight: str | None = None


class MedicalRecord(BaseModel):
    """One visit in a patient's history, written when a consultation completes."""

    id: str | None = None
    patient_id: str
    doctor_id: str
    appointment_id: str | None = None
    visit_type: VisitType = VisitType.CONSULTATION
    diagnosis: str
    symptoms: list[str] = Field(default_factory=list)
    notes: str = ""
    vitals: Vitals | None = None
    date: dt.date
    status: RecordStatus = RecordStatus.COMPLETED
    created_at: dt.datetime = Field(default_factory=utcnow)


class VisitTypeCount(BaseModel):
    visit_type: VisitType
    count: int


class RecordStats(BaseModel):
    by_visit_type: list[VisitTypeCount] = Field(default_factory=list)
    total: int = 0
    completed: int = 0
