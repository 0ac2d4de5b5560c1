from datetime import date, datetime
from pydantic import BaseModel, Field
from typing import Dict, Generic, List, Optional, TypeVar

from medicare.constants import (
    AppointmentStatus,
    BedBookingStatus,
    BedStatus,
    RecordStatus,
    Role,
    VisitType,
    WardType,
)
from medicare.domain.entities import (
    Availability,
    BedBookingSnapshot,
    EmergencyContact,
    Medication,
    Prescription,
    Vitals,
)

T = TypeVar("T")

# Request bodies accept both snake_case and the camelCase names the web
# client sends (doctorId, timeSlot, ...). Required fields are Optional here so
# that a missing value reaches the service and comes back as a 400 with a
# readable message instead of a 422.

# -------------------- Auth / User Schemas --------------------


class RegisterIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    mobile: str = ""


class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    mobile: Optional[str] = None
    dob: Optional[str] = None


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    mobile: str = ""
    dob: Optional[date] = None
    role: Role
    created_at: datetime

    class Config:
        from_attributes = True


# -------------------- Doctor Schemas --------------------


class DoctorOut(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    mobile: str = ""
    specialization: str
    qualifications: str = ""
    experience: int = 0
    hospital: str = ""
    fees: int = 0
    availability: Availability
    image: str = ""
    about: str = ""
    rating: float = 0.0
    num_reviews: int = 0
    is_active: bool = True

    class Config:
        from_attributes = True


class DoctorProfileUpdate(BaseModel):
    mobile: Optional[str] = None
    about: Optional[str] = None
    fees: Optional[int] = None


class PasswordChange(BaseModel):
    current_password: Optional[str] = Field(None, alias="currentPassword")
    new_password: Optional[str] = Field(None, alias="newPassword")

    class Config:
        populate_by_name = True


# -------------------- Appointment Schemas --------------------


class AppointmentCreate(BaseModel):
    doctor_id: Optional[str] = Field(None, alias="doctorId")
    date: Optional[str] = None  # YYYY-MM-DD
    time_slot: Optional[str] = Field(None, alias="timeSlot")
    reason: Optional[str] = None

    class Config:
        populate_by_name = True


class AppointmentStatusUpdate(BaseModel):
    status: str  # "Confirmed" | "Rejected"
    rejection_reason: Optional[str] = Field(None, alias="rejectionReason")

    class Config:
        populate_by_name = True


class MedicationIn(BaseModel):
    name: str = ""
    dosage: str = ""
    duration: str = ""
    instructions: Optional[str] = None


class PrescriptionIn(BaseModel):
    medications: List[MedicationIn] = Field(default_factory=list)
    diagnosis: str = ""
    notes: str = ""

    def to_domain(self) -> Prescription:
        return Prescription(
            medications=[Medication(**m.model_dump()) for m in self.medications],
            diagnosis=self.diagnosis,
            notes=self.notes,
        )


class AppointmentComplete(BaseModel):
    prescription: Optional[PrescriptionIn] = None


class NotesUpdate(BaseModel):
    notes: str = ""


# -------------------- Bed Schemas --------------------


class EmergencyContactIn(BaseModel):
    name: str = ""
    phone: str = ""
    relation: str = ""

    def to_domain(self) -> EmergencyContact:
        return EmergencyContact(**self.model_dump())


class BedBookingCreate(BaseModel):
    bed_id: Optional[str] = Field(None, alias="bedId")
    admission_date: Optional[str] = Field(None, alias="admissionDate")
    expected_discharge: Optional[str] = Field(None, alias="expectedDischarge")
    reason: Optional[str] = None
    emergency_contact: Optional[EmergencyContactIn] = Field(None, alias="emergencyContact")

    class Config:
        populate_by_name = True


class DischargeIn(BaseModel):
    discharge_date: Optional[str] = Field(None, alias="dischargeDate")

    class Config:
        populate_by_name = True


class MaintenanceIn(BaseModel):
    maintenance: bool = True


# -------------------- Review Schemas --------------------


class ReviewCreate(BaseModel):
    rating: Optional[int] = None
    comment: Optional[str] = None
    doctor_id: Optional[str] = Field(None, alias="doctorId")
    appointment_id: Optional[str] = Field(None, alias="appointmentId")

    class Config:
        populate_by_name = True


class ReviewOut(BaseModel):
    id: str
    doctor_id: str
    patient_id: str
    appointment_id: str
    rating: int
    comment: str
    created_at: datetime


# -------------------- Response Schemas --------------------


class AppointmentOut(BaseModel):
    id: str
    patient_id: str
    doctor_id: str
    date: date
    time_slot: str
    reason: str
    status: AppointmentStatus
    rejection_reason: str = ""
    prescription: Optional[Prescription] = None
    notes: str = ""
    created_at: datetime
    updated_at: datetime


class PrescriptionOut(BaseModel):
    appointment_id: str
    doctor_id: str
    date: date
    time_slot: str
    prescription: Prescription


class ActiveCountOut(BaseModel):
    active_count: int


class BedOut(BaseModel):
    id: str
    bed_number: str
    ward_type: WardType
    status: BedStatus
    floor: int
    price_per_day: int
    features: List[str] = Field(default_factory=list)
    current_patient_id: Optional[str] = None
    booking: Optional[BedBookingSnapshot] = None


class BedBookingOut(BaseModel):
    id: str
    bed_id: str
    patient_id: str
    ward_type: WardType
    bed_number: str
    admission_date: date
    expected_discharge: date
    actual_discharge: Optional[date] = None
    reason: str
    emergency_contact: Optional[EmergencyContact] = None
    status: BedBookingStatus
    total_amount: int = 0
    notes: str = ""
    created_at: datetime


class MedicalRecordOut(BaseModel):
    id: str
    patient_id: str
    doctor_id: str
    appointment_id: Optional[str] = None
    visit_type: VisitType
    diagnosis: str
    symptoms: List[str] = Field(default_factory=list)
    notes: str = ""
    vitals: Optional[Vitals] = None
    date: date
    status: RecordStatus
    created_at: datetime


# Envelopes mirror medicare.utils.responses.ok()


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: T


class ListEnvelope(BaseModel, Generic[T]):
    success: bool = True
    count: int
    data: List[T]


class DoctorAppointmentList(ListEnvelope[AppointmentOut]):
    summary: Dict[str, int]


class AuthEnvelope(Envelope[T], Generic[T]):
    token: Token


class TokenEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    token: Token
