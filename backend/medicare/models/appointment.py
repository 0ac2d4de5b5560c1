from beanie import Document, Indexed
from beanie import PydanticObjectId as OID
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import List, Optional
import pymongo

from medicare.constants import AppointmentStatus


class MedicationDoc(BaseModel):
    name: str = ""
    dosage: str = ""
    duration: str = ""
    instructions: str | None = None


class PrescriptionDoc(BaseModel):
    medications: List[MedicationDoc] = Field(default_factory=list)
    diagnosis: str = ""
    notes: str = ""
    issued_at: datetime | None = None
    is_active: bool = True


class AppointmentDocument(Document):
    """Appointment of a patient with a doctor on a calendar day and slot."""

    patient_id: Indexed(OID)
    doctor_id: OID
    # calendar day kept as text so no timezone can shift it
    date: str  # YYYY-MM-DD
    time_slot: str
    reason: str
    status: AppointmentStatus = AppointmentStatus.PENDING
    # true while Pending/Confirmed; the unique partial index keys on it
    holds_slot: bool = True
    rejection_reason: str = ""
    prescription: Optional[PrescriptionDoc] = None
    notes: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "appointments"
        indexes = [
            [("doctor_id", pymongo.ASCENDING), ("date", pymongo.ASCENDING)],
            [("patient_id", pymongo.ASCENDING), ("date", pymongo.DESCENDING)],
            pymongo.IndexModel(
                [("doctor_id", pymongo.ASCENDING), ("date", pymongo.ASCENDING), ("time_slot", pymongo.ASCENDING)],
                name="active_slot",
                unique=True,
                partialFilterExpression={"holds_slot": True},
            ),
        ]
