from beanie import Document
from beanie import PydanticObjectId as OID
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import List, Optional
import pymongo

from medicare.constants import RecordStatus, VisitType


class VitalsDoc(BaseModel):
    blood_pressure: Optional[str] = None
    temperature: Optional[str] = None
    pulse: Optional[str] = None
    weight: Optional[str] = None


class MedicalRecordDocument(Document):
    """Visit history entry of a patient."""

    patient_id: OID
    doctor_id: OID
    appointment_id: Optional[OID] = None
    visit_type: VisitType = VisitType.CONSULTATION
    diagnosis: str
    symptoms: List[str] = Field(default_factory=list)
    notes: str = ""
    vitals: Optional[VitalsDoc] = None
    date: str  # YYYY-MM-DD
    status: RecordStatus = RecordStatus.COMPLETED
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "medical_records"
        indexes = [
            [("patient_id", pymongo.ASCENDING), ("date", pymongo.DESCENDING)],
            [("status", pymongo.ASCENDING)],
            # at most one record per appointment
            pymongo.IndexModel(
                [("appointment_id", pymongo.ASCENDING)],
                name="record_appointment",
                unique=True,
                partialFilterExpression={"appointment_id": {"$type": "objectId"}},
            ),
        ]
