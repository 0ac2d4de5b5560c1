from beanie import Document, Indexed
from beanie import PydanticObjectId as OID
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import List, Optional
import pymongo

from medicare.constants import BedBookingStatus, BedStatus, WardType


class BedBookingSnapshotDoc(BaseModel):
    patient_id: OID
    admission_date: str
    expected_discharge: str
    reason: str
    emergency_contact: str | None = None  # phone only
    booked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BedDocument(Document):
    """A single bed in a ward."""

    bed_number: str
    ward_type: WardType = WardType.GENERAL
    status: BedStatus = BedStatus.AVAILABLE
    floor: int = 1
    price_per_day: int = 1500
    features: List[str] = Field(default_factory=list)
    current_patient_id: Optional[OID] = None
    booking: Optional[BedBookingSnapshotDoc] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "beds"
        indexes = [
            [("ward_type", pymongo.ASCENDING), ("status", pymongo.ASCENDING)],
            pymongo.IndexModel(
                [("bed_number", pymongo.ASCENDING), ("ward_type", pymongo.ASCENDING)],
                name="bed_number",
                unique=True,
            ),
        ]


class EmergencyContactDoc(BaseModel):
    name: str = ""
    phone: str = ""
    relation: str = ""


class BedBookingDocument(Document):
    """Booking history of beds; ward type and bed number are copied at booking time."""

    bed_id: Indexed(OID)
    patient_id: Indexed(OID)
    ward_type: WardType
    bed_number: str
    admission_date: str
    expected_discharge: str
    actual_discharge: str | None = None
    reason: str
    emergency_contact: Optional[EmergencyContactDoc] = None
    status: BedBookingStatus = BedBookingStatus.CONFIRMED
    # true while Confirmed/Admitted; one such booking per patient
    holds_bed: bool = True
    total_amount: int = 0
    notes: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "bed_bookings"
        indexes = [
            pymongo.IndexModel(
                [("patient_id", pymongo.ASCENDING)],
                name="active_patient",
                unique=True,
                partialFilterExpression={"holds_bed": True},
            ),
        ]
