from beanie import Document, Indexed
from beanie import PydanticObjectId as OID
from pydantic import Field
from datetime import datetime, timezone


class ReviewDocument(Document):
    """Patient review of a doctor, one per completed appointment."""

    doctor_id: Indexed(OID)
    patient_id: OID
    appointment_id: Indexed(OID, unique=True)
    rating: int
    comment: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "reviews"
