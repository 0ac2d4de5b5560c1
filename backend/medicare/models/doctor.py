from beanie import Document, Indexed
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import List
import pymongo


class AvailabilityDoc(BaseModel):
    days: List[str] = Field(default_factory=list)  # Mon..Sun
    slots: List[str] = Field(default_factory=list)  # "09:00 AM", ...


class DoctorDocument(Document):
    """Doctor profile, also the doctor's login identity."""

    name: str
    email: str | None = None
    mobile: str = ""
    specialization: Indexed(str)
    qualifications: str = ""
    experience: int = 0
    hospital: str = ""
    fees: int = 0
    availability: AvailabilityDoc = Field(default_factory=AvailabilityDoc)
    image: str = ""
    about: str = ""
    rating: float = 0.0
    num_reviews: int = 0
    is_active: bool = True
    password_hash: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "doctors"
        indexes = [
            pymongo.IndexModel(
                [("email", pymongo.ASCENDING)],
                name="doctor_email",
                unique=True,
                partialFilterExpression={"email": {"$type": "string"}},
            ),
            pymongo.IndexModel(
                [("name", pymongo.TEXT), ("specialization", pymongo.TEXT), ("hospital", pymongo.TEXT)],
                name="doctor_text_search",
            ),
        ]
