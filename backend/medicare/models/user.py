from beanie import Document, Indexed
from pydantic import Field
from datetime import datetime, timezone

from medicare.constants import Role


class UserDocument(Document):
    """Patient or admin account. Doctors sign in through their own profile."""

    name: str
    email: Indexed(str, unique=True)  # stored lower-cased
    mobile: str = ""
    dob: str | None = None  # YYYY-MM-DD
    role: Role = Role.PATIENT
    password_hash: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "users"
