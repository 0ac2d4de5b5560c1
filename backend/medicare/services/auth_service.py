import datetime as dt
import re
from typing import Optional

from medicare.constants import MIN_PASSWORD_LENGTH, Role
from medicare.domain.entities import Actor, Doctor, User
from medicare.domain.slots import parse_calendar_date
from medicare.exceptions import (
    ConflictError,
    DuplicateRecordError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    UnauthorizedError,
)
from medicare.repositories import Store
from medicare.security import create_access_token, hash_password, verify_password
from medicare.utils.logger import get_logger

logger = get_logger("auth_service")

_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_MOBILE = re.compile(r"^\+?\d{10,15}$")


def _check_mobile(mobile: str) -> str:
    mobile = (mobile or "").strip()
    if mobile and not _MOBILE.match(mobile):
        raise InvalidInputError("Please provide a valid mobile number")
    return mobile


async def register_patient(
    store: Store, *, name: str, email: str, password: str, mobile: str = ""
) -> tuple[str, User]:
    """Create a patient account and return ``(access_token, user)``."""
    name = (name or "").strip()
    email = (email or "").strip().lower()
    if not name or not email or not password:
        raise InvalidInputError("Please provide name, email and password")
    if not _EMAIL.match(email):
        raise InvalidInputError("Please provide a valid email")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    mobile = _check_mobile(mobile)

    if await store.users.get_by_email(email):
        raise ConflictError("User already exists with this email")
    try:
        user = await store.users.insert(
            User(
                name=name,
                email=email,
                mobile=mobile,
                role=Role.PATIENT,
                password_hash=hash_password(password),
            )
        )
    except DuplicateRecordError:
        raise ConflictError("User already exists with this email")

    logger.info(f"Patient registered: {user.id}")
    return create_access_token(user.id, user.role), user


async def login_patient(store: Store, *, email: str, password: str) -> tuple[str, User]:
    """Email/password login for patient and admin accounts."""
    if not email or not password:
        raise InvalidInputError("Please provide email and password")
    user = await store.users.get_by_email(email.strip())
    if not user or not verify_password(password, user.password_hash):
        logger.warning(f"Failed login for {email.strip().lower()}")
        raise UnauthorizedError("Invalid credentials")
    return create_access_token(user.id, user.role), user


async def login_doctor(store: Store, *, email: str, password: str) -> tuple[str, Doctor]:
    if not email or not password:
        raise InvalidInputError("Please provide email and password")
    doctor = await store.doctors.get_by_email(email.strip())
    if not doctor or not verify_password(password, doctor.password_hash):
        logger.warning(f"Failed doctor login for {email.strip().lower()}")
        raise UnauthorizedError("Invalid credentials")
    if not doctor.is_active:
        raise ForbiddenError("Your account has been deactivated. Contact admin.")
    return create_access_token(doctor.id, Role.DOCTOR), doctor


async def current_user(store: Store, actor: Actor) -> User:
    user = await store.users.get(actor.id)
    if not user:
        raise NotFoundError("User not found")
    return user


async def current_doctor(store: Store, actor: Actor) -> Doctor:
    doctor = await store.doctors.get(actor.id)
    if not doctor:
        raise NotFoundError("Doctor not found")
    return doctor


async def update_profile(
    store: Store,
    actor: Actor,
    *,
    name: Optional[str] = None,
    mobile: Optional[str] = None,
    dob: Optional[str | dt.date] = None,
) -> User:
    """Patch the caller's own profile; fields left as None are untouched."""
    changes: dict = {}
    if name is not None:
        if not name.strip():
            raise InvalidInputError("Name cannot be empty")
        changes["name"] = name.strip()
    if mobile is not None:
        changes["mobile"] = _check_mobile(mobile)
    if dob is not None:
        changes["dob"] = parse_calendar_date(dob)
    if not changes:
        return await current_user(store, actor)
    user = await store.users.update(actor.id, changes)
    if not user:
        raise NotFoundError("User not found")
    return user


async def update_doctor_profile(
    store: Store,
    actor: Actor,
    *,
    mobile: Optional[str] = None,
    about: Optional[str] = None,
    fees: Optional[int] = None,
) -> Doctor:
    """Doctors edit their contact line, bio and fee; the rest is admin-managed."""
    changes: dict = {}
    if mobile is not None:
        changes["mobile"] = _check_mobile(mobile)
    if about is not None:
        changes["about"] = about.strip()
    if fees is not None:
        if fees < 0:
            raise InvalidInputError("Fees cannot be negative")
        changes["fees"] = fees
    if not changes:
        return await current_doctor(store, actor)
    doctor = await store.doctors.update(actor.id, changes)
    if not doctor:
        raise NotFoundError("Doctor not found")
    logger.info(f"Doctor {actor.id} updated profile fields: {', '.join(sorted(changes))}")
    return doctor


async def change_doctor_password(
    store: Store, actor: Actor, *, current_password: str, new_password: str
) -> str:
    """Swap the doctor's password and hand back a fresh access token."""
    if not current_password or not new_password:
        raise InvalidInputError("Please provide current and new password")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError(
            f"New password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    doctor = await current_doctor(store, actor)
    if not verify_password(current_password, doctor.password_hash):
        logger.warning(f"Wrong current password on change for doctor {actor.id}")
        raise UnauthorizedError("Current password is incorrect")
    await store.doctors.update(actor.id, {"password_hash": hash_password(new_password)})
    logger.info(f"Doctor {actor.id} changed password")
    return create_access_token(doctor.id, Role.DOCTOR)
