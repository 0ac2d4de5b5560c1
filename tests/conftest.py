import datetime as dt

import pytest
import pytest_asyncio

from medicare.constants import BedStatus, Role, WardType
from medicare.domain.entities import Actor, Availability, Bed, Doctor, User
from medicare.repositories import Store
from medicare.repositories.memory import memory_store
from medicare.services.appointment_service import AppointmentService
from medicare.services.bed_service import BedService
from medicare.services.review_service import ReviewService

# Monday 6 January 2025, noon UTC
NOW = dt.datetime(2025, 1, 6, 12, 0, tzinfo=dt.timezone.utc)
SLOTS = ["09:00 AM", "09:30 AM", "10:00 AM", "02:00 PM"]


def fixed_clock() -> dt.datetime:
    return NOW


@pytest.fixture
def store() -> Store:
    return memory_store()


@pytest.fixture
def appointment_service(store: Store) -> AppointmentService:
    return AppointmentService(store, clock=fixed_clock)


@pytest.fixture
def bed_service(store: Store) -> BedService:
    return BedService(store, clock=fixed_clock)


@pytest.fixture
def review_service(store: Store) -> ReviewService:
    return ReviewService(store)


@pytest_asyncio.fixture
async def doctor(store: Store) -> Doctor:
    return await store.doctors.insert(
        Doctor(
            name="Sarah Smith",
            email="sarah@medicare.test",
            specialization="Cardiology",
            experience=12,
            hospital="City Hospital",
            fees=800,
            availability=Availability(days=["Mon", "Wed", "Fri"], slots=SLOTS),
        )
    )


@pytest_asyncio.fixture
async def patient_user(store: Store) -> User:
    return await store.users.insert(User(name="Ali Patient", email="ali@medicare.test"))


@pytest_asyncio.fixture
async def other_user(store: Store) -> User:
    return await store.users.insert(User(name="Mina Patient", email="mina@medicare.test"))


@pytest.fixture
def patient(patient_user: User) -> Actor:
    return Actor(id=patient_user.id, role=Role.PATIENT)


@pytest.fixture
def other_patient(other_user: User) -> Actor:
    return Actor(id=other_user.id, role=Role.PATIENT)


@pytest.fixture
def doctor_actor(doctor: Doctor) -> Actor:
    return Actor(id=doctor.id, role=Role.DOCTOR)


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin-1", role=Role.ADMIN)


@pytest_asyncio.fixture
async def bed(store: Store) -> Bed:
    return await store.beds.insert(
        Bed(bed_number="GW-101", ward_type=WardType.GENERAL, price_per_day=1500)
    )


@pytest_asyncio.fixture
async def ward(store: Store) -> list[Bed]:
    """Mixed inventory: three General beds and one ICU bed."""
    beds = [
        Bed(bed_number="GW-101", ward_type=WardType.GENERAL, price_per_day=1000),
        Bed(bed_number="GW-102", ward_type=WardType.GENERAL, price_per_day=1500, status=BedStatus.OCCUPIED),
        Bed(bed_number="GW-201", ward_type=WardType.GENERAL, floor=2, price_per_day=2001, status=BedStatus.RESERVED),
        Bed(bed_number="ICU-1", ward_type=WardType.ICU, price_per_day=5000, status=BedStatus.MAINTENANCE),
    ]
    return [await store.beds.insert(b) for b in beds]
