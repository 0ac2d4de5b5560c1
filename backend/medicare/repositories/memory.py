"""In-memory repositories.

Same contracts as the Mongo adapter, including the unique-slot and
one-active-bed-booking constraints, enforced under an ``asyncio.Lock``.
Used by the test-suite and handy for running the API without MongoDB.
"""

import asyncio
import datetime as dt
import uuid
from typing import Any, TypeVar

from pydantic import BaseModel

from medicare.constants import (
    AppointmentStatus,
    BedBookingStatus,
    BedStatus,
    RecordStatus,
    VisitType,
    WardType,
)
from medicare.domain.entities import (
    Appointment,
    Bed,
    BedBooking,
    Doctor,
    MedicalRecord,
    Review,
    User,
)
from medicare.exceptions import DuplicateRecordError
from medicare.repositories.ports import Store

M = TypeVar("M", bound=BaseModel)


def _new_id() -> str:
    return uuid.uuid4().hex[:24]


class _MemoryTable:
    def __init__(self) -> None:
        self._rows: dict[str, Any] = {}
        self._lock = asyncio.Lock()

    def _get(self, key: str | None) -> Any:
        row = self._rows.get(key) if key else None
        return row.model_copy(deep=True) if row is not None else None

    def _put(self, row: M) -> M:
        if row.id is None:
            row = row.model_copy(update={"id": _new_id()})
        self._rows[row.id] = row.model_copy(deep=True)
        return row

    def _all(self) -> list[Any]:
        return [row.model_copy(deep=True) for row in self._rows.values()]

    def _cas(self, key: str, expected: Any, changes: dict[str, Any]) -> Any:
        row = self._rows.get(key)
        if row is None or row.status != expected:
            return None
        updated = row.model_copy(update=changes)
        self._rows[key] = updated
        return updated.model_copy(deep=True)


class MemoryUserRepository(_MemoryTable):
    async def get(self, user_id: str) -> User | None:
        return self._get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        email = email.lower()
        return next((u for u in self._all() if u.email == email), None)

    async def insert(self, user: User) -> User:
        async with self._lock:
            if await self.get_by_email(user.email):
                raise DuplicateRecordError("users.email")
            return self._put(user)

    async def update(self, user_id: str, changes: dict[str, Any]) -> User | None:
        async with self._lock:
            user = self._rows.get(user_id)
            if user is None:
                return None
            return self._put(user.model_copy(update=changes))


class MemoryDoctorRepository(_MemoryTable):
    async def get(self, doctor_id: str) -> Doctor | None:
        return self._get(doctor_id)

    async def get_by_email(self, email: str) -> Doctor | None:
        email = email.lower()
        return next((d for d in self._all() if (d.email or "").lower() == email), None)

    async def insert(self, doctor: Doctor) -> Doctor:
        async with self._lock:
            return self._put(doctor)

    async def search(
        self,
        *,
        specialization: str | None = None,
        search: str | None = None,
        min_experience: int | None = None,
        max_fees: int | None = None,
    ) -> list[Doctor]:
        doctors = [d for d in self._all() if d.is_active]
        if specialization:
            doctors = [d for d in doctors if d.specialization == specialization]
        if search:
            needle = search.lower()
            doctors = [
                d for d in doctors
                if needle in d.name.lower() or needle in d.hospital.lower()
            ]
        if min_experience is not None:
            doctors = [d for d in doctors if d.experience >= min_experience]
        if max_fees is not None:
            doctors = [d for d in doctors if d.fees <= max_fees]
        return sorted(doctors, key=lambda d: (-d.rating, -d.experience))

    async def specializations(self) -> list[str]:
        return sorted({d.specialization for d in self._all() if d.is_active})

    async def set_rating(self, doctor_id: str, rating: float, num_reviews: int) -> None:
        async with self._lock:
            doctor = self._rows.get(doctor_id)
            if doctor is not None:
                self._put(doctor.model_copy(update={"rating": rating, "num_reviews": num_reviews}))

    async def update(self, doctor_id: str, changes: dict[str, Any]) -> Doctor | None:
        async with self._lock:
            doctor = self._rows.get(doctor_id)
            if doctor is None:
                return None
            return self._put(doctor.model_copy(update=changes))


class MemoryAppointmentRepository(_MemoryTable):
    async def get(self, appointment_id: str) -> Appointment | None:
        return self._get(appointment_id)

    async def insert(self, appointment: Appointment) -> Appointment:
        async with self._lock:
            if appointment.holds_slot and self._holder(
                appointment.doctor_id, appointment.date, appointment.time_slot
            ):
                raise DuplicateRecordError("appointments.active_slot")
            return self._put(appointment)

    def _holder(self, doctor_id: str, day: dt.date, time_slot: str) -> Appointment | None:
        return next(
            (
                a for a in self._rows.values()
                if a.holds_slot
                and a.doctor_id == doctor_id
                and a.date == day
                and a.time_slot == time_slot
            ),
            None,
        )

    async def find_holder(self, doctor_id: str, day: dt.date, time_slot: str) -> Appointment | None:
        holder = self._holder(doctor_id, day, time_slot)
        return holder.model_copy(deep=True) if holder else None

    async def booked_slots(self, doctor_id: str, day: dt.date) -> list[str]:
        return [
            a.time_slot
            for a in self._rows.values()
            if a.doctor_id == doctor_id
            and a.date == day
            and a.status != AppointmentStatus.CANCELLED
        ]

    async def find_many(
        self,
        *,
        patient_id: str | None = None,
        doctor_id: str | None = None,
        statuses: list[AppointmentStatus] | None = None,
        day: dt.date | None = None,
    ) -> list[Appointment]:
        rows = self._all()
        if patient_id:
            rows = [a for a in rows if a.patient_id == patient_id]
        if doctor_id:
            rows = [a for a in rows if a.doctor_id == doctor_id]
        if statuses:
            rows = [a for a in rows if a.status in statuses]
        if day:
            rows = [a for a in rows if a.date == day]
        return rows

    async def compare_and_set(
        self, appointment_id: str, expected: AppointmentStatus, changes: dict[str, Any]
    ) -> Appointment | None:
        async with self._lock:
            return self._cas(appointment_id, expected, changes)

    async def update_notes(self, appointment_id: str, notes: str) -> Appointment | None:
        async with self._lock:
            row = self._rows.get(appointment_id)
            if row is None:
                return None
            return self._put(row.model_copy(update={"notes": notes, "updated_at": dt.datetime.now(dt.timezone.utc)}))


class MemoryBedRepository(_MemoryTable):
    async def get(self, bed_id: str) -> Bed | None:
        return self._get(bed_id)

    async def insert(self, bed: Bed) -> Bed:
        async with self._lock:
            for other in self._rows.values():
                if other.bed_number == bed.bed_number and other.ward_type == bed.ward_type:
                    raise DuplicateRecordError("beds.bed_number")
            return self._put(bed)

    async def find_many(
        self, *, ward_type: WardType | None = None, status: BedStatus | None = None
    ) -> list[Bed]:
        rows = self._all()
        if ward_type:
            rows = [b for b in rows if b.ward_type == ward_type]
        if status:
            rows = [b for b in rows if b.status == status]
        return sorted(rows, key=lambda b: (b.floor, b.bed_number))

    async def compare_and_set(
        self, bed_id: str, expected: BedStatus, changes: dict[str, Any]
    ) -> Bed | None:
        async with self._lock:
            return self._cas(bed_id, expected, changes)


class MemoryBedBookingRepository(_MemoryTable):
    async def get(self, booking_id: str) -> BedBooking | None:
        return self._get(booking_id)

    async def insert(self, booking: BedBooking) -> BedBooking:
        async with self._lock:
            if booking.holds_bed and self._active(booking.patient_id):
                raise DuplicateRecordError("bed_bookings.active_patient")
            return self._put(booking)

    def _active(self, patient_id: str) -> BedBooking | None:
        return next(
            (b for b in self._rows.values() if b.patient_id == patient_id and b.holds_bed),
            None,
        )

    async def find_active_for_patient(self, patient_id: str) -> BedBooking | None:
        active = self._active(patient_id)
        return active.model_copy(deep=True) if active else None

    async def list_for_patient(self, patient_id: str) -> list[BedBooking]:
        rows = [b for b in self._all() if b.patient_id == patient_id]
        return sorted(rows, key=lambda b: b.created_at, reverse=True)

    async def compare_and_set(
        self, booking_id: str, expected: BedBookingStatus, changes: dict[str, Any]
    ) -> BedBooking | None:
        async with self._lock:
            return self._cas(booking_id, expected, changes)


class MemoryReviewRepository(_MemoryTable):
    async def get_by_appointment(self, appointment_id: str) -> Review | None:
        return next((r for r in self._all() if r.appointment_id == appointment_id), None)

    async def insert(self, review: Review) -> Review:
        async with self._lock:
            if await self.get_by_appointment(review.appointment_id):
                raise DuplicateRecordError("reviews.appointment_id")
            return self._put(review)

    async def list_for_doctor(self, doctor_id: str) -> list[Review]:
        rows = [r for r in self._all() if r.doctor_id == doctor_id]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    async def ratings_for_doctor(self, doctor_id: str) -> list[int]:
        return [r.rating for r in self._rows.values() if r.doctor_id == doctor_id]


class MemoryMedicalRecordRepository(_MemoryTable):
    async def get(self, record_id: str) -> MedicalRecord | None:
        return self._get(record_id)

    async def insert(self, record: MedicalRecord) -> MedicalRecord:
        async with self._lock:
            if record.appointment_id and any(
                r.appointment_id == record.appointment_id for r in self._rows.values()
            ):
                raise DuplicateRecordError("medical_records.record_appointment")
            return self._put(record)

    async def find_for_patient(
        self,
        patient_id: str,
        *,
        status: RecordStatus | None = None,
        visit_type: VisitType | None = None,
    ) -> list[MedicalRecord]:
        rows = [r for r in self._all() if r.patient_id == patient_id]
        if status:
            rows = [r for r in rows if r.status == status]
        if visit_type:
            rows = [r for r in rows if r.visit_type == visit_type]
        return sorted(rows, key=lambda r: (r.date, r.created_at), reverse=True)


def memory_store() -> Store:
    return Store(
        users=MemoryUserRepository(),
        doctors=MemoryDoctorRepository(),
        appointments=MemoryAppointmentRepository(),
        beds=MemoryBedRepository(),
        bed_bookings=MemoryBedBookingRepository(),
        reviews=MemoryReviewRepository(),
        records=MemoryMedicalRecordRepository(),
    )
