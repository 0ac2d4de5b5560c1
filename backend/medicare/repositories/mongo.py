"""Beanie-backed repositories.

Uniqueness rules live in the collection indexes declared on the documents
(see ``medicare.models``); a violated index surfaces here as
``DuplicateRecordError``. Status changes go through ``find_one_and_update``
filtered on the expected status, so concurrent writers cannot both win.
"""

import datetime as dt
import re
from enum import Enum
from typing import Any, Type, TypeVar

from beanie import Document
from beanie import PydanticObjectId as OID
from beanie.odm.queries.update import UpdateResponse
from beanie.operators import In, Or, RegEx, Set
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from medicare.constants import (
    ACTIVE_BED_BOOKING_STATUSES,
    SLOT_HOLDING_STATUSES,
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
from medicare.models import (
    AppointmentDocument,
    BedBookingDocument,
    BedDocument,
    DoctorDocument,
    MedicalRecordDocument,
    ReviewDocument,
    UserDocument,
)
from medicare.repositories.ports import Store
from medicare.utils.logger import get_logger

logger = get_logger("repositories.mongo")

E = TypeVar("E", bound=BaseModel)


def _oid(value: Any) -> OID | None:
    if isinstance(value, OID):
        return value
    if isinstance(value, str) and OID.is_valid(value):
        return OID(value)
    return None


def _encode(value: Any, key: str = "") -> Any:
    """Domain values -> stored values: dates as text, ids as ObjectId."""
    if isinstance(value, BaseModel):
        return _encode(value.model_dump())
    if isinstance(value, dict):
        return {k: _encode(v, k) for k, v in value.items()}
    if isinstance(value, list):
        return [_encode(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dt.date) and not isinstance(value, dt.datetime):
        return value.isoformat()
    if key.endswith("_id") and isinstance(value, str):
        return _oid(value)
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, OID):
        return str(value)
    if isinstance(value, dict):
        return {k: _decode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decode(v) for v in value]
    return value


def _to_domain(entity: Type[E], doc: Document | None) -> E | None:
    if doc is None:
        return None
    data = _decode(doc.model_dump())
    data["id"] = str(doc.id)
    return entity.model_validate(data)


async def _insert(doc: Document, index: str) -> Document:
    try:
        return await doc.insert()
    except DuplicateKeyError:
        logger.info(f"Insert rejected by unique index {index}")
        raise DuplicateRecordError(index)


class MongoUserRepository:
    async def get(self, user_id: str) -> User | None:
        oid = _oid(user_id)
        return _to_domain(User, await UserDocument.get(oid)) if oid else None

    async def get_by_email(self, email: str) -> User | None:
        doc = await UserDocument.find_one(UserDocument.email == email.lower())
        return _to_domain(User, doc)

    async def insert(self, user: User) -> User:
        doc = UserDocument.model_validate(_encode(user.model_dump(exclude={"id"})))
        return _to_domain(User, await _insert(doc, "users.email"))

    async def update(self, user_id: str, changes: dict[str, Any]) -> User | None:
        oid = _oid(user_id)
        if not oid:
            return None
        doc = await UserDocument.find_one(UserDocument.id == oid).update(
            Set(_encode(changes)), response_type=UpdateResponse.NEW_DOCUMENT
        )
        return _to_domain(User, doc)


class MongoDoctorRepository:
    async def get(self, doctor_id: str) -> Doctor | None:
        oid = _oid(doctor_id)
        return _to_domain(Doctor, await DoctorDocument.get(oid)) if oid else None

    async def get_by_email(self, email: str) -> Doctor | None:
        doc = await DoctorDocument.find_one(DoctorDocument.email == email.lower())
        return _to_domain(Doctor, doc)

    async def insert(self, doctor: Doctor) -> Doctor:
        doc = DoctorDocument.model_validate(_encode(doctor.model_dump(exclude={"id"})))
        return _to_domain(Doctor, await _insert(doc, "doctors.email"))

    async def search(
        self,
        *,
        specialization: str | None = None,
        search: str | None = None,
        min_experience: int | None = None,
        max_fees: int | None = None,
    ) -> list[Doctor]:
        query = DoctorDocument.find(DoctorDocument.is_active == True)  # noqa: E712
        if specialization:
            query = query.find(DoctorDocument.specialization == specialization)
        if search:
            pattern = re.escape(search)
            query = query.find(
                Or(
                    RegEx(DoctorDocument.name, pattern, "i"),
                    RegEx(DoctorDocument.hospital, pattern, "i"),
                )
            )
        if min_experience is not None:
            query = query.find(DoctorDocument.experience >= min_experience)
        if max_fees is not None:
            query = query.find(DoctorDocument.fees <= max_fees)
        docs = await query.sort(-DoctorDocument.rating, -DoctorDocument.experience).to_list()
        return [_to_domain(Doctor, d) for d in docs]

    async def specializations(self) -> list[str]:
        values = await DoctorDocument.distinct("specialization", {"is_active": True})
        return sorted(values)

    async def set_rating(self, doctor_id: str, rating: float, num_reviews: int) -> None:
        oid = _oid(doctor_id)
        if not oid:
            return
        await DoctorDocument.find_one(DoctorDocument.id == oid).update(
            Set({"rating": rating, "num_reviews": num_reviews})
        )

    async def update(self, doctor_id: str, changes: dict[str, Any]) -> Doctor | None:
        oid = _oid(doctor_id)
        if not oid:
            return None
        doc = await DoctorDocument.find_one(DoctorDocument.id == oid).update(
            Set(_encode(changes)), response_type=UpdateResponse.NEW_DOCUMENT
        )
        return _to_domain(Doctor, doc)


class MongoAppointmentRepository:
    async def get(self, appointment_id: str) -> Appointment | None:
        oid = _oid(appointment_id)
        return _to_domain(Appointment, await AppointmentDocument.get(oid)) if oid else None

    async def insert(self, appointment: Appointment) -> Appointment:
        data = _encode(appointment.model_dump(exclude={"id"}))
        data["holds_slot"] = appointment.holds_slot
        doc = AppointmentDocument.model_validate(data)
        return _to_domain(Appointment, await _insert(doc, "appointments.active_slot"))

    async def find_holder(self, doctor_id: str, day: dt.date, time_slot: str) -> Appointment | None:
        doc = await AppointmentDocument.find_one(
            AppointmentDocument.doctor_id == _oid(doctor_id),
            AppointmentDocument.date == day.isoformat(),
            AppointmentDocument.time_slot == time_slot,
            In(AppointmentDocument.status, [s.value for s in SLOT_HOLDING_STATUSES]),
        )
        return _to_domain(Appointment, doc)

    async def booked_slots(self, doctor_id: str, day: dt.date) -> list[str]:
        docs = await AppointmentDocument.find(
            AppointmentDocument.doctor_id == _oid(doctor_id),
            AppointmentDocument.date == day.isoformat(),
            AppointmentDocument.status != AppointmentStatus.CANCELLED.value,
        ).to_list()
        return [d.time_slot for d in docs]

    async def find_many(
        self,
        *,
        patient_id: str | None = None,
        doctor_id: str | None = None,
        statuses: list[AppointmentStatus] | None = None,
        day: dt.date | None = None,
    ) -> list[Appointment]:
        query = AppointmentDocument.find()
        if patient_id:
            query = query.find(AppointmentDocument.patient_id == _oid(patient_id))
        if doctor_id:
            query = query.find(AppointmentDocument.doctor_id == _oid(doctor_id))
        if statuses:
            query = query.find(In(AppointmentDocument.status, [s.value for s in statuses]))
        if day:
            query = query.find(AppointmentDocument.date == day.isoformat())
        return [_to_domain(Appointment, d) for d in await query.to_list()]

    async def compare_and_set(
        self, appointment_id: str, expected: AppointmentStatus, changes: dict[str, Any]
    ) -> Appointment | None:
        oid = _oid(appointment_id)
        if not oid:
            return None
        fields = _encode(changes)
        if "status" in changes:
            fields["holds_slot"] = changes["status"] in SLOT_HOLDING_STATUSES
        try:
            doc = await AppointmentDocument.find_one(
                AppointmentDocument.id == oid,
                AppointmentDocument.status == expected.value,
            ).update(Set(fields), response_type=UpdateResponse.NEW_DOCUMENT)
        except DuplicateKeyError:
            raise DuplicateRecordError("appointments.active_slot")
        return _to_domain(Appointment, doc)

    async def update_notes(self, appointment_id: str, notes: str) -> Appointment | None:
        oid = _oid(appointment_id)
        if not oid:
            return None
        doc = await AppointmentDocument.find_one(AppointmentDocument.id == oid).update(
            Set({"notes": notes, "updated_at": dt.datetime.now(dt.timezone.utc)}),
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        return _to_domain(Appointment, doc)


class MongoBedRepository:
    async def get(self, bed_id: str) -> Bed | None:
        oid = _oid(bed_id)
        return _to_domain(Bed, await BedDocument.get(oid)) if oid else None

    async def insert(self, bed: Bed) -> Bed:
        doc = BedDocument.model_validate(_encode(bed.model_dump(exclude={"id"})))
        return _to_domain(Bed, await _insert(doc, "beds.bed_number"))

    async def find_many(
        self, *, ward_type: WardType | None = None, status: BedStatus | None = None
    ) -> list[Bed]:
        query = BedDocument.find()
        if ward_type:
            query = query.find(BedDocument.ward_type == ward_type.value)
        if status:
            query = query.find(BedDocument.status == status.value)
        docs = await query.sort(+BedDocument.floor, +BedDocument.bed_number).to_list()
        return [_to_domain(Bed, d) for d in docs]

    async def compare_and_set(
        self, bed_id: str, expected: BedStatus, changes: dict[str, Any]
    ) -> Bed | None:
        oid = _oid(bed_id)
        if not oid:
            return None
        fields = _encode(changes)
        fields["updated_at"] = dt.datetime.now(dt.timezone.utc)
        doc = await BedDocument.find_one(
            BedDocument.id == oid,
            BedDocument.status == expected.value,
        ).update(Set(fields), response_type=UpdateResponse.NEW_DOCUMENT)
        return _to_domain(Bed, doc)


class MongoBedBookingRepository:
    async def get(self, booking_id: str) -> BedBooking | None:
        oid = _oid(booking_id)
        return _to_domain(BedBooking, await BedBookingDocument.get(oid)) if oid else None

    async def insert(self, booking: BedBooking) -> BedBooking:
        data = _encode(booking.model_dump(exclude={"id"}))
        data["holds_bed"] = booking.holds_bed
        doc = BedBookingDocument.model_validate(data)
        return _to_domain(BedBooking, await _insert(doc, "bed_bookings.active_patient"))

    async def find_active_for_patient(self, patient_id: str) -> BedBooking | None:
        doc = await BedBookingDocument.find_one(
            BedBookingDocument.patient_id == _oid(patient_id),
            In(BedBookingDocument.status, [s.value for s in ACTIVE_BED_BOOKING_STATUSES]),
        )
        return _to_domain(BedBooking, doc)

    async def list_for_patient(self, patient_id: str) -> list[BedBooking]:
        docs = await BedBookingDocument.find(
            BedBookingDocument.patient_id == _oid(patient_id)
        ).sort(-BedBookingDocument.created_at).to_list()
        return [_to_domain(BedBooking, d) for d in docs]

    async def compare_and_set(
        self, booking_id: str, expected: BedBookingStatus, changes: dict[str, Any]
    ) -> BedBooking | None:
        oid = _oid(booking_id)
        if not oid:
            return None
        fields = _encode(changes)
        if "status" in changes:
            fields["holds_bed"] = changes["status"] in ACTIVE_BED_BOOKING_STATUSES
        try:
            doc = await BedBookingDocument.find_one(
                BedBookingDocument.id == oid,
                BedBookingDocument.status == expected.value,
            ).update(Set(fields), response_type=UpdateResponse.NEW_DOCUMENT)
        except DuplicateKeyError:
            raise DuplicateRecordError("bed_bookings.active_patient")
        return _to_domain(BedBooking, doc)


class MongoReviewRepository:
    async def get_by_appointment(self, appointment_id: str) -> Review | None:
        doc = await ReviewDocument.find_one(
            ReviewDocument.appointment_id == _oid(appointment_id)
        )
        return _to_domain(Review, doc)

    async def insert(self, review: Review) -> Review:
        doc = ReviewDocument.model_validate(_encode(review.model_dump(exclude={"id"})))
        return _to_domain(Review, await _insert(doc, "reviews.appointment_id"))

    async def list_for_doctor(self, doctor_id: str) -> list[Review]:
        docs = await ReviewDocument.find(
            ReviewDocument.doctor_id == _oid(doctor_id)
        ).sort(-ReviewDocument.created_at).to_list()
        return [_to_domain(Review, d) for d in docs]

    async def ratings_for_doctor(self, doctor_id: str) -> list[int]:
        docs = await ReviewDocument.find(ReviewDocument.doctor_id == _oid(doctor_id)).to_list()
        return [d.rating for d in docs]


class MongoMedicalRecordRepository:
    async def get(self, record_id: str) -> MedicalRecord | None:
        oid = _oid(record_id)
        return _to_domain(MedicalRecord, await MedicalRecordDocument.get(oid)) if oid else None

    async def insert(self, record: MedicalRecord) -> MedicalRecord:
        doc = MedicalRecordDocument.model_validate(_encode(record.model_dump(exclude={"id"})))
        return _to_domain(MedicalRecord, await _insert(doc, "medical_records.record_appointment"))

    async def find_for_patient(
        self,
        patient_id: str,
        *,
        status: RecordStatus | None = None,
        visit_type: VisitType | None = None,
    ) -> list[MedicalRecord]:
        query = MedicalRecordDocument.find(MedicalRecordDocument.patient_id == _oid(patient_id))
        if status:
            query = query.find(MedicalRecordDocument.status == status.value)
        if visit_type:
            query = query.find(MedicalRecordDocument.visit_type == visit_type.value)
        docs = await query.sort(-MedicalRecordDocument.date, -MedicalRecordDocument.created_at).to_list()
        return [_to_domain(MedicalRecord, d) for d in docs]


def mongo_store() -> Store:
    return Store(
        users=MongoUserRepository(),
        doctors=MongoDoctorRepository(),
        appointments=MongoAppointmentRepository(),
        beds=MongoBedRepository(),
        bed_bookings=MongoBedBookingRepository(),
        reviews=MongoReviewRepository(),
        records=MongoMedicalRecordRepository(),
    )
