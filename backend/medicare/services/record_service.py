from collections import Counter
from enum import Enum
from typing import Optional, Type, TypeVar

from medicare.constants import RecordStatus, VisitType
from medicare.domain.entities import Actor, MedicalRecord, RecordStats, VisitTypeCount
from medicare.exceptions import InvalidInputError, NotFoundError
from medicare.repositories import Store

E = TypeVar("E", bound=Enum)


def parse_filter(value: Optional[str], enum: Type[E], name: str) -> E | None:
    """Query-string filter where a blank value or "All" means no filter."""
    if not value or value == "All":
        return None
    try:
        return enum(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum)
        raise InvalidInputError(f"Invalid {name} filter. Use one of: All, {allowed}")


class RecordService:
    """Read side of a patient's medical history."""

    def __init__(self, store: Store) -> None:
        self.store = store

    async def list_records(
        self,
        actor: Actor,
        *,
        status: Optional[str] = None,
        visit_type: Optional[str] = None,
    ) -> list[MedicalRecord]:
        return await self.store.records.find_for_patient(
            actor.id,
            status=parse_filter(status, RecordStatus, "status"),
            visit_type=parse_filter(visit_type, VisitType, "visit type"),
        )

    async def get_record(self, actor: Actor, record_id: str) -> MedicalRecord:
        record = await self.store.records.get(record_id)
        if not record or record.patient_id != actor.id:
            raise NotFoundError("Record not found")
        return record

    async def record_stats(self, actor: Actor) -> RecordStats:
        records = await self.store.records.find_for_patient(actor.id)
        per_type = Counter(r.visit_type for r in records)
        return RecordStats(
            by_visit_type=[
                VisitTypeCount(visit_type=visit_type, count=per_type[visit_type])
                for visit_type in VisitType
                if per_type[visit_type]
            ],
            total=len(records),
            completed=sum(1 for r in records if r.status == RecordStatus.COMPLETED),
        )
