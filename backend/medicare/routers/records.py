from typing import Optional

from fastapi import APIRouter, Depends, Query

from medicare.constants import Role
from medicare.deps import get_store
from medicare.domain.entities import Actor, RecordStats
from medicare.repositories import Store
from medicare.schemas import Envelope, ListEnvelope, MedicalRecordOut
from medicare.security import get_current_actor, require_roles
from medicare.services.record_service import RecordService
from medicare.utils.responses import ok

router = APIRouter(
    prefix="/api/records",
    tags=["records"],
    dependencies=[Depends(require_roles([Role.PATIENT]))],
)


@router.get("", response_model=ListEnvelope[MedicalRecordOut])
async def route_my_records(
    status: Optional[str] = None,
    visit_type: Optional[str] = Query(None, alias="visitType"),
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    """Medical history, most recent visit first. "All" disables a filter."""
    records = await RecordService(store).list_records(
        actor, status=status, visit_type=visit_type
    )
    return ok(records, count=len(records))


# Must be declared before "/{record_id}"
@router.get("/stats", response_model=Envelope[RecordStats])
async def route_record_stats(
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    return ok(await RecordService(store).record_stats(actor))


@router.get("/{record_id}", response_model=Envelope[MedicalRecordOut])
async def route_get_record(
    record_id: str,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    return ok(await RecordService(store).get_record(actor, record_id))
