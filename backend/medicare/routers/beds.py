from fastapi import APIRouter, Depends

from medicare.constants import Role
from medicare.deps import get_store
from medicare.domain.entities import Actor, WardSummary
from medicare.repositories import Store
from medicare.schemas import (
    BedBookingCreate,
    BedBookingOut,
    BedOut,
    DischargeIn,
    Envelope,
    ListEnvelope,
    MaintenanceIn,
)
from medicare.security import get_current_actor, require_roles
from medicare.services.bed_service import BedService
from medicare.utils.responses import ok

router = APIRouter(prefix="/api/beds", tags=["beds"])

patient_router = APIRouter(
    prefix="/api/beds",
    tags=["beds"],
    dependencies=[Depends(require_roles([Role.PATIENT]))],
)

admin_router = APIRouter(
    prefix="/api/beds",
    tags=["beds-admin"],
    dependencies=[Depends(require_roles([Role.ADMIN]))],
)


@router.get("/availability", response_model=Envelope[list[WardSummary]])
async def route_availability(store: Store = Depends(get_store)):
    """Per-ward bed counts, occupancy and price range."""
    return ok(await BedService(store).availability())


@router.get("/available/{ward_type}", response_model=ListEnvelope[BedOut])
async def route_available_beds(ward_type: str, store: Store = Depends(get_store)):
    beds = await BedService(store).available_beds(ward_type)
    return ok(beds, count=len(beds))


# -------------------- Patient --------------------


@patient_router.post("/book", status_code=201, response_model=Envelope[BedBookingOut])
async def route_book_bed(
    payload: BedBookingCreate,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    booking = await BedService(store).book_bed(
        actor,
        bed_id=payload.bed_id,
        admission_date=payload.admission_date,
        expected_discharge=payload.expected_discharge,
        reason=payload.reason,
        emergency_contact=(
            payload.emergency_contact.to_domain() if payload.emergency_contact else None
        ),
    )
    return ok(booking, message="Bed booked successfully")


@patient_router.get("/my-bookings", response_model=ListEnvelope[BedBookingOut])
async def route_my_bookings(
    actor: Actor = Depends(get_current_actor), store: Store = Depends(get_store)
):
    bookings = await BedService(store).my_bookings(actor)
    return ok(bookings, count=len(bookings))


@patient_router.delete("/booking/{booking_id}", response_model=Envelope[BedBookingOut])
async def route_cancel_booking(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    booking = await BedService(store).cancel_booking(actor, booking_id)
    return ok(booking, message="Bed booking cancelled successfully")


# -------------------- Admin --------------------


@admin_router.put("/booking/{booking_id}/admit", response_model=Envelope[BedBookingOut])
async def route_admit(
    booking_id: str,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    booking = await BedService(store).admit(actor, booking_id)
    return ok(booking, message="Patient admitted")


@admin_router.put("/booking/{booking_id}/discharge", response_model=Envelope[BedBookingOut])
async def route_discharge(
    booking_id: str,
    payload: DischargeIn | None = None,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    booking = await BedService(store).discharge(
        actor, booking_id, payload.discharge_date if payload else None
    )
    return ok(booking, message="Patient discharged")


@admin_router.put("/{bed_id}/maintenance", response_model=Envelope[BedOut])
async def route_maintenance(
    bed_id: str,
    payload: MaintenanceIn,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    bed = await BedService(store).set_maintenance(actor, bed_id, payload.maintenance)
    return ok(bed)
