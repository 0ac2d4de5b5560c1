"""Patient-side appointment routes, plus the public slot lookup."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from medicare.constants import Role
from medicare.deps import get_store
from medicare.domain.entities import Actor, SlotAvailability
from medicare.repositories import Store
from medicare.schemas import (
    ActiveCountOut,
    AppointmentCreate,
    AppointmentOut,
    Envelope,
    ListEnvelope,
    NotesUpdate,
    PrescriptionOut,
)
from medicare.security import get_current_actor, require_roles
from medicare.services.appointment_service import AppointmentService
from medicare.utils.responses import ok

slots_router = APIRouter(prefix="/api/appointments", tags=["appointments"])

router = APIRouter(
    prefix="/api/appointments",
    tags=["appointments"],
    dependencies=[Depends(require_roles([Role.PATIENT]))],
)


def _prescription_view(appointment) -> dict:
    return {
        "appointment_id": appointment.id,
        "doctor_id": appointment.doctor_id,
        "date": appointment.date,
        "time_slot": appointment.time_slot,
        "prescription": appointment.prescription,
    }


@slots_router.get("/slots/{doctor_id}/{date}", response_model=Envelope[SlotAvailability])
async def route_available_slots(doctor_id: str, date: str, store: Store = Depends(get_store)):
    slots = await AppointmentService(store).compute_available_slots(doctor_id, date)
    return ok(slots)


@router.post("", status_code=201, response_model=Envelope[AppointmentOut])
async def route_book_appointment(
    payload: AppointmentCreate,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    appointment = await AppointmentService(store).create_appointment(
        actor,
        doctor_id=payload.doctor_id,
        date=payload.date,
        time_slot=payload.time_slot,
        reason=payload.reason,
    )
    return ok(appointment, message="Appointment booked successfully")


@router.get("", response_model=ListEnvelope[AppointmentOut])
async def route_my_appointments(
    status: Optional[str] = None,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    appointments = await AppointmentService(store).list_for_patient(actor, status)
    return ok(appointments, count=len(appointments))


# Static paths first, otherwise "/{appointment_id}" swallows them
@router.get("/prescriptions", response_model=ListEnvelope[PrescriptionOut])
async def route_my_prescriptions(
    is_active: Optional[bool] = Query(None, alias="isActive"),
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    appointments = await AppointmentService(store).list_prescriptions(actor, is_active)
    data = [_prescription_view(a) for a in appointments]
    return ok(data, count=len(data))


@router.get("/prescriptions/active-count", response_model=Envelope[ActiveCountOut])
async def route_active_prescriptions_count(
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    count = await AppointmentService(store).active_prescriptions_count(actor)
    return ok({"active_count": count})


@router.get("/prescriptions/{appointment_id}", response_model=Envelope[PrescriptionOut])
async def route_get_prescription(
    appointment_id: str,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    appointment = await AppointmentService(store).get_prescription(actor, appointment_id)
    return ok(_prescription_view(appointment))


@router.get("/{appointment_id}", response_model=Envelope[AppointmentOut])
async def route_get_appointment(
    appointment_id: str,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    return ok(await AppointmentService(store).get_for_patient(actor, appointment_id))


@router.put("/{appointment_id}", response_model=Envelope[AppointmentOut])
async def route_update_my_notes(
    appointment_id: str,
    payload: NotesUpdate,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    appointment = await AppointmentService(store).update_patient_notes(
        actor, appointment_id, payload.notes
    )
    return ok(appointment, message="Appointment updated")


@router.delete("/{appointment_id}", response_model=Envelope[AppointmentOut])
async def route_cancel_appointment(
    appointment_id: str,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    appointment = await AppointmentService(store).cancel_appointment(actor, appointment_id)
    return ok(appointment, message="Appointment cancelled successfully")
