from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query

from medicare.constants import Role
from medicare.deps import get_store
from medicare.domain.entities import Actor
from medicare.repositories import Store
from medicare.schemas import (
    AppointmentComplete,
    AppointmentOut,
    AppointmentStatusUpdate,
    DoctorAppointmentList,
    Envelope,
    ListEnvelope,
    NotesUpdate,
)
from medicare.security import get_current_actor, require_roles
from medicare.services.appointment_service import AppointmentService
from medicare.utils.responses import ok

router = APIRouter(
    prefix="/api/doctor/appointments",
    tags=["doctor-appointments"],
    dependencies=[Depends(require_roles([Role.DOCTOR]))],
)


@router.get("", response_model=DoctorAppointmentList)
async def route_list(
    status: Optional[str] = None,
    date: Optional[str] = None,
    sort_by: str = Query("date", alias="sortBy", pattern="^(date|status|newest)$"),
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    appointments, summary = await AppointmentService(store).list_for_doctor(
        actor, status=status, date=date, sort_by=sort_by
    )
    return ok(appointments, count=len(appointments), summary=summary)


@router.get("/today", response_model=ListEnvelope[AppointmentOut])
async def route_today(actor: Actor = Depends(get_current_actor), store: Store = Depends(get_store)):
    appointments = await AppointmentService(store).today_schedule(actor)
    return ok(appointments, count=len(appointments))


@router.get("/stats", response_model=Envelope[Dict[str, int]])
async def route_stats(actor: Actor = Depends(get_current_actor), store: Store = Depends(get_store)):
    return ok(await AppointmentService(store).doctor_stats(actor))


@router.get("/{appointment_id}", response_model=Envelope[AppointmentOut])
async def route_get(
    appointment_id: str,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    return ok(await AppointmentService(store).get_for_doctor(actor, appointment_id))


@router.put("/{appointment_id}/status", response_model=Envelope[AppointmentOut])
async def route_update_status(
    appointment_id: str,
    payload: AppointmentStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    """Accept or reject a Pending appointment."""
    appointment = await AppointmentService(store).update_status(
        actor,
        appointment_id,
        status=payload.status,
        rejection_reason=payload.rejection_reason,
    )
    return ok(appointment, message=f"Appointment {appointment.status.value.lower()}")


@router.put("/{appointment_id}/complete", response_model=Envelope[AppointmentOut])
async def route_complete(
    appointment_id: str,
    payload: AppointmentComplete,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    prescription = payload.prescription.to_domain() if payload.prescription else None
    appointment = await AppointmentService(store).complete_appointment(
        actor, appointment_id, prescription
    )
    return ok(appointment, message="Appointment completed with prescription")


@router.put("/{appointment_id}/notes", response_model=Envelope[AppointmentOut])
async def route_notes(
    appointment_id: str,
    payload: NotesUpdate,
    actor: Actor = Depends(get_current_actor),
    store: Store = Depends(get_store),
):
    appointment = await AppointmentService(store).update_doctor_notes(
        actor, appointment_id, payload.notes
    )
    return ok(appointment, message="Notes updated")
