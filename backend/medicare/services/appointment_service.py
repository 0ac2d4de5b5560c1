import datetime as dt
from collections import Counter
from typing import Any, Callable, Optional

from medicare.constants import (
    MAX_REASON_LENGTH,
    AppointmentStatus,
    RecordStatus,
    Role,
    VisitType,
)
from medicare.domain.entities import (
    Actor,
    Appointment,
    MedicalRecord,
    Prescription,
    SlotAvailability,
    utcnow,
)
from medicare.domain.slots import (
    ensure_doctor_works_on,
    ensure_known_slot,
    parse_calendar_date,
    split_slots,
)
from medicare.domain.state_machine import APPOINTMENT_MACHINE
from medicare.exceptions import (
    ConflictError,
    DuplicateRecordError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from medicare.repositories import Store
from medicare.utils.logger import get_logger

logger = get_logger("appointment_service")

SLOT_TAKEN = "This time slot is already booked. Please select another slot."

DOCTOR_DECISIONS = {
    AppointmentStatus.CONFIRMED: "confirm",
    AppointmentStatus.REJECTED: "reject",
}


def slot_sort_key(label: str) -> tuple[int, str]:
    """Order "09:30 AM" before "02:00 PM"; unknown formats sort last, by text."""
    try:
        parsed = dt.datetime.strptime(label.strip(), "%I:%M %p")
    except ValueError:
        return 24 * 60, label
    return parsed.hour * 60 + parsed.minute, label


def parse_status_filter(status: Optional[str]) -> list[AppointmentStatus] | None:
    if not status or status == "All":
        return None
    try:
        return [AppointmentStatus(status)]
    except ValueError:
        allowed = ", ".join(s.value for s in AppointmentStatus)
        raise InvalidInputError(f"Invalid status filter. Use one of: All, {allowed}")


class AppointmentService:
    """Booking, slot availability and the appointment status machine."""

    def __init__(self, store: Store, clock: Callable[[], dt.datetime] = utcnow) -> None:
        self.store = store
        self._clock = clock

    def _today(self) -> dt.date:
        return self._clock().astimezone().date()

    # ---------------------- Slots & booking ----------------------

    async def compute_available_slots(self, doctor_id: str, date: str | dt.date) -> SlotAvailability:
        day = parse_calendar_date(date)
        doctor = await self.store.doctors.get(doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")
        booked = await self.store.appointments.booked_slots(doctor.id, day)
        return split_slots(doctor.availability.slots, booked)

    async def create_appointment(
        self,
        actor: Actor,
        *,
        doctor_id: str,
        date: str | dt.date,
        time_slot: str,
        reason: str,
    ) -> Appointment:
        """Book a slot for the calling patient; the appointment starts Pending."""
        if actor.role != Role.PATIENT:
            raise ForbiddenError("Only patients can book appointments")
        if not doctor_id or not date or not (time_slot or "").strip() or not (reason or "").strip():
            raise InvalidInputError("Please provide doctorId, date, timeSlot and reason")
        if len(reason) > MAX_REASON_LENGTH:
            raise InvalidInputError(f"Reason cannot exceed {MAX_REASON_LENGTH} characters")
        day = parse_calendar_date(date)

        doctor = await self.store.doctors.get(doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")
        ensure_doctor_works_on(doctor, day)
        ensure_known_slot(doctor, time_slot)

        if await self.store.appointments.find_holder(doctor.id, day, time_slot):
            logger.warning(f"Slot {time_slot} on {day} already held for doctor {doctor.id}")
            raise ConflictError(SLOT_TAKEN)

        now = self._clock()
        appointment = Appointment(
            patient_id=actor.id,
            doctor_id=doctor.id,
            date=day,
            time_slot=time_slot,
            reason=reason.strip(),
            status=AppointmentStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        try:
            # the unique slot index settles races the check above cannot see
            appointment = await self.store.appointments.insert(appointment)
        except DuplicateRecordError:
            logger.warning(f"Concurrent booking lost for doctor {doctor.id} {day} {time_slot}")
            raise ConflictError(SLOT_TAKEN)

        logger.info(
            f"Appointment {appointment.id} booked: patient={actor.id} doctor={doctor.id} "
            f"date={day} slot={time_slot}"
        )
        return appointment

    # ---------------------- Status transitions ----------------------

    async def _transition(
        self,
        appointment: Appointment,
        actor: Actor,
        target: AppointmentStatus,
        action: str,
        changes: Optional[dict[str, Any]] = None,
    ) -> Appointment:
        APPOINTMENT_MACHINE.ensure(appointment.status, target, actor.role, action)
        update = {"status": target, "updated_at": self._clock(), **(changes or {})}
        updated = await self.store.appointments.compare_and_set(
            appointment.id, appointment.status, update
        )
        if updated is None:
            # someone else moved it first; report what is stored now
            current = await self.store.appointments.get(appointment.id)
            status = current.status.value if current else "unknown"
            raise ConflictError(f"Cannot {action} appointment, current status is {status}")
        logger.info(
            f"Appointment {appointment.id}: {appointment.status.value} -> {target.value} "
            f"by {actor.role.value} {actor.id}"
        )
        return updated

    async def _get_for_doctor(self, actor: Actor, appointment_id: str) -> Appointment:
        appointment = await self.store.appointments.get(appointment_id)
        if not appointment or appointment.doctor_id != actor.id:
            raise NotFoundError("Appointment not found")
        return appointment

    async def _get_for_patient(self, actor: Actor, appointment_id: str) -> Appointment:
        appointment = await self.store.appointments.get(appointment_id)
        if not appointment or appointment.patient_id != actor.id:
            raise NotFoundError("Appointment not found")
        return appointment

    async def update_status(
        self,
        actor: Actor,
        appointment_id: str,
        *,
        status: str,
        rejection_reason: Optional[str] = None,
    ) -> Appointment:
        """Doctor accepts (Confirmed) or rejects (Rejected) a Pending appointment."""
        try:
            target = AppointmentStatus(status)
        except ValueError:
            target = None
        if target not in DOCTOR_DECISIONS:
            raise InvalidInputError('Invalid status. Use "Confirmed" or "Rejected"')
        reason = (rejection_reason or "").strip()
        if target == AppointmentStatus.REJECTED and not reason:
            raise InvalidInputError("Please provide a reason for rejection")

        appointment = await self._get_for_doctor(actor, appointment_id)
        changes = {"rejection_reason": reason} if target == AppointmentStatus.REJECTED else {}
        return await self._transition(
            appointment, actor, target, DOCTOR_DECISIONS[target], changes
        )

    async def complete_appointment(
        self, actor: Actor, appointment_id: str, prescription: Optional[Prescription]
    ) -> Appointment:
        """Confirmed -> Completed, attaching the prescription."""
        if prescription is None:
            raise InvalidInputError("Please provide prescription details")
        medications = [
            m.model_copy(update={"name": m.name.strip()})
            for m in prescription.medications
            if m.name and m.name.strip()
        ]
        if not medications:
            raise InvalidInputError("Prescription needs at least one medication with a name")
        diagnosis = (prescription.diagnosis or "").strip()
        if not diagnosis:
            raise InvalidInputError("Please provide a diagnosis")

        appointment = await self._get_for_doctor(actor, appointment_id)
        issued = Prescription(
            medications=medications,
            diagnosis=diagnosis,
            notes=(prescription.notes or "").strip(),
            issued_at=self._clock(),
        )
        completed = await self._transition(
            appointment, actor, AppointmentStatus.COMPLETED, "complete", {"prescription": issued}
        )
        await self._record_visit(completed)
        return completed

    async def _record_visit(self, appointment: Appointment) -> None:
        """Add the completed consultation to the patient's medical history."""
        record = MedicalRecord(
            patient_id=appointment.patient_id,
            doctor_id=appointment.doctor_id,
            appointment_id=appointment.id,
            visit_type=VisitType.CONSULTATION,
            diagnosis=appointment.prescription.diagnosis,
            notes=appointment.prescription.notes,
            date=appointment.date,
            status=RecordStatus.COMPLETED,
            created_at=self._clock(),
        )
        try:
            record = await self.store.records.insert(record)
        except DuplicateRecordError:
            logger.info(f"Appointment {appointment.id} already has a medical record")
            return
        logger.info(f"Medical record {record.id} written for appointment {appointment.id}")

    async def cancel_appointment(self, actor: Actor, appointment_id: str) -> Appointment:
        appointment = await self._get_for_patient(actor, appointment_id)
        if appointment.status == AppointmentStatus.COMPLETED:
            raise ConflictError("Cannot cancel a completed appointment")
        return await self._transition(appointment, actor, AppointmentStatus.CANCELLED, "cancel")

    # ---------------------- Patient views ----------------------

    async def list_for_patient(self, actor: Actor, status: Optional[str] = None) -> list[Appointment]:
        appointments = await self.store.appointments.find_many(
            patient_id=actor.id, statuses=parse_status_filter(status)
        )
        return sorted(appointments, key=lambda a: (a.date, a.created_at), reverse=True)

    async def get_for_patient(self, actor: Actor, appointment_id: str) -> Appointment:
        return await self._get_for_patient(actor, appointment_id)

    async def update_patient_notes(self, actor: Actor, appointment_id: str, notes: str) -> Appointment:
        appointment = await self._get_for_patient(actor, appointment_id)
        return await self.store.appointments.update_notes(appointment.id, notes or "")

    async def list_prescriptions(
        self, actor: Actor, is_active: Optional[bool] = None
    ) -> list[Appointment]:
        """Completed appointments of the patient that carry a prescription, newest first."""
        completed = await self.store.appointments.find_many(
            patient_id=actor.id, statuses=[AppointmentStatus.COMPLETED]
        )
        with_rx = [a for a in completed if a.prescription is not None]
        if is_active is not None:
            with_rx = [a for a in with_rx if a.prescription.is_active == is_active]
        return sorted(
            with_rx,
            key=lambda a: a.prescription.issued_at or a.updated_at,
            reverse=True,
        )

    async def get_prescription(self, actor: Actor, appointment_id: str) -> Appointment:
        appointment = await self.store.appointments.get(appointment_id)
        if (
            not appointment
            or appointment.patient_id != actor.id
            or appointment.prescription is None
        ):
            raise NotFoundError("Prescription not found")
        return appointment

    async def active_prescriptions_count(self, actor: Actor) -> int:
        return len(await self.list_prescriptions(actor, is_active=True))

    # ---------------------- Doctor views ----------------------

    async def list_for_doctor(
        self,
        actor: Actor,
        *,
        status: Optional[str] = None,
        date: Optional[str] = None,
        sort_by: str = "date",
    ) -> tuple[list[Appointment], dict[str, int]]:
        """Doctor's appointments plus a per-status summary of the returned rows."""
        appointments = await self.store.appointments.find_many(
            doctor_id=actor.id,
            statuses=parse_status_filter(status),
            day=parse_calendar_date(date) if date else None,
        )
        if sort_by == "status":
            appointments.sort(key=lambda a: (a.status.value, a.date))
        elif sort_by == "newest":
            appointments.sort(key=lambda a: a.created_at, reverse=True)
        else:
            appointments.sort(key=lambda a: (a.date, slot_sort_key(a.time_slot)))
        return appointments, self._summarize(appointments)

    @staticmethod
    def _summarize(appointments: list[Appointment]) -> dict[str, int]:
        counts = Counter(a.status for a in appointments)
        summary = {s.value.lower(): counts.get(s, 0) for s in AppointmentStatus}
        summary["total"] = len(appointments)
        return summary

    async def get_for_doctor(self, actor: Actor, appointment_id: str) -> Appointment:
        return await self._get_for_doctor(actor, appointment_id)

    async def today_schedule(self, actor: Actor) -> list[Appointment]:
        appointments = await self.store.appointments.find_many(
            doctor_id=actor.id,
            day=self._today(),
            statuses=[AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED],
        )
        return sorted(appointments, key=lambda a: slot_sort_key(a.time_slot))

    async def doctor_stats(self, actor: Actor) -> dict[str, int]:
        appointments = await self.store.appointments.find_many(doctor_id=actor.id)
        stats = self._summarize(appointments)
        stats["today"] = len(await self.today_schedule(actor))
        return stats

    async def update_doctor_notes(self, actor: Actor, appointment_id: str, notes: str) -> Appointment:
        appointment = await self._get_for_doctor(actor, appointment_id)
        return await self.store.appointments.update_notes(appointment.id, notes or "")
