import datetime as dt
from typing import Callable, Optional

from medicare.constants import MAX_REASON_LENGTH, BedBookingStatus, BedStatus, Role, WardType
from medicare.domain.beds import summarize_wards, total_amount
from medicare.domain.entities import (
    Actor,
    Bed,
    BedBooking,
    BedBookingSnapshot,
    EmergencyContact,
    WardSummary,
    utcnow,
)
from medicare.domain.slots import parse_calendar_date
from medicare.domain.state_machine import BED_BOOKING_MACHINE, BED_MACHINE
from medicare.exceptions import (
    ConflictError,
    DuplicateRecordError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from medicare.repositories import Store
from medicare.utils.logger import get_logger

logger = get_logger("bed_service")

BED_TAKEN = "This bed is no longer available"
ACTIVE_BOOKING = "You already have an active bed booking"

# Fields cleared whenever a bed goes back to Available
_FREE_BED = {"status": BedStatus.AVAILABLE, "booking": None, "current_patient_id": None}


def parse_ward_type(value: str) -> WardType:
    try:
        return WardType(value)
    except ValueError:
        allowed = ", ".join(w.value for w in WardType)
        raise InvalidInputError(f"Invalid ward type. Use one of: {allowed}")


class BedService:
    """Bed inventory, patient reservations and admin admission flow.

    A booking touches two records (the bed and the booking). Each step is a
    compare-and-set on the expected status; when the second write fails the
    first one is rolled back.
    """

    def __init__(self, store: Store, clock: Callable[[], dt.datetime] = utcnow) -> None:
        self.store = store
        self._clock = clock

    # ---------------------- Views ----------------------

    async def availability(self) -> list[WardSummary]:
        return summarize_wards(await self.store.beds.find_many())

    async def available_beds(self, ward_type: str) -> list[Bed]:
        return await self.store.beds.find_many(
            ward_type=parse_ward_type(ward_type), status=BedStatus.AVAILABLE
        )

    async def my_bookings(self, actor: Actor) -> list[BedBooking]:
        return await self.store.bed_bookings.list_for_patient(actor.id)

    async def _get_booking(self, booking_id: str) -> BedBooking:
        booking = await self.store.bed_bookings.get(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    async def _get_bed(self, bed_id: str) -> Bed:
        bed = await self.store.beds.get(bed_id)
        if not bed:
            raise NotFoundError("Bed not found")
        return bed

    async def _stored_status_conflict(self, booking_id: str, action: str) -> ConflictError:
        current = await self.store.bed_bookings.get(booking_id)
        status = current.status.value if current else "unknown"
        return ConflictError(f"Cannot {action} bed booking, current status is {status}")

    # ---------------------- Patient flow ----------------------

    async def book_bed(
        self,
        actor: Actor,
        *,
        bed_id: str,
        admission_date: str | dt.date,
        expected_discharge: str | dt.date,
        reason: str,
        emergency_contact: Optional[EmergencyContact] = None,
    ) -> BedBooking:
        """Reserve an Available bed for the calling patient."""
        if actor.role != Role.PATIENT:
            raise ForbiddenError("Only patients can book beds")
        if not bed_id or not admission_date or not expected_discharge or not (reason or "").strip():
            raise InvalidInputError("Please provide all required fields")
        if len(reason) > MAX_REASON_LENGTH:
            raise InvalidInputError(f"Reason cannot exceed {MAX_REASON_LENGTH} characters")
        admission = parse_calendar_date(admission_date)
        discharge = parse_calendar_date(expected_discharge)

        bed = await self._get_bed(bed_id)
        if bed.status != BedStatus.AVAILABLE:
            raise ConflictError(BED_TAKEN)
        if await self.store.bed_bookings.find_active_for_patient(actor.id):
            raise ConflictError(ACTIVE_BOOKING)
        amount = total_amount(admission, discharge, bed.price_per_day)

        BED_MACHINE.ensure(bed.status, BedStatus.RESERVED, actor.role, "reserve")
        now = self._clock()
        snapshot = BedBookingSnapshot(
            patient_id=actor.id,
            admission_date=admission,
            expected_discharge=discharge,
            reason=reason.strip(),
            emergency_contact=emergency_contact.phone if emergency_contact else None,
            booked_at=now,
        )
        claimed = await self.store.beds.compare_and_set(
            bed.id, BedStatus.AVAILABLE, {"status": BedStatus.RESERVED, "booking": snapshot}
        )
        if claimed is None:
            logger.warning(f"Bed {bed.bed_number} claimed concurrently, patient {actor.id} lost")
            raise ConflictError(BED_TAKEN)

        booking = BedBooking(
            bed_id=bed.id,
            patient_id=actor.id,
            ward_type=bed.ward_type,
            bed_number=bed.bed_number,
            admission_date=admission,
            expected_discharge=discharge,
            reason=reason.strip(),
            emergency_contact=emergency_contact,
            status=BedBookingStatus.CONFIRMED,
            total_amount=amount,
            created_at=now,
        )
        try:
            booking = await self.store.bed_bookings.insert(booking)
        except DuplicateRecordError:
            await self._undo_claim(bed.id)
            logger.warning(f"Patient {actor.id} already holds an active bed booking")
            raise ConflictError(ACTIVE_BOOKING)
        except Exception:
            await self._undo_claim(bed.id)
            raise

        logger.info(
            f"Bed {bed.ward_type.value}/{bed.bed_number} reserved: booking={booking.id} "
            f"patient={actor.id} amount={amount}"
        )
        return booking

    async def _release(self, bed_id: str, expected: BedStatus) -> Optional[Bed]:
        """Put a bed back to Available. None when the bed is no longer ``expected``."""
        return await self.store.beds.compare_and_set(bed_id, expected, dict(_FREE_BED))

    async def _undo_claim(self, bed_id: str) -> None:
        try:
            released = await self._release(bed_id, BedStatus.RESERVED)
        except Exception:
            logger.exception(f"Failed to release bed {bed_id} after a failed booking")
            return
        if released is None:
            logger.error(f"Bed {bed_id} was no longer Reserved when undoing a failed booking")

    async def _revert_booking(
        self, booking_id: str, current: BedBookingStatus, changes: dict
    ) -> None:
        reverted = await self.store.bed_bookings.compare_and_set(booking_id, current, changes)
        if reverted is None:
            logger.error(f"Bed booking {booking_id} left {current.value}, rollback skipped")

    async def cancel_booking(self, actor: Actor, booking_id: str) -> BedBooking:
        booking = await self._get_booking(booking_id)
        if booking.patient_id != actor.id:
            raise ForbiddenError("Not authorized to cancel this booking")
        if booking.status == BedBookingStatus.ADMITTED:
            raise ConflictError("Cannot cancel after admission")
        BED_BOOKING_MACHINE.ensure(booking.status, BedBookingStatus.CANCELLED, actor.role, "cancel")

        cancelled = await self.store.bed_bookings.compare_and_set(
            booking.id, BedBookingStatus.CONFIRMED, {"status": BedBookingStatus.CANCELLED}
        )
        if cancelled is None:
            raise await self._stored_status_conflict(booking.id, "cancel")
        restore = {"status": BedBookingStatus.CONFIRMED}
        try:
            released = await self._release(booking.bed_id, BedStatus.RESERVED)
        except Exception:
            await self._revert_booking(booking.id, BedBookingStatus.CANCELLED, restore)
            raise
        if released is None:
            # an admission took the bed first; the booking stays with it
            await self._revert_booking(booking.id, BedBookingStatus.CANCELLED, restore)
            logger.warning(f"Cancel of bed booking {booking.id} lost to an admission")
            raise ConflictError(
                f"Cannot cancel bed booking, bed {booking.bed_number} is no longer reserved"
            )
        logger.info(f"Bed booking {booking.id} cancelled by patient {actor.id}")
        return cancelled

    # ---------------------- Admin flow ----------------------

    async def admit(self, actor: Actor, booking_id: str) -> BedBooking:
        """Confirmed -> Admitted; the reserved bed becomes Occupied."""
        booking = await self._get_booking(booking_id)
        BED_BOOKING_MACHINE.ensure(booking.status, BedBookingStatus.ADMITTED, actor.role, "admit")
        BED_MACHINE.ensure(BedStatus.RESERVED, BedStatus.OCCUPIED, actor.role, "occupy")

        occupied = await self.store.beds.compare_and_set(
            booking.bed_id,
            BedStatus.RESERVED,
            {"status": BedStatus.OCCUPIED, "current_patient_id": booking.patient_id},
        )
        if occupied is None:
            raise ConflictError(f"Bed {booking.bed_number} is not reserved for this booking")
        admitted = await self.store.bed_bookings.compare_and_set(
            booking.id, BedBookingStatus.CONFIRMED, {"status": BedBookingStatus.ADMITTED}
        )
        if admitted is None:
            # A cancel that finds the bed Occupied rolls its booking back to
            # Confirmed, so the bed goes back to Reserved. A cancel still in
            # flight frees it from there.
            restored = await self.store.beds.compare_and_set(
                booking.bed_id,
                BedStatus.OCCUPIED,
                {"status": BedStatus.RESERVED, "current_patient_id": None},
            )
            if restored is None:
                logger.error(f"Bed {booking.bed_id} left Occupied before the admit rollback")
            raise await self._stored_status_conflict(booking.id, "admit")
        logger.info(f"Bed booking {booking.id} admitted to bed {booking.bed_number} by {actor.id}")
        return admitted

    async def discharge(
        self, actor: Actor, booking_id: str, discharge_date: str | dt.date | None = None
    ) -> BedBooking:
        """Admitted -> Discharged; the bed is freed."""
        booking = await self._get_booking(booking_id)
        BED_BOOKING_MACHINE.ensure(
            booking.status, BedBookingStatus.DISCHARGED, actor.role, "discharge"
        )
        actual = (
            parse_calendar_date(discharge_date)
            if discharge_date
            else self._clock().astimezone().date()
        )
        if actual < booking.admission_date:
            raise InvalidInputError("Discharge date cannot be before admission date")

        discharged = await self.store.bed_bookings.compare_and_set(
            booking.id,
            BedBookingStatus.ADMITTED,
            {"status": BedBookingStatus.DISCHARGED, "actual_discharge": actual},
        )
        if discharged is None:
            raise await self._stored_status_conflict(booking.id, "discharge")
        restore = {"status": BedBookingStatus.ADMITTED, "actual_discharge": None}
        try:
            released = await self._release(booking.bed_id, BedStatus.OCCUPIED)
        except Exception:
            await self._revert_booking(booking.id, BedBookingStatus.DISCHARGED, restore)
            raise
        if released is None:
            await self._revert_booking(booking.id, BedBookingStatus.DISCHARGED, restore)
            raise ConflictError(f"Cannot discharge, bed {booking.bed_number} is not occupied")
        logger.info(f"Bed booking {booking.id} discharged on {actual} by {actor.id}")
        return discharged

    async def set_maintenance(self, actor: Actor, bed_id: str, maintenance: bool) -> Bed:
        bed = await self._get_bed(bed_id)
        target = BedStatus.MAINTENANCE if maintenance else BedStatus.AVAILABLE
        action = "take out of service" if maintenance else "return to service"
        BED_MACHINE.ensure(bed.status, target, actor.role, action)
        updated = await self.store.beds.compare_and_set(bed.id, bed.status, {"status": target})
        if updated is None:
            current = await self.store.beds.get(bed.id)
            status = current.status.value if current else "unknown"
            raise ConflictError(f"Cannot {action} bed, current status is {status}")
        logger.info(f"Bed {bed.ward_type.value}/{bed.bed_number}: {bed.status.value} -> {target.value}")
        return updated
