import asyncio
import datetime as dt

import pytest

from medicare.constants import BedBookingStatus, BedStatus, Role
from medicare.domain.entities import Actor, Bed, BedBooking, EmergencyContact
from medicare.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from medicare.repositories import Store
from medicare.services.bed_service import BedService


async def reserve(service: BedService, actor: Actor, bed: Bed) -> BedBooking:
    return await service.book_bed(
        actor,
        bed_id=bed.id,
        admission_date="2025-01-01",
        expected_discharge="2025-01-04",
        reason="Knee surgery",
        emergency_contact=EmergencyContact(name="Sara", phone="07700000000", relation="sister"),
    )


class TestBookBed:
    @pytest.mark.asyncio
    async def test_reserves_bed_and_prices_stay(
        self, store: Store, bed_service: BedService, bed: Bed, patient: Actor
    ) -> None:
        booking = await reserve(bed_service, patient, bed)

        assert booking.status == BedBookingStatus.CONFIRMED
        assert booking.total_amount == 4500
        assert booking.bed_number == "GW-101"
        stored = await store.beds.get(bed.id)
        assert stored.status == BedStatus.RESERVED
        assert stored.booking.patient_id == patient.id
        assert stored.booking.emergency_contact == "07700000000"

    @pytest.mark.asyncio
    async def test_bed_not_available(
        self, bed_service: BedService, bed: Bed, patient: Actor, other_patient: Actor
    ) -> None:
        await reserve(bed_service, patient, bed)
        with pytest.raises(ConflictError, match="This bed is no longer available"):
            await reserve(bed_service, other_patient, bed)

    @pytest.mark.asyncio
    async def test_one_active_booking_per_patient(
        self, store: Store, bed_service: BedService, bed: Bed, patient: Actor
    ) -> None:
        second_bed = await store.beds.insert(Bed(bed_number="GW-102"))
        await reserve(bed_service, patient, bed)
        with pytest.raises(ConflictError, match="You already have an active bed booking"):
            await reserve(bed_service, patient, second_bed)
        assert (await store.beds.get(second_bed.id)).status == BedStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_unknown_bed(self, bed_service: BedService, patient: Actor) -> None:
        with pytest.raises(NotFoundError):
            await bed_service.book_bed(
                patient,
                bed_id="missing",
                admission_date="2025-01-01",
                expected_discharge="2025-01-02",
                reason="x",
            )

    @pytest.mark.asyncio
    async def test_missing_fields(self, bed_service: BedService, bed: Bed, patient: Actor) -> None:
        with pytest.raises(InvalidInputError, match="Please provide all required fields"):
            await bed_service.book_bed(
                patient, bed_id=bed.id, admission_date="2025-01-01", expected_discharge="", reason="x"
            )

    @pytest.mark.asyncio
    async def test_discharge_before_admission(
        self, store: Store, bed_service: BedService, bed: Bed, patient: Actor
    ) -> None:
        with pytest.raises(InvalidInputError):
            await bed_service.book_bed(
                patient,
                bed_id=bed.id,
                admission_date="2025-01-04",
                expected_discharge="2025-01-01",
                reason="x",
            )
        assert (await store.beds.get(bed.id)).status == BedStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_concurrent_bookings_single_winner(
        self, bed_service: BedService, bed: Bed
    ) -> None:
        actors = [Actor(id=f"patient-{i}", role=Role.PATIENT) for i in range(6)]
        results = await asyncio.gather(
            *(reserve(bed_service, actor, bed) for actor in actors), return_exceptions=True
        )
        assert sum(isinstance(r, BedBooking) for r in results) == 1
        assert sum(isinstance(r, ConflictError) for r in results) == 5

    @pytest.mark.asyncio
    async def test_lost_claim_race_is_a_conflict(
        self,
        store: Store,
        bed_service: BedService,
        bed: Bed,
        patient: Actor,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        stale = await store.beds.get(bed.id)
        await store.beds.compare_and_set(bed.id, BedStatus.AVAILABLE, {"status": BedStatus.RESERVED})

        async def stale_get(bed_id: str) -> Bed:
            return stale

        monkeypatch.setattr(store.beds, "get", stale_get)
        with pytest.raises(ConflictError, match="This bed is no longer available"):
            await reserve(bed_service, patient, bed)
        assert await store.bed_bookings.list_for_patient(patient.id) == []

    @pytest.mark.asyncio
    async def test_failed_insert_releases_bed(
        self,
        store: Store,
        bed_service: BedService,
        bed: Bed,
        patient: Actor,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def broken_insert(booking: BedBooking) -> BedBooking:
            raise RuntimeError("write failed")

        monkeypatch.setattr(store.bed_bookings, "insert", broken_insert)
        with pytest.raises(RuntimeError):
            await reserve(bed_service, patient, bed)

        released = await store.beds.get(bed.id)
        assert released.status == BedStatus.AVAILABLE
        assert released.booking is None


class TestCancelBooking:
    @pytest.mark.asyncio
    async def test_cancel_frees_bed(
        self, store: Store, bed_service: BedService, bed: Bed, patient: Actor
    ) -> None:
        booking = await reserve(bed_service, patient, bed)
        cancelled = await bed_service.cancel_booking(patient, booking.id)

        assert cancelled.status == BedBookingStatus.CANCELLED
        freed = await store.beds.get(bed.id)
        assert freed.status == BedStatus.AVAILABLE
        assert freed.booking is None
        assert freed.current_patient_id is None
        # the patient may book again
        assert (await reserve(bed_service, patient, bed)).status == BedBookingStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_not_owner(
        self, bed_service: BedService, bed: Bed, patient: Actor, other_patient: Actor
    ) -> None:
        booking = await reserve(bed_service, patient, bed)
        with pytest.raises(ForbiddenError):
            await bed_service.cancel_booking(other_patient, booking.id)

    @pytest.mark.asyncio
    async def test_after_admission(
        self, bed_service: BedService, bed: Bed, patient: Actor, admin: Actor
    ) -> None:
        booking = await reserve(bed_service, patient, bed)
        await bed_service.admit(admin, booking.id)
        with pytest.raises(ConflictError, match="Cannot cancel after admission"):
            await bed_service.cancel_booking(patient, booking.id)

    @pytest.mark.asyncio
    async def test_twice(self, bed_service: BedService, bed: Bed, patient: Actor) -> None:
        booking = await reserve(bed_service, patient, bed)
        await bed_service.cancel_booking(patient, booking.id)
        with pytest.raises(ConflictError):
            await bed_service.cancel_booking(patient, booking.id)

    @pytest.mark.asyncio
    async def test_unknown_booking(self, bed_service: BedService, patient: Actor) -> None:
        with pytest.raises(NotFoundError):
            await bed_service.cancel_booking(patient, "missing")

    @pytest.mark.asyncio
    async def test_failed_release_keeps_booking(
        self,
        store: Store,
        bed_service: BedService,
        bed: Bed,
        patient: Actor,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        booking = await reserve(bed_service, patient, bed)

        async def broken_write(bed_id: str, expected: BedStatus, changes: dict) -> Bed:
            raise RuntimeError("write failed")

        monkeypatch.setattr(store.beds, "compare_and_set", broken_write)
        with pytest.raises(RuntimeError):
            await bed_service.cancel_booking(patient, booking.id)

        assert (await store.bed_bookings.get(booking.id)).status == BedBookingStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_admission_between_cancel_steps(
        self,
        store: Store,
        bed_service: BedService,
        bed: Bed,
        patient: Actor,
        admin: Actor,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        booking = await reserve(bed_service, patient, bed)
        write_bed = store.beds.compare_and_set
        admit_errors: list[Exception] = []

        async def confirmed_read(booking_id: str) -> BedBooking:
            # admit read the booking before the cancel landed
            return booking

        async def admit_before_release(bed_id: str, expected: BedStatus, changes: dict) -> Bed:
            releasing = expected == BedStatus.RESERVED and changes["status"] == BedStatus.AVAILABLE
            if releasing and not admit_errors:
                with monkeypatch.context() as m:
                    m.setattr(store.bed_bookings, "get", confirmed_read)
                    with pytest.raises(ConflictError, match="Cannot admit bed booking") as exc:
                        await bed_service.admit(admin, booking.id)
                admit_errors.append(exc.value)
                assert (await store.beds.get(bed_id)).status == BedStatus.RESERVED
            return await write_bed(bed_id, expected, changes)

        monkeypatch.setattr(store.beds, "compare_and_set", admit_before_release)
        cancelled = await bed_service.cancel_booking(patient, booking.id)

        assert admit_errors
        assert cancelled.status == BedBookingStatus.CANCELLED
        freed = await store.beds.get(bed.id)
        assert freed.status == BedStatus.AVAILABLE
        assert freed.booking is None
        assert freed.current_patient_id is None


class TestAdmission:
    @pytest.mark.asyncio
    async def test_admit_and_discharge(
        self, store: Store, bed_service: BedService, bed: Bed, patient: Actor, admin: Actor
    ) -> None:
        booking = await reserve(bed_service, patient, bed)

        admitted = await bed_service.admit(admin, booking.id)
        occupied = await store.beds.get(bed.id)
        assert admitted.status == BedBookingStatus.ADMITTED
        assert occupied.status == BedStatus.OCCUPIED
        assert occupied.current_patient_id == patient.id

        discharged = await bed_service.discharge(admin, booking.id, "2025-01-03")
        freed = await store.beds.get(bed.id)
        assert discharged.status == BedBookingStatus.DISCHARGED
        assert discharged.actual_discharge == dt.date(2025, 1, 3)
        assert freed.status == BedStatus.AVAILABLE
        assert freed.current_patient_id is None

    @pytest.mark.asyncio
    async def test_cancel_between_admit_steps(
        self,
        store: Store,
        bed_service: BedService,
        bed: Bed,
        patient: Actor,
        admin: Actor,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        booking = await reserve(bed_service, patient, bed)
        write_booking = store.bed_bookings.compare_and_set
        cancel_errors: list[Exception] = []

        async def cancel_before_admit(
            booking_id: str, expected: BedBookingStatus, changes: dict
        ) -> BedBooking:
            if changes["status"] == BedBookingStatus.ADMITTED and not cancel_errors:
                with pytest.raises(ConflictError, match="no longer reserved") as exc:
                    await bed_service.cancel_booking(patient, booking_id)
                cancel_errors.append(exc.value)
            return await write_booking(booking_id, expected, changes)

        monkeypatch.setattr(store.bed_bookings, "compare_and_set", cancel_before_admit)
        admitted = await bed_service.admit(admin, booking.id)

        assert cancel_errors
        assert admitted.status == BedBookingStatus.ADMITTED
        occupied = await store.beds.get(bed.id)
        assert occupied.status == BedStatus.OCCUPIED
        assert occupied.current_patient_id == patient.id

    @pytest.mark.asyncio
    async def test_failed_release_keeps_patient_admitted(
        self,
        store: Store,
        bed_service: BedService,
        bed: Bed,
        patient: Actor,
        admin: Actor,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        booking = await reserve(bed_service, patient, bed)
        await bed_service.admit(admin, booking.id)
        write_bed = store.beds.compare_and_set

        async def broken_release(bed_id: str, expected: BedStatus, changes: dict) -> Bed:
            if expected == BedStatus.OCCUPIED:
                raise RuntimeError("write failed")
            return await write_bed(bed_id, expected, changes)

        monkeypatch.setattr(store.beds, "compare_and_set", broken_release)
        with pytest.raises(RuntimeError):
            await bed_service.discharge(admin, booking.id, "2025-01-03")

        stored = await store.bed_bookings.get(booking.id)
        assert stored.status == BedBookingStatus.ADMITTED
        assert stored.actual_discharge is None
        assert (await store.beds.get(bed.id)).status == BedStatus.OCCUPIED

    @pytest.mark.asyncio
    async def test_patient_cannot_admit(
        self, bed_service: BedService, bed: Bed, patient: Actor
    ) -> None:
        booking = await reserve(bed_service, patient, bed)
        with pytest.raises(ForbiddenError):
            await bed_service.admit(patient, booking.id)

    @pytest.mark.asyncio
    async def test_discharge_requires_admission(
        self, bed_service: BedService, bed: Bed, patient: Actor, admin: Actor
    ) -> None:
        booking = await reserve(bed_service, patient, bed)
        with pytest.raises(ConflictError, match="current status is Confirmed"):
            await bed_service.discharge(admin, booking.id)

    @pytest.mark.asyncio
    async def test_discharge_defaults_to_today(
        self, bed_service: BedService, bed: Bed, patient: Actor, admin: Actor
    ) -> None:
        booking = await reserve(bed_service, patient, bed)
        await bed_service.admit(admin, booking.id)
        discharged = await bed_service.discharge(admin, booking.id)
        assert discharged.actual_discharge is not None

    @pytest.mark.asyncio
    async def test_discharge_before_admission_date(
        self, bed_service: BedService, bed: Bed, patient: Actor, admin: Actor
    ) -> None:
        booking = await reserve(bed_service, patient, bed)
        await bed_service.admit(admin, booking.id)
        with pytest.raises(InvalidInputError):
            await bed_service.discharge(admin, booking.id, "2024-12-31")


class TestMaintenance:
    @pytest.mark.asyncio
    async def test_toggle(self, bed_service: BedService, bed: Bed, admin: Actor) -> None:
        assert (await bed_service.set_maintenance(admin, bed.id, True)).status == BedStatus.MAINTENANCE
        assert (await bed_service.set_maintenance(admin, bed.id, False)).status == BedStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_reserved_bed_cannot_go_to_maintenance(
        self, bed_service: BedService, bed: Bed, patient: Actor, admin: Actor
    ) -> None:
        await reserve(bed_service, patient, bed)
        with pytest.raises(ConflictError, match="current status is Reserved"):
            await bed_service.set_maintenance(admin, bed.id, True)


class TestViews:
    @pytest.mark.asyncio
    async def test_availability_summary(self, bed_service: BedService, ward: list[Bed]) -> None:
        general, icu = await bed_service.availability()

        assert general.total == 3
        assert general.booked == 2
        assert general.occupancy_rate == pytest.approx(66.6667, rel=1e-4)
        assert icu.maintenance == 1
        assert icu.occupancy_rate == 0

    @pytest.mark.asyncio
    async def test_available_beds_by_ward(self, bed_service: BedService, ward: list[Bed]) -> None:
        beds = await bed_service.available_beds("General")
        assert [b.bed_number for b in beds] == ["GW-101"]
        with pytest.raises(InvalidInputError):
            await bed_service.available_beds("Rooftop")

    @pytest.mark.asyncio
    async def test_my_bookings_keep_history(
        self, store: Store, bed_service: BedService, bed: Bed, patient: Actor
    ) -> None:
        first = await reserve(bed_service, patient, bed)
        await bed_service.cancel_booking(patient, first.id)
        second = await reserve(bed_service, patient, bed)

        bookings = await bed_service.my_bookings(patient)
        assert {b.id for b in bookings} == {first.id, second.id}
