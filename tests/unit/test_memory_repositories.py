import asyncio
import datetime as dt

import pytest

from medicare.constants import AppointmentStatus, BedBookingStatus, WardType
from medicare.domain.entities import Appointment, Bed, BedBooking, Doctor, Review, User
from medicare.exceptions import DuplicateRecordError
from medicare.repositories import Store

DAY = dt.date(2025, 1, 6)


def appointment(status: AppointmentStatus = AppointmentStatus.PENDING, slot: str = "09:00 AM") -> Appointment:
    return Appointment(
        patient_id="p1", doctor_id="d1", date=DAY, time_slot=slot, reason="checkup", status=status
    )


class TestAppointments:
    @pytest.mark.asyncio
    async def test_second_holder_of_a_slot_is_rejected(self, store: Store) -> None:
        await store.appointments.insert(appointment())
        with pytest.raises(DuplicateRecordError):
            await store.appointments.insert(appointment(AppointmentStatus.CONFIRMED))

    @pytest.mark.asyncio
    async def test_released_slot_can_be_rebooked(self, store: Store) -> None:
        first = await store.appointments.insert(appointment())
        await store.appointments.compare_and_set(
            first.id, AppointmentStatus.PENDING, {"status": AppointmentStatus.CANCELLED}
        )
        second = await store.appointments.insert(appointment())
        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_compare_and_set_needs_expected_status(self, store: Store) -> None:
        saved = await store.appointments.insert(appointment())
        assert await store.appointments.compare_and_set(
            saved.id, AppointmentStatus.CONFIRMED, {"status": AppointmentStatus.COMPLETED}
        ) is None
        updated = await store.appointments.compare_and_set(
            saved.id, AppointmentStatus.PENDING, {"status": AppointmentStatus.CONFIRMED}
        )
        assert updated.status == AppointmentStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_concurrent_compare_and_set_has_one_winner(self, store: Store) -> None:
        saved = await store.appointments.insert(appointment())
        results = await asyncio.gather(
            *(
                store.appointments.compare_and_set(
                    saved.id, AppointmentStatus.PENDING, {"status": target}
                )
                for target in (AppointmentStatus.CONFIRMED, AppointmentStatus.REJECTED)
            )
        )
        assert sum(r is not None for r in results) == 1

    @pytest.mark.asyncio
    async def test_booked_slots_skip_cancelled_only(self, store: Store) -> None:
        await store.appointments.insert(appointment(AppointmentStatus.REJECTED, "09:00 AM"))
        await store.appointments.insert(appointment(AppointmentStatus.CANCELLED, "09:30 AM"))
        await store.appointments.insert(appointment(AppointmentStatus.PENDING, "10:00 AM"))
        assert sorted(await store.appointments.booked_slots("d1", DAY)) == ["09:00 AM", "10:00 AM"]

    @pytest.mark.asyncio
    async def test_returned_rows_are_copies(self, store: Store) -> None:
        saved = await store.appointments.insert(appointment())
        fetched = await store.appointments.get(saved.id)
        fetched.reason = "changed"
        assert (await store.appointments.get(saved.id)).reason == "checkup"


class TestBedBookings:
    def booking(self, status: BedBookingStatus = BedBookingStatus.CONFIRMED) -> BedBooking:
        return BedBooking(
            bed_id="b1",
            patient_id="p1",
            ward_type=WardType.GENERAL,
            bed_number="GW-101",
            admission_date=DAY,
            expected_discharge=DAY,
            reason="surgery",
            status=status,
        )

    @pytest.mark.asyncio
    async def test_one_active_booking_per_patient(self, store: Store) -> None:
        await store.bed_bookings.insert(self.booking())
        with pytest.raises(DuplicateRecordError):
            await store.bed_bookings.insert(self.booking())

    @pytest.mark.asyncio
    async def test_finished_bookings_do_not_count(self, store: Store) -> None:
        await store.bed_bookings.insert(self.booking(BedBookingStatus.DISCHARGED))
        await store.bed_bookings.insert(self.booking(BedBookingStatus.CANCELLED))
        assert await store.bed_bookings.find_active_for_patient("p1") is None
        await store.bed_bookings.insert(self.booking())
        assert len(await store.bed_bookings.list_for_patient("p1")) == 3


class TestOtherTables:
    @pytest.mark.asyncio
    async def test_user_email_is_unique(self, store: Store) -> None:
        await store.users.insert(User(name="A", email="a@x.test"))
        with pytest.raises(DuplicateRecordError):
            await store.users.insert(User(name="B", email="a@x.test"))
        assert (await store.users.get_by_email("A@X.TEST")).name == "A"

    @pytest.mark.asyncio
    async def test_bed_number_unique_per_ward(self, store: Store) -> None:
        await store.beds.insert(Bed(bed_number="1", ward_type=WardType.ICU))
        await store.beds.insert(Bed(bed_number="1", ward_type=WardType.GENERAL))
        with pytest.raises(DuplicateRecordError):
            await store.beds.insert(Bed(bed_number="1", ward_type=WardType.ICU))

    @pytest.mark.asyncio
    async def test_one_review_per_appointment(self, store: Store) -> None:
        review = Review(doctor_id="d1", patient_id="p1", appointment_id="a1", rating=5, comment="ok")
        await store.reviews.insert(review)
        with pytest.raises(DuplicateRecordError):
            await store.reviews.insert(review)

    @pytest.mark.asyncio
    async def test_doctor_search(self, store: Store) -> None:
        await store.doctors.insert(
            Doctor(name="Ann", specialization="Cardiology", hospital="City", experience=5, fees=500, rating=4.5)
        )
        await store.doctors.insert(
            Doctor(name="Bob", specialization="Cardiology", hospital="Metro", experience=20, fees=900, rating=4.5)
        )
        await store.doctors.insert(
            Doctor(name="Cid", specialization="Neurology", hospital="City", experience=8, fees=700, is_active=False)
        )
        ranked = await store.doctors.search(specialization="Cardiology")
        assert [d.name for d in ranked] == ["Bob", "Ann"]
        assert [d.name for d in await store.doctors.search(search="city")] == ["Ann"]
        assert [d.name for d in await store.doctors.search(max_fees=600)] == ["Ann"]
        assert [d.name for d in await store.doctors.search(min_experience=10)] == ["Bob"]
        assert await store.doctors.specializations() == ["Cardiology"]
