from typing import Optional

from medicare.constants import AppointmentStatus, Role
from medicare.domain.entities import Actor, Review
from medicare.domain.reviews import doctor_rating
from medicare.exceptions import (
    ConflictError,
    DuplicateRecordError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from medicare.repositories import Store
from medicare.utils.logger import get_logger

logger = get_logger("review_service")

ALREADY_REVIEWED = "You have already reviewed this appointment"


class ReviewService:
    def __init__(self, store: Store) -> None:
        self.store = store

    async def create_review(
        self,
        actor: Actor,
        *,
        rating: Optional[int],
        comment: Optional[str],
        doctor_id: Optional[str],
        appointment_id: Optional[str],
    ) -> Review:
        """Review a Completed appointment once, then refresh the doctor's rating."""
        if actor.role != Role.PATIENT:
            raise ForbiddenError("Only patients can write reviews")
        if rating is None or not (comment or "").strip() or not doctor_id or not appointment_id:
            raise InvalidInputError(
                "Please provide all fields: rating, comment, doctorId, appointmentId"
            )
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise InvalidInputError("Rating must be a whole number between 1 and 5")

        appointment = await self.store.appointments.get(appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found")
        if appointment.patient_id != actor.id:
            raise ForbiddenError("Not authorized to review this appointment")
        if appointment.status != AppointmentStatus.COMPLETED:
            raise ConflictError("You can only review completed appointments")
        if appointment.doctor_id != doctor_id:
            raise InvalidInputError("This appointment was not with the given doctor")
        if await self.store.reviews.get_by_appointment(appointment.id):
            raise ConflictError(ALREADY_REVIEWED)

        try:
            review = await self.store.reviews.insert(
                Review(
                    doctor_id=appointment.doctor_id,
                    patient_id=actor.id,
                    appointment_id=appointment.id,
                    rating=rating,
                    comment=comment.strip(),
                )
            )
        except DuplicateRecordError:
            raise ConflictError(ALREADY_REVIEWED)

        await self.refresh_doctor_rating(appointment.doctor_id)
        logger.info(f"Review {review.id} ({rating}/5) for doctor {appointment.doctor_id}")
        return review

    async def refresh_doctor_rating(self, doctor_id: str) -> tuple[float, int]:
        # recomputed from the whole collection, never incremented
        ratings = await self.store.reviews.ratings_for_doctor(doctor_id)
        rating, count = doctor_rating(ratings)
        await self.store.doctors.set_rating(doctor_id, rating, count)
        return rating, count

    async def list_doctor_reviews(self, doctor_id: str) -> list[Review]:
        if not await self.store.doctors.get(doctor_id):
            raise NotFoundError("Doctor not found")
        return await self.store.reviews.list_for_doctor(doctor_id)
