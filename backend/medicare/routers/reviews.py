from fastapi import APIRouter, Depends

from medicare.constants import Role
from medicare.deps import get_store
from medicare.domain.entities import Actor
from medicare.repositories import Store
from medicare.schemas import Envelope, ListEnvelope, ReviewCreate, ReviewOut
from medicare.security import require_roles
from medicare.services.review_service import ReviewService
from medicare.utils.responses import ok

router = APIRouter(prefix="/api/reviews", tags=["reviews"])


@router.post("", status_code=201, response_model=Envelope[ReviewOut])
async def route_create_review(
    payload: ReviewCreate,
    actor: Actor = Depends(require_roles([Role.PATIENT])),
    store: Store = Depends(get_store),
):
    review = await ReviewService(store).create_review(
        actor,
        rating=payload.rating,
        comment=payload.comment,
        doctor_id=payload.doctor_id,
        appointment_id=payload.appointment_id,
    )
    return ok(review, message="Review submitted successfully")


@router.get("/{doctor_id}", response_model=ListEnvelope[ReviewOut])
async def route_doctor_reviews(doctor_id: str, store: Store = Depends(get_store)):
    reviews = await ReviewService(store).list_doctor_reviews(doctor_id)
    return ok(reviews, count=len(reviews))
