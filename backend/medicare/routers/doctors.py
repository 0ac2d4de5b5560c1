from typing import Optional

from fastapi import APIRouter, Depends, Query

from medicare.deps import get_store
from medicare.repositories import Store
from medicare.schemas import DoctorOut, Envelope, ListEnvelope
from medicare.services.doctor_service import DoctorService
from medicare.utils.responses import ok

router = APIRouter(prefix="/api/doctors", tags=["doctors"])


def _out(doctor) -> DoctorOut:
    return DoctorOut.model_validate(doctor, from_attributes=True)


@router.get("", response_model=ListEnvelope[DoctorOut])
async def route_list_doctors(
    specialization: Optional[str] = None,
    search: Optional[str] = None,
    min_experience: Optional[int] = Query(None, alias="minExperience"),
    max_fees: Optional[int] = Query(None, alias="maxFees"),
    store: Store = Depends(get_store),
):
    """Active doctors, best rated and most experienced first."""
    doctors = await DoctorService(store).list_doctors(
        specialization=specialization,
        search=search,
        min_experience=min_experience,
        max_fees=max_fees,
    )
    return ok([_out(d) for d in doctors], count=len(doctors))


# Must be declared before "/{doctor_id}"
@router.get("/specializations", response_model=Envelope[list[str]])
async def route_specializations(store: Store = Depends(get_store)):
    return ok(await DoctorService(store).specializations())


@router.get("/{doctor_id}", response_model=Envelope[DoctorOut])
async def route_get_doctor(doctor_id: str, store: Store = Depends(get_store)):
    return ok(_out(await DoctorService(store).get_doctor(doctor_id)))
