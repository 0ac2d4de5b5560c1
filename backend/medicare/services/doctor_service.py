from typing import Optional

from medicare.domain.entities import Doctor
from medicare.exceptions import InvalidInputError, NotFoundError
from medicare.repositories import Store


class DoctorService:
    """Public doctor directory."""

    def __init__(self, store: Store) -> None:
        self.store = store

    async def list_doctors(
        self,
        *,
        specialization: Optional[str] = None,
        search: Optional[str] = None,
        min_experience: Optional[int] = None,
        max_fees: Optional[int] = None,
    ) -> list[Doctor]:
        if min_experience is not None and min_experience < 0:
            raise InvalidInputError("minExperience cannot be negative")
        if max_fees is not None and max_fees < 0:
            raise InvalidInputError("maxFees cannot be negative")
        if specialization == "All":
            specialization = None
        return await self.store.doctors.search(
            specialization=specialization or None,
            search=(search or "").strip() or None,
            min_experience=min_experience,
            max_fees=max_fees,
        )

    async def get_doctor(self, doctor_id: str) -> Doctor:
        doctor = await self.store.doctors.get(doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")
        return doctor

    async def specializations(self) -> list[str]:
        return await self.store.doctors.specializations()
