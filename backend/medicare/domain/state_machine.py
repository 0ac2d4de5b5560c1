"""Explicit status machines for appointments, beds and bed bookings.

A machine is a transition table ``(from, to) -> roles allowed to perform it``.
Guards that depend on payload or ownership stay in the services; the machine
only answers whether a status change is legal for an actor role.
"""

from enum import Enum
from typing import Generic, Iterable, Mapping, TypeVar

from medicare.constants import AppointmentStatus, BedBookingStatus, BedStatus, Role
from medicare.exceptions import ConflictError, ForbiddenError

S = TypeVar("S", bound=Enum)


class StatusMachine(Generic[S]):
    def __init__(
        self,
        entity: str,
        transitions: Mapping[tuple[S, S], Iterable[Role]],
    ) -> None:
        self.entity = entity
        self._table: dict[tuple[S, S], frozenset[Role]] = {
            edge: frozenset(roles) for edge, roles in transitions.items()
        }

    def can_transition(self, current: S, target: S, role: Role) -> bool:
        return role in self._table.get((current, target), frozenset())

    def ensure(self, current: S, target: S, role: Role, action: str) -> None:
        """Raise unless ``role`` may move the entity from ``current`` to ``target``.

        ``action`` is the verb used in the error message, e.g. "complete" gives
        "Cannot complete appointment, current status is Pending".
        """
        roles = self._table.get((current, target))
        if roles is None:
            raise ConflictError(
                f"Cannot {action} {self.entity}, current status is {current.value}"
            )
        if role not in roles:
            raise ForbiddenError(f"A {role.value} may not {action} this {self.entity}")


APPOINTMENT_MACHINE: StatusMachine[AppointmentStatus] = StatusMachine(
    "appointment",
    {
        (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED): [Role.DOCTOR],
        (AppointmentStatus.PENDING, AppointmentStatus.REJECTED): [Role.DOCTOR],
        (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED): [Role.DOCTOR],
        (AppointmentStatus.PENDING, AppointmentStatus.CANCELLED): [Role.PATIENT],
        (AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED): [Role.PATIENT],
        (AppointmentStatus.REJECTED, AppointmentStatus.CANCELLED): [Role.PATIENT],
    },
)

BED_MACHINE: StatusMachine[BedStatus] = StatusMachine(
    "bed",
    {
        (BedStatus.AVAILABLE, BedStatus.RESERVED): [Role.PATIENT],
        (BedStatus.RESERVED, BedStatus.AVAILABLE): [Role.PATIENT, Role.ADMIN],
        (BedStatus.RESERVED, BedStatus.OCCUPIED): [Role.ADMIN],
        (BedStatus.OCCUPIED, BedStatus.AVAILABLE): [Role.ADMIN],
        (BedStatus.AVAILABLE, BedStatus.MAINTENANCE): [Role.ADMIN],
        (BedStatus.MAINTENANCE, BedStatus.AVAILABLE): [Role.ADMIN],
    },
)

BED_BOOKING_MACHINE: StatusMachine[BedBookingStatus] = StatusMachine(
    "bed booking",
    {
        (BedBookingStatus.CONFIRMED, BedBookingStatus.CANCELLED): [Role.PATIENT],
        (BedBookingStatus.CONFIRMED, BedBookingStatus.ADMITTED): [Role.ADMIN],
        (BedBookingStatus.ADMITTED, BedBookingStatus.DISCHARGED): [Role.ADMIN],
    },
)


def can_transition(current: AppointmentStatus, target: AppointmentStatus, role: Role) -> bool:
    """Shorthand for the appointment machine, the one most callers need."""
    return APPOINTMENT_MACHINE.can_transition(current, target, role)
