import datetime as dt
import re
from typing import Iterable

from medicare.constants import WEEKDAYS
from medicare.domain.entities import Doctor, SlotAvailability
from medicare.exceptions import InvalidInputError

_DATE_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:$|[T ])")


def parse_calendar_date(value: str | dt.date) -> dt.date:
    """Parse ``YYYY-MM-DD`` into a calendar date.

    Only the date part is read. A trailing time or offset is ignored rather
    than converted, so "2025-01-01T00:00:00+05:30" is still January 1st.
    """
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    match = _DATE_PREFIX.match((value or "").strip())
    if not match:
        raise InvalidInputError("Invalid date format. Use YYYY-MM-DD")
    year, month, day = (int(part) for part in match.groups())
    try:
        return dt.date(year, month, day)
    except ValueError:
        raise InvalidInputError(f"Invalid calendar date: {value}")


def weekday_short(day: dt.date) -> str:
    return WEEKDAYS[day.weekday()]


def ensure_doctor_works_on(doctor: Doctor, day: dt.date) -> None:
    weekday = weekday_short(day)
    if weekday not in doctor.availability.days:
        raise InvalidInputError(
            f"Dr. {doctor.name} is not available on {weekday}. "
            f"Available days: {', '.join(doctor.availability.days)}"
        )


def ensure_known_slot(doctor: Doctor, time_slot: str) -> None:
    if time_slot not in doctor.availability.slots:
        raise InvalidInputError(
            f"{time_slot} is not one of Dr. {doctor.name}'s slots"
        )


def split_slots(all_slots: list[str], booked: Iterable[str]) -> SlotAvailability:
    """Partition a doctor's slots into booked and available.

    ``booked_slots`` keeps first-seen order without repeats; ``available_slots``
    keeps the order of ``all_slots``.
    """
    booked_slots = list(dict.fromkeys(booked))
    taken = set(booked_slots)
    return SlotAvailability(
        all_slots=list(all_slots),
        booked_slots=booked_slots,
        available_slots=[slot for slot in all_slots if slot not in taken],
    )
