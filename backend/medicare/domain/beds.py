import datetime as dt
from collections import defaultdict
from typing import Iterable

from medicare.constants import BedStatus
from medicare.domain.entities import Bed, PriceRange, WardSummary
from medicare.utils.numbers import round_half_up
from medicare.exceptions import InvalidInputError


def stay_days(admission: dt.date, discharge: dt.date) -> int:
    """Calendar days billed for a stay; both ends are date-only values."""
    return (discharge - admission).days


def total_amount(admission: dt.date, discharge: dt.date, price_per_day: int) -> int:
    if discharge < admission:
        raise InvalidInputError("Expected discharge cannot be before admission date")
    return stay_days(admission, discharge) * price_per_day


def summarize_wards(beds: Iterable[Bed]) -> list[WardSummary]:
    """Per-ward counts, occupancy and price range, sorted by ward type."""
    grouped: dict[str, list[Bed]] = defaultdict(list)
    for bed in beds:
        grouped[bed.ward_type.value].append(bed)

    summaries = []
    for ward in sorted(grouped):
        ward_beds = grouped[ward]
        counts = {s: 0 for s in BedStatus}
        for bed in ward_beds:
            counts[bed.status] += 1
        total = len(ward_beds)
        booked = counts[BedStatus.OCCUPIED] + counts[BedStatus.RESERVED]
        prices = [bed.price_per_day for bed in ward_beds]
        summaries.append(
            WardSummary(
                ward_type=ward_beds[0].ward_type,
                total=total,
                available=counts[BedStatus.AVAILABLE],
                occupied=counts[BedStatus.OCCUPIED],
                reserved=counts[BedStatus.RESERVED],
                maintenance=counts[BedStatus.MAINTENANCE],
                booked=booked,
                occupancy_rate=occupancy_rate(booked, total),
                price_per_day=PriceRange(
                    min=min(prices),
                    max=max(prices),
                    avg=round_half_up(sum(prices) / len(prices)),
                ),
            )
        )
    return summaries


def occupancy_rate(booked: int, total: int) -> float:
    # empty ward reads as 0%
    return 100 * booked / max(total, 1)
