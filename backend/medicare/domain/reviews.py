from typing import Sequence

from medicare.utils.numbers import round_half_up


def doctor_rating(ratings: Sequence[int]) -> tuple[float, int]:
    """Return ``(rating, num_reviews)`` for a doctor's review ratings.

    The rating is the mean rounded to one decimal; no reviews gives 0.
    """
    if not ratings:
        return 0.0, 0
    return round_half_up(sum(ratings) / len(ratings), 1), len(ratings)
