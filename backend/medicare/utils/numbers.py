import math


def round_half_up(value: float, ndigits: int = 0) -> float | int:
    """Round halves away from zero for positives (2.5 -> 3, 4.25 -> 4.3).

    The builtin ``round`` rounds halves to even, which would turn an average
    rating of 4.25 into 4.2.
    """
    factor = 10 ** ndigits
    rounded = math.floor(value * factor + 0.5) / factor
    if ndigits == 0:
        return int(rounded)
    return rounded
