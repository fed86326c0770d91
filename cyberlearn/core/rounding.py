"""Deterministic decimal rounding used for scores and completion percentages."""

from decimal import ROUND_HALF_UP, Decimal


TWO_PLACES = Decimal("0.01")


def round_half_up(value: Decimal, places: Decimal = TWO_PLACES) -> Decimal:
    """Round half away from zero (never banker's rounding)."""
    return value.quantize(places, rounding=ROUND_HALF_UP)


def percentage_of(part: int, whole: int) -> Decimal:
    """``part / whole`` as a 0-100 percentage with two decimals; 0 when whole is 0."""
    if whole <= 0:
        return Decimal("0.00")
    return round_half_up(Decimal(100) * Decimal(part) / Decimal(whole))


def round_to_int(value: Decimal) -> int:
    """Round half up to an integer."""
    return int(round_half_up(value, Decimal(1)))
