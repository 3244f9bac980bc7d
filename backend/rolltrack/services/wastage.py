"""Wastage arithmetic for a completed batch.

Pure functions only; the batch manager persists the result.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

_TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class WastageResult:
    wastage_quantity: float
    wastage_percentage: float


def _round2(value: Decimal) -> float:
    return float(value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))


def calculate_wastage(planned: float, accepted: float) -> WastageResult:
    """wastage = max(0, planned - accepted); percentage of planned, 0 if planned <= 0.

    Both figures are rounded half-up to 2 decimal places.  Decimal is built
    from ``str()`` so 0.125 rounds to 0.13 rather than to float noise.
    """
    planned_d = Decimal(str(planned))
    accepted_d = Decimal(str(accepted))

    wastage = max(Decimal("0"), planned_d - accepted_d)
    if planned_d > 0:
        percentage = wastage / planned_d * 100
    else:
        percentage = Decimal("0")

    return WastageResult(
        wastage_quantity=_round2(wastage),
        wastage_percentage=_round2(percentage),
    )
