"""
services/booking/pricing.py
Luggage pricing. Pure function, no I/O; the booking flow calls it
so the stored price never depends on what the client sent.
"""

from dataclasses import dataclass

BASE_PRICE = 99
MEDIUM_LOAD_PRICE = 149
HEAVY_LOAD_PRICE = 199
LATE_NIGHT_CHARGE = 20
PRIORITY_CHARGE = 30


@dataclass(frozen=True)
class PriceBreakdown:
    base_price: int
    late_night_charge: int
    priority_charge: int
    total_price: int
    description: str


def _base_tier(bags: int, weight: float) -> tuple[int, str]:
    if bags >= 5 or weight > 40:
        return HEAVY_LOAD_PRICE, "5+ bags or >40 kg"
    if bags >= 3 or weight > 20:
        return MEDIUM_LOAD_PRICE, "3-4 bags, 21-40 kg"
    return BASE_PRICE, "1-2 bags, ≤20 kg"


def calculate_price(
    bags: int,
    weight: float,
    late_night: bool = False,
    priority: bool = False,
) -> PriceBreakdown:
    """
    Tiered base price plus optional surcharges.

    >>> calculate_price(2, 15).total_price
    99
    >>> calculate_price(5, 45, late_night=True, priority=True).total_price
    249
    """
    if bags < 1:
        raise ValueError("Number of bags must be at least 1")
    if weight <= 0:
        raise ValueError("Weight must be greater than 0")

    base_price, description = _base_tier(bags, weight)
    late_night_charge = LATE_NIGHT_CHARGE if late_night else 0
    priority_charge = PRIORITY_CHARGE if priority else 0

    return PriceBreakdown(
        base_price=base_price,
        late_night_charge=late_night_charge,
        priority_charge=priority_charge,
        total_price=base_price + late_night_charge + priority_charge,
        description=description,
    )
