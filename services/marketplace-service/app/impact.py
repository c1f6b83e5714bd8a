"""Impact estimates for the sustainability ledger.

The figures are coarse heuristics, not measurements: every unit sold counts
as the same amount of rescued food whatever the product is.
"""
import math
from typing import Iterable, List

from pydantic import BaseModel

WASTE_KG_PER_UNIT = 0.5
CARBON_KG_PER_WASTE_KG = 2.5
MONEY_SAVED_RATIO = 0.3
SCORE_POINTS_PER_WASTE_KG = 10
RECENT_ENTRIES_LIMIT = 30


class ImpactEstimate(BaseModel):
    waste_prevented: float = 0.0
    carbon_saved: float = 0.0

    def add_units(self, quantity: int) -> "ImpactEstimate":
        waste = quantity * WASTE_KG_PER_UNIT
        return ImpactEstimate(
            waste_prevented=self.waste_prevented + waste,
            carbon_saved=self.carbon_saved + waste * CARBON_KG_PER_WASTE_KG,
        )


class ImpactTotals(BaseModel):
    waste_prevented: float = 0.0
    carbon_saved: float = 0.0
    money_saved: float = 0.0
    orders_completed: int = 0
    group_orders_participated: int = 0


def estimate_for_quantities(quantities: Iterable[int]) -> ImpactEstimate:
    estimate = ImpactEstimate()
    for quantity in quantities:
        estimate = estimate.add_units(quantity)
    return estimate


def money_saved(total_amount: float) -> float:
    """Savings against retail, assumed to be 30% of what the buyer paid."""
    return total_amount * MONEY_SAVED_RATIO


def sustainability_points(waste_prevented: float) -> int:
    # Truncated, so fractional kilos never round up into a point
    return math.floor(waste_prevented * SCORE_POINTS_PER_WASTE_KG)


def summarize(entries: List[dict]) -> ImpactTotals:
    totals = ImpactTotals()
    for entry in entries:
        totals.waste_prevented += entry.get("waste_prevented", 0)
        totals.carbon_saved += entry.get("carbon_saved", 0)
        totals.money_saved += entry.get("money_saved", 0)
        totals.orders_completed += entry.get("orders_completed", 0)
        totals.group_orders_participated += entry.get("group_orders_participated", 0)
    return totals
