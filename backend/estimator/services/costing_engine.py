"""
CostingEngine: per-category line-item totals for construction bids.

Covers:
  - Labor (delegated to labor_engine)
  - Equipment rental by unit of measure (daily / weekly / monthly)
  - Material with sales tax and delivery
  - Disposal and haul-off
  - Overhead by day
  - Tools, subcontractor and miscellaneous lines (quantity x days x cost)

Every calculator is pure and total: malformed or missing numbers coerce to
0 (or to 1 for quantity/day counts that default), and no input raises.
"""

from typing import Any, Callable, Dict, Optional

from estimator.config import DEFAULT_EQUIPMENT_UOM, UOM_MONTHLY, UOM_WEEKLY
from estimator.services.labor_engine import calculate_labor_total
from estimator.services.numeric import finite_or_zero, to_count, to_number


# ---------------------------------------------------------------------------
# Equipment
# ---------------------------------------------------------------------------

def equipment_rate(item: Any) -> float:
    """
    Rate field selected by the item's UOM.

    Matching ignores case and surrounding whitespace. An unrecognised UOM
    bills at the daily cost.
    """
    uom = str(item.uom or DEFAULT_EQUIPMENT_UOM).strip().lower()
    if uom == UOM_WEEKLY.lower():
        return to_number(item.weekly_cost)
    if uom == UOM_MONTHLY.lower():
        return to_number(item.monthly_cost)
    return to_number(item.daily_cost)


def calculate_equipment_total(item: Any) -> float:
    """rate x quantity x times + fuel x quantity + delivery x quantity."""
    quantity = to_number(item.quantity)
    times = to_count(item.times)
    rate = equipment_rate(item)
    fuel = to_number(item.fuel_additive_cost)
    delivery = to_number(item.delivery_pickup)

    return finite_or_zero(rate * quantity * times + fuel * quantity + delivery * quantity)


# ---------------------------------------------------------------------------
# Material
# ---------------------------------------------------------------------------

def calculate_material_total(item: Any) -> float:
    """(quantity x cost) grossed up by the tax percent, plus one delivery charge."""
    quantity = to_number(item.quantity)
    cost = to_number(item.cost)
    taxes = to_number(item.taxes)
    delivery = to_number(item.delivery_pickup)

    subtotal = quantity * cost
    return finite_or_zero(subtotal * (1 + taxes / 100) + delivery)


# ---------------------------------------------------------------------------
# Disposal / Overhead / Tools, Subcontractor, Miscellaneous
# ---------------------------------------------------------------------------

def calculate_disposal_total(item: Any) -> float:
    """quantity x cost; disposal lines carry no day count."""
    return finite_or_zero(to_count(item.quantity) * to_number(item.cost))


def calculate_overhead_total(item: Any) -> float:
    """days x daily rate. Hours and hourly rate are informational only."""
    return finite_or_zero(to_count(item.days) * to_number(item.daily_rate))


def calculate_simple_total(item: Any) -> float:
    """quantity x days x cost, with missing quantity or days counted as 1."""
    quantity = to_count(item.quantity)
    days = to_count(getattr(item, "days", None))
    return finite_or_zero(quantity * days * to_number(item.cost))


_CALCULATORS: Dict[str, Callable[[Any], float]] = {
    "Equipment": calculate_equipment_total,
    "Material": calculate_material_total,
    "Tools": calculate_simple_total,
    "Overhead": calculate_overhead_total,
    "Subcontractor": calculate_simple_total,
    "Disposal": calculate_disposal_total,
    "Miscellaneous": calculate_simple_total,
}


def calculate_line_total(item: Any, estimate_fringe: Optional[str] = None, constants: Any = None) -> float:
    """Dispatch ``item`` to the calculator for its category."""
    if item.category == "Labor":
        return calculate_labor_total(item, estimate_fringe, constants)
    calculator = _CALCULATORS.get(item.category)
    if calculator is None:
        return 0.0
    return calculator(item)


# ---------------------------------------------------------------------------
# CostingEngine
# ---------------------------------------------------------------------------

class CostingEngine:
    """
    Binds the calculators to one constants table.

    The table is read on every call and never copied, so edits made through
    the settings routes are seen by the next calculation.
    """

    def __init__(self, constants: Optional[Any] = None) -> None:
        self.constants = constants if constants is not None else []

    def line_total(self, item: Any, estimate_fringe: Optional[str] = None) -> float:
        return calculate_line_total(item, estimate_fringe, self.constants)

    def category_total(self, estimate: Any, category: str) -> float:
        """Sum of every line item whose own category is ``category``, whatever key it is filed under."""
        return sum(
            (self.line_total(item, estimate.fringe)
             for item in estimate.iter_line_items() if item.category == category),
            0.0,
        )
