"""
Estimate rollup: category totals, subtotal, markup and grand total.

The same rollup feeds the cost-breakdown chart, the summary card and the
live total shown in the version timeline, so all three always agree.
"""

from typing import Any, Dict, List, Tuple

from estimator.config import CATEGORY_ORDER
from estimator.models.estimate import ChartSlice, EstimateSummary
from estimator.services.color_resolver import resolve_category_color
from estimator.services.costing_engine import CostingEngine
from estimator.services.numeric import finite_or_zero, to_number


def markup_percent(estimate: Any) -> float:
    """Bid markup as a plain number: 10, "10", "10%" all give 10.0."""
    return to_number(getattr(estimate, "markup_percent", None))


def aggregate(estimate: Any, constants: Any) -> EstimateSummary:
    """
    Roll every line item of ``estimate`` up into an EstimateSummary.

    One slice is emitted per category with a non-zero total, in the
    canonical category order. The subtotal is the sum of the same category
    totals the slices carry, so the slices always add up to it exactly.
    """
    engine = CostingEngine(constants)

    category_totals: Dict[str, float] = {}
    slices: List[ChartSlice] = []
    sub_total = 0.0

    for category in CATEGORY_ORDER:
        total = finite_or_zero(engine.category_total(estimate, category))
        category_totals[category] = total
        if total == 0:
            continue
        sub_total += total
        slices.append(ChartSlice(
            category_id=category,
            label=category,
            value=total,
            color=resolve_category_color(category, constants),
        ))

    pct = markup_percent(estimate)
    markup_amount = finite_or_zero(sub_total * pct / 100)
    grand_total = sub_total + markup_amount

    return EstimateSummary(
        slices=slices,
        category_totals=category_totals,
        sub_total=sub_total,
        markup_percent=pct,
        markup_amount=markup_amount,
        grand_total=grand_total,
    )


def ordered_categories(summary: EstimateSummary) -> List[Tuple[str, float]]:
    """Categories with their totals, largest first; ties keep canonical order."""
    return sorted(
        summary.category_totals.items(),
        key=lambda kv: (-kv[1], CATEGORY_ORDER.index(kv[0]) if kv[0] in CATEGORY_ORDER else len(CATEGORY_ORDER)),
    )


def slice_shares(summary: EstimateSummary) -> List[Dict[str, Any]]:
    """
    Legend rows for the breakdown chart.

    ``percent`` is the slice's share of the subtotal rounded to one decimal
    place (0 when the subtotal is 0); ``marked_up_value`` is the slice value
    with the estimate's markup applied.
    """
    rows: List[Dict[str, Any]] = []
    for s in summary.slices:
        percent = round(s.value / summary.sub_total * 100, 1) if summary.sub_total > 0 else 0.0
        rows.append({
            "category_id": s.category_id,
            "label": s.label,
            "color": s.color,
            "value": s.value,
            "percent": percent,
            "marked_up_value": s.value * (1 + summary.markup_percent / 100),
        })
    return rows
