"""
labor_engine.py: burdened labor cost for estimate line items.

A labor line bills three pools of hours (straight, overtime, double-time),
each at its own burdened rate:

    rate = pay + workers' comp on pay + payroll tax on pay + fringe

where ``pay`` is base pay for straight time, 1.5x base for overtime and 2x
base for double-time. The fringe amount is an hourly benefit rate looked up
by name in the constants table and is added unmultiplied to every pool.

Per-diem and hotel lines are flat allowances: base pay x quantity x days,
with no burden applied.
"""

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from estimator.config import (
    DT_MULTIPLIER,
    FLAT_RATE_SUB_CLASSIFICATIONS,
    OT_MULTIPLIER,
    STANDARD_HOURS_PER_DAY,
)
from estimator.services.fringe_resolver import effective_fringe_name, resolve_fringe_rate
from estimator.services.numeric import finite_or_zero, to_number


@dataclass
class LaborBreakdown:
    """Every intermediate amount of the labor formula, for the "explain this total" view."""
    flat_rate: bool = False
    total_hours: float = 0.0
    total_ot_hours: float = 0.0
    total_dt_hours: float = 0.0
    w_comp_tax: float = 0.0
    ot_w_comp_tax: float = 0.0
    dt_w_comp_tax: float = 0.0
    payroll_tax: float = 0.0
    ot_payroll_tax: float = 0.0
    dt_payroll_tax: float = 0.0
    fringe_name: Optional[str] = None
    fringe_amount: float = 0.0
    base_rate: float = 0.0
    ot_rate: float = 0.0
    dt_rate: float = 0.0
    total: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def is_flat_rate(sub_classification: Any) -> bool:
    return str(sub_classification or "").strip().lower() in FLAT_RATE_SUB_CLASSIFICATIONS


def labor_breakdown(item: Any, estimate_fringe: Optional[str], constants: Any) -> LaborBreakdown:
    """
    Run the labor formula on ``item`` and return every step.

    ``item`` is a LaborItem (or anything exposing the same attributes);
    ``estimate_fringe`` is the estimate-wide fringe used when the line has
    none of its own.
    """
    base_pay = to_number(item.base_pay)
    quantity = to_number(item.quantity)
    days = to_number(item.days)

    if is_flat_rate(item.sub_classification):
        return LaborBreakdown(
            flat_rate=True,
            total=finite_or_zero(base_pay * quantity * days),
        )

    ot_pd = to_number(item.ot_pd)
    dt_pd = to_number(item.dt_pd)
    w_comp_pct = to_number(item.w_comp_percent) / 100
    payroll_pct = to_number(item.payroll_taxes_percent) / 100

    # ── Hours ──
    total_hours = quantity * days * STANDARD_HOURS_PER_DAY
    total_ot_hours = quantity * days * ot_pd
    total_dt_hours = quantity * days * dt_pd

    # ── Burden on straight, OT and DT pay ──
    ot_pay = base_pay * OT_MULTIPLIER
    dt_pay = base_pay * DT_MULTIPLIER

    w_comp_tax = base_pay * w_comp_pct
    ot_w_comp_tax = ot_pay * w_comp_pct
    dt_w_comp_tax = dt_pay * w_comp_pct

    payroll_tax = base_pay * payroll_pct
    ot_payroll_tax = ot_pay * payroll_pct
    dt_payroll_tax = dt_pay * payroll_pct

    fringe_name = effective_fringe_name(item.fringe, estimate_fringe)
    fringe_amount = resolve_fringe_rate(fringe_name, constants)

    # ── Burdened rates ──
    base_rate = base_pay + w_comp_tax + payroll_tax + fringe_amount
    ot_rate = ot_pay + ot_w_comp_tax + ot_payroll_tax + fringe_amount
    dt_rate = dt_pay + dt_w_comp_tax + dt_payroll_tax + fringe_amount

    total = (
        total_hours * base_rate
        + total_ot_hours * ot_rate
        + total_dt_hours * dt_rate
    )
    if math.isnan(total):
        total = 0.0

    return LaborBreakdown(
        total_hours=total_hours,
        total_ot_hours=total_ot_hours,
        total_dt_hours=total_dt_hours,
        w_comp_tax=w_comp_tax,
        ot_w_comp_tax=ot_w_comp_tax,
        dt_w_comp_tax=dt_w_comp_tax,
        payroll_tax=payroll_tax,
        ot_payroll_tax=ot_payroll_tax,
        dt_payroll_tax=dt_payroll_tax,
        fringe_name=fringe_name,
        fringe_amount=fringe_amount,
        base_rate=base_rate,
        ot_rate=ot_rate,
        dt_rate=dt_rate,
        total=finite_or_zero(total),
    )


def calculate_labor_total(item: Any, estimate_fringe: Optional[str], constants: Any) -> float:
    """Burdened dollar total of one labor line item."""
    return labor_breakdown(item, estimate_fringe, constants).total
