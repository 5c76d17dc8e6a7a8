"""Estimate routes: header, rollup summary and line-item editing."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from estimator.api.deps import DOMAIN_ERRORS, get_constants, get_store, http_error
from estimator.config import CATEGORY_ORDER
from estimator.models.estimate import Estimate
from estimator.models.line_items import build_line_item
from estimator.services.costing_engine import CostingEngine
from estimator.services.edit_session import LineItemEditSession
from estimator.services.estimate_store import InMemoryEstimateStore
from estimator.services.formatting import format_currency, format_percent, normalize_markup
from estimator.services.labor_engine import labor_breakdown
from estimator.services.rollup_engine import aggregate, ordered_categories, slice_shares
from estimator.services.version_ledger import next_version_number, version_id

router = APIRouter(prefix="/api/estimates", tags=["Estimates"])
logger = logging.getLogger("estimator-api")

# Status toggled by the header card's confirm switch
_STATUS_TOGGLE = {"confirmed": "draft", "draft": "confirmed"}


# ─── Pydantic schemas ────────────────────────────────────────────────────────

class EstimateCreate(BaseModel):
    proposal_no: str = Field(..., min_length=1)
    customer_id: Optional[str] = None
    markup_percent: Optional[Union[float, str]] = 0.0
    fringe: Optional[str] = None
    status: str = "draft"
    date: Optional[datetime] = None


class EstimateHeaderUpdate(BaseModel):
    customer_id: Optional[str] = None
    markup_percent: Optional[Union[float, str]] = None
    fringe: Optional[str] = None
    status: Optional[str] = None
    date: Optional[datetime] = None


class LineItemCreate(BaseModel):
    category: str
    template: Dict[str, Any] = Field(default_factory=dict)


class LineItemFieldUpdate(BaseModel):
    field: str
    value: Any = None


# ─── Helpers ─────────────────────────────────────────────────────────────────

def _priced_items(estimate: Estimate, constants: List[Any]) -> Dict[str, List[Dict[str, Any]]]:
    engine = CostingEngine(constants)
    return {
        category: [
            {**item.model_dump(mode="json"), "total": engine.line_total(item, estimate.fringe)}
            for item in estimate.items(category)
        ]
        for category in CATEGORY_ORDER
    }


# ─── Estimates ───────────────────────────────────────────────────────────────

@router.get("")
async def list_estimates(
    store: InMemoryEstimateStore = Depends(get_store),
    constants: List[Any] = Depends(get_constants),
):
    rows = []
    for estimate in sorted(store.list_estimates(), key=lambda e: (e.proposal_no, e.version_number, e.id)):
        rows.append({
            "id": estimate.id,
            "proposal_no": estimate.proposal_no,
            "version_number": estimate.version_number,
            "is_change_order": estimate.is_change_order,
            "status": estimate.status,
            "grand_total": aggregate(estimate, constants).grand_total,
        })
    return rows


@router.post("", status_code=201)
async def create_estimate(body: EstimateCreate, store: InMemoryEstimateStore = Depends(get_store)):
    number = next_version_number(store.find_by_proposal(body.proposal_no))
    fields = body.model_dump(exclude_none=True)
    fields["markup_percent"] = normalize_markup(body.markup_percent)
    estimate = Estimate(id=version_id(body.proposal_no, number), version_number=number, **fields)
    store.save_estimate(estimate)
    logger.info("Created estimate %s", estimate.id, extra={"estimate_id": estimate.id})
    return estimate


@router.get("/{estimate_id}")
async def get_estimate(estimate_id: str, store: InMemoryEstimateStore = Depends(get_store)):
    try:
        return store.get_estimate(estimate_id)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc)


@router.patch("/{estimate_id}")
async def update_estimate_header(
    estimate_id: str,
    body: EstimateHeaderUpdate,
    store: InMemoryEstimateStore = Depends(get_store),
):
    try:
        estimate = store.get_estimate(estimate_id)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc)

    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if "markup_percent" in changes:
        changes["markup_percent"] = normalize_markup(changes["markup_percent"])
    updated = estimate.model_copy(update=changes)
    store.save_estimate(updated)
    return updated


@router.post("/{estimate_id}/toggle-status")
async def toggle_status(estimate_id: str, store: InMemoryEstimateStore = Depends(get_store)):
    """Flip a draft estimate to confirmed and back; any other status becomes confirmed."""
    try:
        estimate = store.get_estimate(estimate_id)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc)

    new_status = _STATUS_TOGGLE.get((estimate.status or "").lower(), "confirmed")
    updated = estimate.model_copy(update={"status": new_status})
    store.save_estimate(updated)
    logger.info("Status of %s set to %s", estimate_id, new_status, extra={"estimate_id": estimate_id})
    return {"id": estimate_id, "status": new_status}


@router.get("/{estimate_id}/summary")
async def get_summary(
    estimate_id: str,
    store: InMemoryEstimateStore = Depends(get_store),
    constants: List[Any] = Depends(get_constants),
):
    try:
        estimate = store.get_estimate(estimate_id)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc)

    summary = aggregate(estimate, constants)
    return {
        **summary.model_dump(),
        "sections": [{"category": c, "total": t} for c, t in ordered_categories(summary)],
        "legend": slice_shares(summary),
        "display": {
            "sub_total": format_currency(summary.sub_total),
            "markup": format_percent(summary.markup_percent),
            "markup_amount": format_currency(summary.markup_amount),
            "grand_total": format_currency(summary.grand_total),
        },
    }


# ─── Line items ──────────────────────────────────────────────────────────────

@router.get("/{estimate_id}/line-items")
async def list_line_items(
    estimate_id: str,
    store: InMemoryEstimateStore = Depends(get_store),
    constants: List[Any] = Depends(get_constants),
):
    try:
        estimate = store.get_estimate(estimate_id)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc)
    return _priced_items(estimate, constants)


@router.post("/{estimate_id}/line-items", status_code=201)
async def add_line_item(
    estimate_id: str,
    body: LineItemCreate,
    store: InMemoryEstimateStore = Depends(get_store),
    constants: List[Any] = Depends(get_constants),
):
    try:
        estimate = store.get_estimate(estimate_id)
        item = store.append_line_item(estimate_id, build_line_item(body.category, body.template, estimate_id))
    except DOMAIN_ERRORS as exc:
        raise http_error(exc)
    return {
        "item": item,
        "total": CostingEngine(constants).line_total(item, estimate.fringe),
    }


@router.patch("/{estimate_id}/line-items/{line_item_id}")
async def update_line_item_field(
    estimate_id: str,
    line_item_id: str,
    body: LineItemFieldUpdate,
    store: InMemoryEstimateStore = Depends(get_store),
    constants: List[Any] = Depends(get_constants),
):
    """Commit a single field edit; an unchanged value performs no write."""
    try:
        estimate = store.get_estimate(estimate_id)
        item = store.get_line_item(estimate_id, line_item_id)
        session = LineItemEditSession(item, store, estimate.fringe, constants, estimate_id)
        session.edit(body.field, body.value)
        written = session.commit(body.field)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc)

    return {
        "item": session.item,
        "total": session.committed_total(),
        "written": written,
    }


@router.delete("/{estimate_id}/line-items/{line_item_id}")
async def delete_line_item(
    estimate_id: str,
    line_item_id: str,
    store: InMemoryEstimateStore = Depends(get_store),
):
    try:
        store.delete_line_item(estimate_id, line_item_id)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc)
    return {"deleted": line_item_id}


@router.get("/{estimate_id}/line-items/{line_item_id}/labor-breakdown")
async def get_labor_breakdown(
    estimate_id: str,
    line_item_id: str,
    store: InMemoryEstimateStore = Depends(get_store),
    constants: List[Any] = Depends(get_constants),
):
    try:
        estimate = store.get_estimate(estimate_id)
        item = store.get_line_item(estimate_id, line_item_id)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc)

    if item.category != "Labor":
        raise HTTPException(status_code=400, detail=f"{item.category} line items have no labor breakdown")
    return labor_breakdown(item, estimate.fringe, constants).to_dict()
