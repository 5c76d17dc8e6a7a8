"""Version routes: clone, change orders, deletion with renumbering, timeline and contract report."""
import logging
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException

from estimator.api.deps import DOMAIN_ERRORS, get_constants, get_store, http_error
from estimator.services.estimate_store import InMemoryEstimateStore
from estimator.services.formatting import format_currency
from estimator.services.version_ledger import (
    VersionLedger,
    clone_estimate,
    contract_summary,
    create_change_order,
    renumber_after_delete,
)

router = APIRouter(prefix="/api", tags=["Versions"])
logger = logging.getLogger("estimator-api")


def _ledger(store: InMemoryEstimateStore, proposal_no: str, constants: List[Any]) -> VersionLedger:
    family = store.find_by_proposal(proposal_no)
    if not family:
        raise HTTPException(status_code=404, detail=f"Proposal not found: {proposal_no}")
    return VersionLedger.from_estimates(family, constants)


@router.post("/estimates/{estimate_id}/clone", status_code=201)
async def clone_version(estimate_id: str, store: InMemoryEstimateStore = Depends(get_store)):
    try:
        source = store.get_estimate(estimate_id)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc)

    clone = clone_estimate(source, store.find_by_proposal(source.proposal_no))
    store.save_estimate(clone)
    return clone


@router.post("/estimates/{estimate_id}/change-orders", status_code=201)
async def open_change_order(estimate_id: str, store: InMemoryEstimateStore = Depends(get_store)):
    try:
        source = store.get_estimate(estimate_id)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc)

    if source.is_change_order:
        raise HTTPException(status_code=400, detail="Change orders are raised against a regular version")

    change_order = create_change_order(source, store.find_by_proposal(source.proposal_no))
    store.save_estimate(change_order)
    return change_order


@router.delete("/estimates/{estimate_id}")
async def delete_version(estimate_id: str, store: InMemoryEstimateStore = Depends(get_store)):
    """Delete a version or change order and close the numbering gap it leaves."""
    try:
        deleted = store.get_estimate(estimate_id)
    except DOMAIN_ERRORS as exc:
        raise http_error(exc)

    family = renumber_after_delete(deleted, store.find_by_proposal(deleted.proposal_no))
    store.replace_proposal(deleted.proposal_no, family)
    logger.info("Deleted %s; %d records remain", estimate_id, len(family), extra={"estimate_id": estimate_id})
    return {"deleted": estimate_id, "remaining": sorted(e.id for e in family)}


@router.get("/proposals/{proposal_no}/versions")
async def get_version_timeline(
    proposal_no: str,
    store: InMemoryEstimateStore = Depends(get_store),
    constants: List[Any] = Depends(get_constants),
):
    ledger = _ledger(store, proposal_no, constants)
    latest = ledger.latest()
    return {
        **ledger.timeline(),
        "latest_id": latest.id if latest else None,
    }


@router.get("/proposals/{proposal_no}/contract")
async def get_contract_report(
    proposal_no: str,
    store: InMemoryEstimateStore = Depends(get_store),
    constants: List[Any] = Depends(get_constants),
):
    report = contract_summary(_ledger(store, proposal_no, constants))
    report["display"] = {
        key: format_currency(report[key])
        for key in ("original_contract", "change_orders_total", "updated_contract")
    }
    return report
