"""
Version and change-order bookkeeping for one proposal.

Ids follow the proposal numbering used on printed bids:

    <proposal>-V<n>             regular version n
    <proposal>-V<n>-CO<m>       change order m raised against version n

A change order carries the version number of its parent. Regular version
numbers are kept dense (1..n) and so are the change-order numbers under each
parent; deletions renumber whatever follows the gap.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from estimator.config import (
    CHANGE_ORDER_STATUS,
    CLONED_VERSION_STATUS,
    COMMITTED_CHANGE_ORDER_STATUSES,
    VERSION_TOTAL_EPSILON,
)
from estimator.models.estimate import Estimate, EstimateVersion
from estimator.services.rollup_engine import aggregate

logger = logging.getLogger("estimator-versions")

_CO_SUFFIX = re.compile(r"-CO(\d+)$")


class VersionNotFoundError(KeyError):
    """No version with the requested id exists for the proposal."""


def version_id(proposal_no: str, number: int) -> str:
    return f"{proposal_no}-V{number}"


def change_order_id(parent_id: str, number: int) -> str:
    return f"{parent_id}-CO{number}"


def change_order_number(estimate_id: str) -> Optional[int]:
    match = _CO_SUFFIX.search(estimate_id)
    return int(match.group(1)) if match else None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _retarget_line_items(estimate: Estimate) -> Estimate:
    for item in estimate.iter_line_items():
        item.estimate_id = estimate.id
    return estimate


# ---------------------------------------------------------------------------
# Numbering
# ---------------------------------------------------------------------------

def next_version_number(family: Iterable[Estimate]) -> int:
    """Lowest version number not yet used by the proposal, starting at 1."""
    used = {e.version_number for e in family}
    number = 1
    while number in used:
        number += 1
    return number


def next_change_order_number(parent_id: str, family: Iterable[Estimate]) -> int:
    """One past the highest CO number raised against ``parent_id``."""
    pattern = re.compile(rf"^{re.escape(parent_id)}-CO(\d+)$")
    used = [int(m.group(1)) for m in (pattern.match(e.id) for e in family) if m]
    return max(used) + 1 if used else 1


# ---------------------------------------------------------------------------
# Clone / change order / delete
# ---------------------------------------------------------------------------

def clone_estimate(source: Estimate, family: Iterable[Estimate]) -> Estimate:
    """
    Copy ``source`` (line items included) into the next free version.

    The copy is always a regular version with status "pending", even when
    cloned from a change order.
    """
    family = list(family)
    taken_ids = {e.id for e in family}
    number = next_version_number(family)
    new_id = version_id(source.proposal_no, number)
    while new_id in taken_ids:
        number += 1
        new_id = version_id(source.proposal_no, number)

    now = _now()
    clone = source.model_copy(deep=True, update={
        "id": new_id,
        "version_number": number,
        "status": CLONED_VERSION_STATUS,
        "is_change_order": False,
        "parent_version_id": None,
        "date": now,
        "created_at": now,
    })
    logger.info("Cloned %s into %s", source.id, new_id, extra={"estimate_id": new_id})
    return _retarget_line_items(clone)


def create_change_order(source: Estimate, family: Iterable[Estimate]) -> Estimate:
    """Open a change order against ``source``: header copied, no line items."""
    number = next_change_order_number(source.id, family)
    new_id = change_order_id(source.id, number)

    now = _now()
    change_order = source.model_copy(deep=True, update={
        "id": new_id,
        "line_items": {},
        "is_change_order": True,
        "parent_version_id": source.id,
        "status": CHANGE_ORDER_STATUS,
        "date": now,
        "created_at": now,
    })
    logger.info("Created change order %s on %s", new_id, source.id, extra={"estimate_id": new_id})
    return change_order


def renumber_after_delete(deleted: Estimate, remaining: Iterable[Estimate]) -> List[Estimate]:
    """
    Renumber the rest of a proposal after ``deleted`` was removed.

    Deleting a change order renumbers its siblings CO1..n in creation order.
    Deleting a regular version drops its change orders, renumbers the other
    versions V1..n, and moves each version's change orders under the new
    parent id keeping their CO numbers. Returns the full, renumbered family.
    """
    remaining = [e for e in remaining if e.id != deleted.id]

    if deleted.is_change_order:
        parent_id = deleted.parent_version_id
        siblings = sorted(
            (e for e in remaining if e.is_change_order and e.parent_version_id == parent_id),
            key=lambda e: (e.created_at, change_order_number(e.id) or 0),
        )
        sibling_ids = {e.id for e in siblings}
        others = [e for e in remaining if e.id not in sibling_ids]
        for position, co in enumerate(siblings, start=1):
            expected = change_order_id(parent_id, position)
            if co.id != expected:
                logger.info("Renumbered %s to %s", co.id, expected, extra={"estimate_id": expected})
                co = _retarget_line_items(co.model_copy(deep=True, update={"id": expected}))
            others.append(co)
        return others

    remaining = [
        e for e in remaining
        if not (e.is_change_order and e.parent_version_id == deleted.id)
    ]
    versions = sorted(
        (e for e in remaining if not e.is_change_order),
        key=lambda e: e.version_number,
    )
    change_orders = [e for e in remaining if e.is_change_order]

    result: List[Estimate] = []
    moved: Dict[str, int] = {}
    for position, version in enumerate(versions, start=1):
        expected = version_id(deleted.proposal_no, position)
        if version.id != expected or version.version_number != position:
            logger.info("Renumbered %s to %s", version.id, expected, extra={"estimate_id": expected})
            moved[version.id] = position
            version = _retarget_line_items(
                version.model_copy(deep=True, update={"id": expected, "version_number": position})
            )
        result.append(version)

    for index, co in enumerate(change_orders, start=1):
        position = moved.get(co.parent_version_id or "")
        if position is not None:
            new_parent = version_id(deleted.proposal_no, position)
            number = change_order_number(co.id) or index
            co = _retarget_line_items(co.model_copy(deep=True, update={
                "id": change_order_id(new_parent, number),
                "parent_version_id": new_parent,
                "version_number": position,
            }))
        result.append(co)
    return result


# ---------------------------------------------------------------------------
# VersionLedger
# ---------------------------------------------------------------------------

class VersionLedger:
    """
    Ordered, read-only view over the versions of one proposal.

    ``latest()`` is the newest regular version; its total is the original
    contract value. Change orders only count toward the contract once they
    are completed or won.
    """

    def __init__(self, versions: Iterable[EstimateVersion]) -> None:
        self._versions: List[EstimateVersion] = sorted(
            versions, key=lambda v: (v.version_number, v.is_change_order, v.id)
        )

    @classmethod
    def from_estimates(cls, estimates: Iterable[Estimate], constants: Any) -> "VersionLedger":
        return cls(
            EstimateVersion.from_estimate(e, aggregate(e, constants).grand_total)
            for e in estimates
        )

    @property
    def versions(self) -> List[EstimateVersion]:
        return list(self._versions)

    @property
    def regular_versions(self) -> List[EstimateVersion]:
        return [v for v in self._versions if not v.is_change_order]

    @property
    def change_orders(self) -> List[EstimateVersion]:
        return [v for v in self._versions if v.is_change_order]

    def get(self, version_id: str) -> EstimateVersion:
        for v in self._versions:
            if v.id == version_id:
                return v
        raise VersionNotFoundError(version_id)

    def latest(self) -> Optional[EstimateVersion]:
        regular = self.regular_versions
        return regular[-1] if regular else None

    @property
    def original_contract(self) -> float:
        latest = self.latest()
        return latest.total_amount if latest else 0.0

    @property
    def change_orders_total(self) -> float:
        return sum(
            (co.total_amount for co in self.change_orders
             if (co.status or "").strip().lower() in COMMITTED_CHANGE_ORDER_STATUSES),
            0.0,
        )

    @property
    def updated_contract(self) -> float:
        return self.original_contract + self.change_orders_total

    def with_total(self, version_id: str, total_amount: float) -> "VersionLedger":
        """
        Ledger with the live total of ``version_id`` refreshed.

        Moves smaller than one cent are ignored and return this same ledger.
        """
        current = self.get(version_id)
        if abs(current.total_amount - total_amount) < VERSION_TOTAL_EPSILON:
            return self
        updated = current.model_copy(update={"total_amount": total_amount})
        return VersionLedger(updated if v.id == version_id else v for v in self._versions)

    def timeline(self) -> Dict[str, List[EstimateVersion]]:
        """Regular versions newest first, change orders grouped by parent in CO order."""
        return {
            "versions": list(reversed(self.regular_versions)),
            "change_orders": sorted(
                self.change_orders,
                key=lambda v: (v.version_number, v.parent_version_id or "", change_order_number(v.id) or 0),
            ),
        }


def contract_summary(ledger: VersionLedger) -> Dict[str, Any]:
    """Original contract, committed change orders and the updated contract value."""
    versions = ledger.versions
    return {
        "proposal_no": versions[0].proposal_no if versions else None,
        "original_contract": ledger.original_contract,
        "change_orders_total": ledger.change_orders_total,
        "updated_contract": ledger.updated_contract,
    }
