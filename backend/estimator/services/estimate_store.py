"""
In-memory estimate store.

Holds estimates by id, each owning its line items grouped by category.
Every write runs under one lock, so single-field line-item updates never
interleave. Readers receive deep copies; mutating a returned estimate does
not change the stored one.
"""

import logging
import threading
from typing import Any, Dict, List, Protocol

from pydantic import ValidationError

from estimator.models.estimate import Estimate
from estimator.models.line_items import LineItemBase

logger = logging.getLogger("estimator-store")


class EstimateNotFoundError(KeyError):
    """No estimate with the given id."""


class LineItemNotFoundError(KeyError):
    """The estimate has no line item with the given id."""


class LineItemFieldError(ValueError):
    """The field does not exist on the line item's category, or may not be edited."""


class PersistenceError(Exception):
    """A write was rejected; the caller may retry or revert the edit."""


class LineItemPersistence(Protocol):
    def update_line_item_field(self, estimate_id: str, line_item_id: str,
                               field: str, value: Any) -> LineItemBase: ...

    def append_line_item(self, estimate_id: str, item: LineItemBase) -> LineItemBase: ...

    def delete_line_item(self, estimate_id: str, line_item_id: str) -> None: ...


class InMemoryEstimateStore:
    def __init__(self) -> None:
        self._estimates: Dict[str, Estimate] = {}
        self._lock = threading.Lock()

    # ── Estimates ──

    def _get(self, estimate_id: str) -> Estimate:
        try:
            return self._estimates[estimate_id]
        except KeyError:
            raise EstimateNotFoundError(estimate_id) from None

    def get_estimate(self, estimate_id: str) -> Estimate:
        with self._lock:
            return self._get(estimate_id).model_copy(deep=True)

    def save_estimate(self, estimate: Estimate) -> Estimate:
        with self._lock:
            self._estimates[estimate.id] = estimate.model_copy(deep=True)
        logger.debug("Saved estimate", extra={"estimate_id": estimate.id})
        return estimate

    def delete_estimate(self, estimate_id: str) -> Estimate:
        with self._lock:
            deleted = self._get(estimate_id)
            del self._estimates[estimate_id]
        logger.info("Deleted estimate", extra={"estimate_id": estimate_id})
        return deleted

    def list_estimates(self) -> List[Estimate]:
        with self._lock:
            return [e.model_copy(deep=True) for e in self._estimates.values()]

    def find_by_proposal(self, proposal_no: str) -> List[Estimate]:
        """Every version and change order filed under ``proposal_no``."""
        with self._lock:
            return [
                e.model_copy(deep=True)
                for e in self._estimates.values()
                if e.proposal_no == proposal_no
            ]

    def replace_proposal(self, proposal_no: str, estimates: List[Estimate]) -> None:
        """Swap the whole family of ``proposal_no`` for ``estimates`` in one step."""
        with self._lock:
            for estimate_id in [k for k, e in self._estimates.items() if e.proposal_no == proposal_no]:
                del self._estimates[estimate_id]
            for estimate in estimates:
                self._estimates[estimate.id] = estimate.model_copy(deep=True)
        logger.info("Replaced %d records for proposal %s", len(estimates), proposal_no)

    # ── Line items ──

    def _locate(self, estimate: Estimate, line_item_id: str):
        for category, items in estimate.line_items.items():
            for index, item in enumerate(items):
                if item.id == line_item_id:
                    return category, index, item
        raise LineItemNotFoundError(line_item_id)

    def get_line_item(self, estimate_id: str, line_item_id: str) -> LineItemBase:
        with self._lock:
            _, _, item = self._locate(self._get(estimate_id), line_item_id)
            return item.model_copy(deep=True)

    def update_line_item_field(self, estimate_id: str, line_item_id: str,
                               field: str, value: Any) -> LineItemBase:
        """
        Write one field of one line item and return the updated item.

        Raises LineItemFieldError for a field the category does not have and
        PersistenceError when the value cannot be stored in that field.
        """
        with self._lock:
            estimate = self._get(estimate_id)
            category, index, item = self._locate(estimate, line_item_id)

            if field not in type(item).editable_fields():
                raise LineItemFieldError(f"{item.category} line items have no editable field {field!r}")

            data = item.model_dump()
            data[field] = value
            try:
                updated = type(item).model_validate(data)
            except ValidationError as exc:
                raise PersistenceError(f"Rejected value for {field!r}: {exc.errors()[0]['msg']}") from exc

            estimate.line_items[category][index] = updated

        logger.debug("Updated %s.%s", line_item_id, field, extra={"estimate_id": estimate_id})
        return updated.model_copy(deep=True)

    def append_line_item(self, estimate_id: str, item: LineItemBase) -> LineItemBase:
        with self._lock:
            estimate = self._get(estimate_id)
            stored = item.model_copy(deep=True, update={"estimate_id": estimate_id})
            estimate.line_items.setdefault(stored.category, []).append(stored)
        logger.info("Added %s line item %s", stored.category, stored.id, extra={"estimate_id": estimate_id})
        return stored.model_copy(deep=True)

    def delete_line_item(self, estimate_id: str, line_item_id: str) -> None:
        with self._lock:
            estimate = self._get(estimate_id)
            category, index, _ = self._locate(estimate, line_item_id)
            del estimate.line_items[category][index]
        logger.info("Deleted line item %s", line_item_id, extra={"estimate_id": estimate_id})

