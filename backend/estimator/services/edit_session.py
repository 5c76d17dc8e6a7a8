"""
Field-by-field editing of one line item.

Each editable field moves through CLEAN -> DIRTY -> COMMITTING -> CLEAN.
Uncommitted (dirty) values drive the preview total so the table can show
the new amount while the user is still typing; a commit writes exactly one
field through the persistence collaborator.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from estimator.models.line_items import LineItemBase
from estimator.services.costing_engine import calculate_line_total
from estimator.services.estimate_store import LineItemFieldError, LineItemPersistence, PersistenceError
from estimator.services.numeric import to_number

logger = logging.getLogger("estimator-edit")


class FieldState(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    COMMITTING = "committing"


class LineItemEditSession:
    """
    Tracks dirty values for one line item and commits them one field at a time.

    A failed commit leaves the field DIRTY with the user's value intact, so
    the caller can retry with ``commit`` or drop it with ``revert``.
    """

    def __init__(
        self,
        item: LineItemBase,
        persistence: LineItemPersistence,
        estimate_fringe: Optional[str] = None,
        constants: Any = None,
        estimate_id: Optional[str] = None,
    ) -> None:
        self._committed = item
        self._persistence = persistence
        self._estimate_fringe = estimate_fringe
        self._constants = constants if constants is not None else []
        self._estimate_id = estimate_id or item.estimate_id
        self._dirty: Dict[str, Any] = {}
        self._states: Dict[str, FieldState] = {}

    @property
    def item(self) -> LineItemBase:
        """The line item as last committed."""
        return self._committed

    @property
    def dirty_fields(self) -> List[str]:
        return [f for f, s in self._states.items() if s != FieldState.CLEAN]

    def state(self, field: str) -> FieldState:
        return self._states.get(field, FieldState.CLEAN)

    def _check_field(self, field: str) -> None:
        if field not in type(self._committed).editable_fields():
            raise LineItemFieldError(
                f"{self._committed.category} line items have no editable field {field!r}"
            )

    # ── Editing ──

    def edit(self, field: str, value: Any) -> float:
        """Record a dirty value and return the refreshed preview total."""
        self._check_field(field)
        if self.state(field) == FieldState.COMMITTING:
            raise RuntimeError(f"Field {field!r} is being committed")
        self._dirty[field] = value
        self._states[field] = FieldState.DIRTY
        return self.preview_total()

    def revert(self, field: str) -> None:
        self._dirty.pop(field, None)
        self._states[field] = FieldState.CLEAN

    def preview_item(self) -> LineItemBase:
        return self._committed.model_copy(update=self._dirty)

    def preview_total(self) -> float:
        return calculate_line_total(self.preview_item(), self._estimate_fringe, self._constants)

    def committed_total(self) -> float:
        return calculate_line_total(self._committed, self._estimate_fringe, self._constants)

    # ── Committing ──

    def _is_unchanged(self, field: str, value: Any) -> bool:
        previous = getattr(self._committed, field)
        if value == previous:
            return True
        if type(self._committed).is_numeric_field(field):
            return to_number(value) == to_number(previous)
        return False

    def commit(self, field: str) -> bool:
        """
        Persist the dirty value of ``field``.

        Returns True when a write was made, False when there was nothing to
        write (the field was clean or its value equals the committed one).
        Numeric fields are stored coerced. PersistenceError propagates after
        the field is put back to DIRTY.
        """
        self._check_field(field)
        if self.state(field) != FieldState.DIRTY:
            return False

        value = self._dirty[field]
        if self._is_unchanged(field, value):
            self.revert(field)
            return False

        if type(self._committed).is_numeric_field(field):
            value = to_number(value)

        self._states[field] = FieldState.COMMITTING
        try:
            updated = self._persistence.update_line_item_field(
                self._estimate_id, self._committed.id, field, value
            )
        except PersistenceError:
            self._states[field] = FieldState.DIRTY
            logger.warning(
                "Commit of %s.%s failed; field left dirty", self._committed.id, field,
                extra={"estimate_id": self._estimate_id},
            )
            raise

        self._committed = updated
        self._dirty.pop(field, None)
        self._states[field] = FieldState.CLEAN
        return True

    def commit_all(self) -> List[str]:
        """Commit every dirty field in edit order; returns the fields written."""
        written = []
        for field in list(self._dirty):
            if self.commit(field):
                written.append(field)
        return written
