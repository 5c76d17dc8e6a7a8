"""Fringe-benefit rate lookup against the constants table."""

from collections.abc import Iterable
from typing import Any, Optional

from estimator.services.numeric import to_number


def constant_field(entry: Any, name: str) -> Any:
    """Read ``name`` from a constant record given as a dict or an object."""
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)


def resolve_fringe_rate(name: Optional[str], table: Any) -> float:
    """
    Return the hourly fringe rate whose description equals ``name``.

    An empty name, a non-iterable table, a missing entry or an unparsable
    value all resolve to 0.0. Matching is exact (case and whitespace
    sensitive) and the first matching record wins.
    """
    if not name:
        return 0.0
    if table is None or isinstance(table, (str, bytes)) or not isinstance(table, Iterable):
        return 0.0

    for entry in table:
        if constant_field(entry, "description") == name:
            return to_number(constant_field(entry, "value"))
    return 0.0


def effective_fringe_name(item_fringe: Optional[str], estimate_fringe: Optional[str]) -> Optional[str]:
    """A line item's own fringe selection wins over the estimate-wide one."""
    return item_fringe if item_fringe is not None else estimate_fringe
