"""Section colour lookup for chart slices and table headers."""

from collections.abc import Iterable
from typing import Any, List

from estimator.config import CATEGORY_ALIASES, FALLBACK_COLOR, SECTION_COLORS
from estimator.services.fringe_resolver import constant_field


def _norm(text: Any) -> str:
    return str(text or "").strip().lower()


def _name_variations(target: str) -> List[str]:
    names = [target]
    alias = CATEGORY_ALIASES.get(target)
    if alias:
        names.append(alias)
    return names + [f"{name} color" for name in names]


def _palette_color(target: str) -> str:
    candidates = [target]
    alias = CATEGORY_ALIASES.get(target)
    if alias:
        candidates.append(alias)
    for name, color in SECTION_COLORS.items():
        if name.lower() in candidates:
            return color
    return FALLBACK_COLOR


def resolve_category_color(name: str, table: Any) -> str:
    """
    Colour for the section ``name``.

    Looks for a constant described as ``<name>`` or ``<name> color``
    (case-insensitive, Tools and Tool interchangeable) and takes its
    ``color`` field, else its ``value``. Falls back to the built-in palette
    and finally to a neutral grey; never returns an empty string.
    """
    target = _norm(name)

    if table is not None and not isinstance(table, (str, bytes)) and isinstance(table, Iterable):
        variations = _name_variations(target)
        for entry in table:
            if _norm(constant_field(entry, "description")) not in variations:
                continue
            color = str(constant_field(entry, "color") or "").strip()
            if color:
                return color
            value = str(constant_field(entry, "value") or "").strip()
            if value:
                return value
            break

    return _palette_color(target)
