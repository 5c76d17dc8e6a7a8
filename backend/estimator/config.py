"""
Estimator configuration: single source of truth for formula constants,
category metadata, palette defaults and environment-driven settings.

Import from here in all services and routes rather than hardcoding values.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List

logger = logging.getLogger("estimator-config")


# ── Labor formula constants ───────────────────────────────────────────────────
STANDARD_HOURS_PER_DAY: float = 8.0
OT_MULTIPLIER: float = 1.5          # overtime pay
DT_MULTIPLIER: float = 2.0          # double-time pay

# Labor sub-classifications billed flat (basePay × quantity × days)
FLAT_RATE_SUB_CLASSIFICATIONS: frozenset[str] = frozenset({"per diem", "hotel"})


# ── Equipment units of measure ────────────────────────────────────────────────
UOM_DAILY = "Daily"
UOM_WEEKLY = "Weekly"
UOM_MONTHLY = "Monthly"
DEFAULT_EQUIPMENT_UOM = UOM_DAILY


# ── Categories ────────────────────────────────────────────────────────────────
# Canonical order used for aggregation, chart slices and the API payloads.
CATEGORY_ORDER: list[str] = [
    "Labor",
    "Equipment",
    "Material",
    "Tools",
    "Overhead",
    "Subcontractor",
    "Disposal",
    "Miscellaneous",
]

# Built-in palette, used when the constants table has no colour for a section
SECTION_COLORS: dict[str, str] = {
    "Labor": "#4F7E17",
    "Equipment": "#0000FF",
    "Material": "#F88702",
    "Tools": "#800080",
    "Overhead": "#F0C400",
    "Subcontractor": "#7B4019",
    "Disposal": "#000000",
    "Miscellaneous": "#CD0302",
}
FALLBACK_COLOR: str = "#cbd5e1"

# Legacy constant names still present in older tables
CATEGORY_ALIASES: dict[str, str] = {
    "tools": "tool",
    "tool": "tools",
}


# ── Versions & change orders ──────────────────────────────────────────────────
# Only change orders in these states count toward committed contract value.
COMMITTED_CHANGE_ORDER_STATUSES: frozenset[str] = frozenset({"completed", "won"})

CLONED_VERSION_STATUS: str = "pending"
CHANGE_ORDER_STATUS: str = "In Progress"

# Live totals are refreshed in the version timeline only past this delta.
VERSION_TOTAL_EPSILON: float = 0.01


# ── Environment settings ──────────────────────────────────────────────────────
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_REPO_DIR = os.path.dirname(_BACKEND_DIR)

DEFAULT_CONSTANTS_PATH: str = os.path.join(_REPO_DIR, "resources", "default_constants.json")


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO")


def use_json_logs() -> bool:
    return os.getenv("LOG_FORMAT", "json").lower() != "text"


def get_constants_path() -> str:
    return os.getenv("ESTIMATOR_CONSTANTS_PATH", DEFAULT_CONSTANTS_PATH)


def get_cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def load_constants(path: str | None = None) -> List[Dict[str, Any]]:
    """
    Read the constants table (fringes, section colours, statuses) from JSON.

    The file holds either a list of records or ``{"constants": [...]}``.
    A missing file yields an empty table so the engine falls back to zero
    fringe rates and the built-in palette.
    """
    path = path or get_constants_path()
    if not os.path.exists(path):
        logger.warning("Constants file not found at %s, starting with empty table", path)
        return []

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    records = data.get("constants", []) if isinstance(data, dict) else data
    if not isinstance(records, list):
        raise ValueError(f"Constants file {path} must contain a list of records")

    logger.info("Loaded %d constants from %s", len(records), path)
    return records
