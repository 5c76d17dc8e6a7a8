"""Settings routes: the constants table (fringe rates, section colours, statuses)."""
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query

from estimator.api.deps import get_constants
from estimator.models.estimate import Constant
from estimator.services.color_resolver import resolve_category_color
from estimator.services.fringe_resolver import resolve_fringe_rate

router = APIRouter(prefix="/api/settings", tags=["Settings"])
logger = logging.getLogger("estimator-api")


@router.get("/constants")
async def list_constants(
    kind: Optional[str] = Query(None, alias="type"),
    constants: List[Any] = Depends(get_constants),
):
    """All constants, or only those of one ``type`` (e.g. ``Fringe``)."""
    if kind is None:
        return constants
    return [c for c in constants if (c.type or "").lower() == kind.lower()]


@router.post("/constants", status_code=201)
async def add_constant(body: Constant, constants: List[Any] = Depends(get_constants)):
    constants.append(body)
    logger.info("Added %s constant %r", body.type, body.description)
    return body


@router.put("/constants")
async def replace_constants(body: List[Constant], constants: List[Any] = Depends(get_constants)):
    # In place: engines hold a reference to this list
    constants[:] = body
    logger.info("Replaced constants table (%d records)", len(body))
    return constants


@router.get("/fringes/{name}")
async def get_fringe_rate(name: str, constants: List[Any] = Depends(get_constants)):
    return {"fringe": name, "rate": resolve_fringe_rate(name, constants)}


@router.get("/colors/{category}")
async def get_section_color(category: str, constants: List[Any] = Depends(get_constants)):
    return {"category": category, "color": resolve_category_color(category, constants)}
