"""FastAPI dependency injection: shared store, constants table and error mapping."""
from typing import Any, List

from fastapi import HTTPException, Request, status

from estimator.services.estimate_store import (
    EstimateNotFoundError,
    InMemoryEstimateStore,
    LineItemFieldError,
    LineItemNotFoundError,
    PersistenceError,
)
from estimator.services.version_ledger import VersionNotFoundError


def get_store(request: Request) -> InMemoryEstimateStore:
    return request.app.state.store


def get_constants(request: Request) -> List[Any]:
    """The live constants table; settings routes edit this same list in place."""
    return request.app.state.constants


# Errors the routes translate with http_error
DOMAIN_ERRORS = (
    EstimateNotFoundError,
    LineItemNotFoundError,
    VersionNotFoundError,
    PersistenceError,
    LineItemFieldError,
    ValueError,
)


def http_error(exc: Exception) -> HTTPException:
    """Translate a store or ledger error into the matching HTTP status."""
    if isinstance(exc, EstimateNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Estimate not found: {exc.args[0]}")
    if isinstance(exc, LineItemNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Line item not found: {exc.args[0]}")
    if isinstance(exc, VersionNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Version not found: {exc.args[0]}")
    if isinstance(exc, PersistenceError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, (LineItemFieldError, ValueError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
