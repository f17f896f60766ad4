"""
Internal helpers for the listing route handlers.

Domain errors are raised by the services; these helpers turn them into
HTTP responses and shape request/response data.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, NoReturn

from fastapi import HTTPException, Request, status

from carmarket.errors import (
    ArchivalConflictError,
    AuthorizationError,
    DuplicateListingError,
    InvalidTransitionError,
    ListingNotFoundError,
    MarketplaceError,
    ValidationError,
)
from carmarket.lifecycle.archival import ArchiveResult

# Checked in order; subclasses come before their parents
ERROR_STATUS: tuple[tuple[type[MarketplaceError], int], ...] = (
    (DuplicateListingError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (ListingNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (ArchivalConflictError, status.HTTP_409_CONFLICT),
)


def status_for(error: MarketplaceError) -> int:
    """Return the HTTP status code for a domain error (500 when unmapped)."""
    for error_type, code in ERROR_STATUS:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def raise_http_error(error: MarketplaceError) -> NoReturn:
    """
    Re-raise a domain error as an HTTPException carrying ``error.to_dict()``.

    Raises:
        HTTPException: Always
    """
    code = status_for(error)
    detail: Any = error.to_dict() if code < 500 else "Internal server error"
    raise HTTPException(status_code=code, detail=detail) from error


def query_params_to_dict(request: Request) -> dict[str, Any]:
    """
    Flatten query parameters; keys repeated in the URL keep all their values.

    Example:
        >>> # ?make=Toyota&fuelType=Petrol&fuelType=Hybrid
        {"make": "Toyota", "fuelType": ["Petrol", "Hybrid"]}
    """
    params: dict[str, Any] = {}
    for key in request.query_params.keys():
        values = request.query_params.getlist(key)
        params[key] = values[0] if len(values) == 1 else values
    return params


def archive_result_to_dict(result: ArchiveResult) -> dict[str, Any]:
    return asdict(result)
