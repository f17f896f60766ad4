"""
Domain error taxonomy for listing lifecycle, archival and search.

Transport layers map these to status codes (see routes/_listing_helpers.py);
sweep entry points map SystemicError to a non-zero exit code. Every error
carries a ``to_dict()`` payload with enough detail for a caller to correct
its input.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence


class MarketplaceError(Exception):
    """Base class for all domain errors raised by carmarket."""

    code = "marketplace_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationError(MarketplaceError):
    """
    Bad input shape, range or enum value.

    Reported synchronously to the caller and never retried.

    Args:
        message: Human readable description
        field: Name of the offending field, when there is one
        allowed: Allowed values for enum fields
    """

    code = "validation_error"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        allowed: Optional[Iterable[str]] = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.allowed = list(allowed) if allowed is not None else None

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        if self.field is not None:
            payload["field"] = self.field
        if self.allowed is not None:
            payload["allowed"] = self.allowed
        return payload


class DuplicateListingError(ValidationError):
    """Create rejected because the owner posted a near-identical listing recently."""

    code = "duplicate_listing"

    def __init__(self, matches: Sequence[dict[str, Any]]) -> None:
        super().__init__(
            f"Found {len(matches)} similar listing(s) posted in the last 30 days. "
            "Resubmit with force=true to post anyway."
        )
        self.matches = list(matches)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["similar_listings"] = [
            {**match, "created_at": _isoformat(match.get("created_at"))} for match in self.matches
        ]
        return payload


class AuthorizationError(MarketplaceError):
    """Caller lacks rights over the target listing."""

    code = "authorization_error"


class ListingLimitExceededError(AuthorizationError):
    """Owner's subscription plan does not allow another active listing."""

    code = "listing_limit_exceeded"

    def __init__(self, plan: str, active: int, limit: int) -> None:
        super().__init__(
            f"The {plan} plan allows {limit} active listing(s); you currently have {active}."
        )
        self.plan = plan
        self.active = active
        self.limit = limit

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload.update({"plan": self.plan, "active": self.active, "limit": self.limit})
        return payload


class ListingNotFoundError(MarketplaceError):
    code = "listing_not_found"

    def __init__(self, listing_id: int) -> None:
        super().__init__(f"Listing {listing_id} not found")
        self.listing_id = listing_id


class InvalidTransitionError(MarketplaceError):
    """The requested event is not allowed from the listing's current status."""

    code = "invalid_transition"

    def __init__(self, current: Optional[str], event: str) -> None:
        super().__init__(f"Cannot apply '{event}' to a listing in status '{current}'")
        self.current = current
        self.event = event

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload.update({"status": self.current, "event": self.event})
        return payload


class TransientExternalError(MarketplaceError):
    """Object store or notification backend unavailable."""

    code = "external_unavailable"


class TransactionalError(MarketplaceError):
    """Database write failed during an archival commit; the item stays eligible."""

    code = "transaction_failed"


class ArchivalConflictError(TransactionalError):
    """Another actor transitioned the listing between selection and claim."""

    code = "archival_conflict"

    def __init__(self, listing_id: int) -> None:
        super().__init__(f"Listing {listing_id} is no longer eligible for archival")
        self.listing_id = listing_id


class SystemicError(MarketplaceError):
    """The data store cannot be reached at all; aborts a sweep run."""

    code = "systemic_failure"


def _isoformat(value: Any) -> Any:
    return value.isoformat() if hasattr(value, "isoformat") else value
