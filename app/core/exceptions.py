"""Domain-level exception hierarchy for service and repository layers."""

from __future__ import annotations

from enum import Enum


class AccessErrorKind(str, Enum):
    """Outcome kinds surfaced by the access gate and visibility policy."""

    MISSING_LOCATION = "missing_location"
    INVALID_LOCATION = "invalid_location"
    RADIUS_TOO_LARGE = "radius_too_large"
    OUT_OF_AREA = "out_of_area"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


class DomainError(Exception):
    """Base class for domain-specific failures."""

    kind: AccessErrorKind | None = None


class NotFoundError(DomainError):
    """Raised when a requested entity does not exist or must look absent."""

    kind = AccessErrorKind.NOT_FOUND


class ConflictError(DomainError):
    """Raised when a state conflict occurs (e.g. duplicate entries)."""


class ValidationError(DomainError):
    """Raised when input validation fails at the domain/service layer."""


class MissingLocationError(ValidationError):
    kind = AccessErrorKind.MISSING_LOCATION


class InvalidLocationError(ValidationError):
    kind = AccessErrorKind.INVALID_LOCATION


class RadiusTooLargeError(ValidationError):
    kind = AccessErrorKind.RADIUS_TOO_LARGE


class ForbiddenError(DomainError):
    """Raised when the caller lacks rights on a visible resource."""

    kind = AccessErrorKind.FORBIDDEN


class OutOfAreaError(ForbiddenError):
    """Raised when a resource lies beyond the allowed radius of the caller."""

    kind = AccessErrorKind.OUT_OF_AREA

    def __init__(self, max_radius_km: float) -> None:
        self.max_radius_km = max_radius_km
        super().__init__(
            "This issue is outside your allowed area. You can only access issues "
            f"within {max_radius_km:g}km of your location."
        )


class AuthenticationError(DomainError):
    """Raised when a caller identity is required or its token is unusable."""


class InfrastructureError(DomainError):
    """Raised when infrastructure (DB or external service) is unavailable."""


def error_for_kind(kind: AccessErrorKind, *, max_radius_km: float) -> DomainError:
    """Build the exception matching a denied visibility decision."""

    if kind is AccessErrorKind.OUT_OF_AREA:
        return OutOfAreaError(max_radius_km)
    if kind is AccessErrorKind.NOT_FOUND:
        return NotFoundError("Issue not found")
    if kind is AccessErrorKind.FORBIDDEN:
        return ForbiddenError("You do not have permission to modify this issue")
    raise ValueError(f"no exception mapping for {kind.value}")
