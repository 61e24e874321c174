"""Per-request guards for every issue read and write.

The gate is the single authority for location checks:

- ``require_location`` turns raw query/body values into a validated ``GeoPoint``
- ``resolve_radius`` rejects explicit radii above the configured maximum
- ``filter_collection`` re-filters candidate lists (stable, annotated with distance)
- ``guard_single_item`` re-checks one issue even when it was fetched by id

Every method is a pure function of its arguments and the injected config.
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from app.core.config import GeoAccessConfig
from app.core.exceptions import (
    InvalidLocationError,
    MissingLocationError,
    NotFoundError,
    RadiusTooLargeError,
    ValidationError,
    error_for_kind,
)
from app.repositories.interfaces import IssueRecord
from app.services.visibility import CallerContext, evaluate
from app.utils.geo import GeoPoint, is_valid_coordinate

logger = structlog.get_logger(__name__)

RawNumber = str | float | int | None


@dataclass(frozen=True)
class LocatedIssue:
    """An issue the caller may see, with its distance from the caller."""

    issue: IssueRecord
    distance_km: float


@dataclass(frozen=True)
class Viewport:
    north: float
    south: float
    east: float
    west: float

    def contains(self, point: GeoPoint) -> bool:
        if not self.south <= point.latitude <= self.north:
            return False
        if self.west <= self.east:
            return self.west <= point.longitude <= self.east
        # Viewport spanning the antimeridian
        return point.longitude >= self.west or point.longitude <= self.east


def _parse_number(value: RawNumber) -> float | None:
    """None for absent values; raises ValueError for anything non-numeric."""

    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    return float(value)


class AccessGate:
    def __init__(self, config: GeoAccessConfig) -> None:
        self._config = config

    @property
    def max_radius_km(self) -> float:
        return self._config.max_search_radius_km

    @property
    def default_radius_km(self) -> float:
        return self._config.default_search_radius_km

    def require_location(
        self,
        latitude: RawNumber,
        longitude: RawNumber,
        *,
        purpose: str = "security and privacy",
    ) -> GeoPoint:
        try:
            lat = _parse_number(latitude)
            lng = _parse_number(longitude)
        except (TypeError, ValueError):
            raise InvalidLocationError("Invalid location coordinates provided") from None

        if lat is None or lng is None:
            raise MissingLocationError(
                f"Location coordinates (latitude, longitude) are required for {purpose}"
            )
        if not is_valid_coordinate(lat, lng):
            raise InvalidLocationError("Invalid location coordinates provided")
        return GeoPoint(latitude=lat, longitude=lng)

    def resolve_radius(self, requested: RawNumber) -> float:
        try:
            value = _parse_number(requested)
        except (TypeError, ValueError):
            raise ValidationError("Search distance must be a number") from None

        if value is None:
            return self.default_radius_km
        if not math.isfinite(value) or value < 0:
            raise ValidationError("Search distance must be a non-negative number")
        if value > self.max_radius_km:
            raise RadiusTooLargeError(
                f"Distance cannot exceed {self.max_radius_km:g}km for security reasons"
            )
        return min(value, self.max_radius_km)

    def parse_viewport(self, raw: str | None) -> Viewport | None:
        """Parse a ``{"north", "south", "east", "west"}`` JSON viewport."""

        if raw is None or not raw.strip():
            return None
        try:
            data = json.loads(raw)
            viewport = Viewport(
                north=float(data["north"]),
                south=float(data["south"]),
                east=float(data["east"]),
                west=float(data["west"]),
            )
        except (TypeError, ValueError, KeyError):
            raise InvalidLocationError("Invalid map bounds provided") from None

        corners_ok = is_valid_coordinate(viewport.north, viewport.east) and is_valid_coordinate(
            viewport.south, viewport.west
        )
        if not corners_ok or viewport.south > viewport.north:
            raise InvalidLocationError("Invalid map bounds provided")
        return viewport

    def filter_collection(
        self,
        issues: Iterable[IssueRecord],
        caller: CallerContext,
        *,
        radius_km: float | None = None,
        viewport: Viewport | None = None,
    ) -> list[LocatedIssue]:
        """Keep the issues visible to ``caller``, preserving input order."""

        limit = self.max_radius_km if radius_km is None else min(radius_km, self.max_radius_km)
        out: list[LocatedIssue] = []
        for issue in issues:
            decision = evaluate(caller, issue, limit)
            if not decision.allowed or decision.distance_km is None:
                continue
            if viewport is not None and not viewport.contains(issue.location):
                continue
            out.append(LocatedIssue(issue=issue, distance_km=decision.distance_km))
        return out

    def guard_single_item(self, issue: IssueRecord | None, caller: CallerContext) -> LocatedIssue:
        """Re-validate one issue; knowing an id never grants access outside the radius."""

        if issue is None:
            raise NotFoundError("Issue not found")

        decision = evaluate(caller, issue, self.max_radius_km)
        if not decision.allowed:
            assert decision.reason is not None
            logger.info(
                "issue_access_denied",
                issue_id=issue.id,
                kind=decision.reason.value,
                distance_km=decision.distance_km,
                role=caller.role.value,
            )
            raise error_for_kind(decision.reason, max_radius_km=self.max_radius_km)
        assert decision.distance_km is not None
        return LocatedIssue(issue=issue, distance_km=decision.distance_km)


__all__ = ["AccessGate", "LocatedIssue", "Viewport"]
