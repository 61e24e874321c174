"""Visibility policy: who may see an issue from where, and who may change it."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from app.core.exceptions import AccessErrorKind
from app.repositories.interfaces import IssueRecord
from app.utils.geo import GeoPoint, distance_km


class Role(str, Enum):
    anonymous = "anonymous"
    user = "user"
    moderator = "moderator"
    admin = "admin"


PRIVILEGED_ROLES = frozenset({Role.moderator, Role.admin})


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: Role = Role.user
    username: str = ""


@dataclass(frozen=True)
class CallerContext:
    """Resolved caller plus the coordinates supplied with the current request."""

    identity: Identity | None
    query_location: GeoPoint | None = None

    @property
    def role(self) -> Role:
        if self.identity is None:
            return Role.anonymous
        return self.identity.role

    @property
    def user_id(self) -> int | None:
        return self.identity.user_id if self.identity is not None else None

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role is Role.admin

    def at(self, location: GeoPoint) -> CallerContext:
        return CallerContext(identity=self.identity, query_location=location)


@dataclass(frozen=True)
class VisibilityDecision:
    allowed: bool
    distance_km: float | None = None
    reason: AccessErrorKind | None = None


def evaluate(caller: CallerContext, issue: IssueRecord, max_radius_km: float) -> VisibilityDecision:
    """Decide whether ``caller`` may see ``issue`` from its query location.

    Rules apply in order: hidden issues look absent to non-privileged callers,
    then the great-circle distance is compared against ``max_radius_km``.
    """

    if issue.is_hidden and not caller.is_privileged:
        return VisibilityDecision(allowed=False, reason=AccessErrorKind.NOT_FOUND)

    if caller.query_location is None:
        raise ValueError("caller location must be resolved before evaluating visibility")

    d = distance_km(caller.query_location, issue.location)
    if d > max_radius_km:
        return VisibilityDecision(allowed=False, distance_km=d, reason=AccessErrorKind.OUT_OF_AREA)
    return VisibilityDecision(allowed=True, distance_km=d)


def is_reporter(caller: CallerContext, issue: IssueRecord) -> bool:
    # Anonymous reports have no owner
    if caller.user_id is None or issue.is_effectively_anonymous:
        return False
    return issue.reporter_id == caller.user_id


def is_assignee(caller: CallerContext, issue: IssueRecord) -> bool:
    return caller.user_id is not None and issue.assignee_id == caller.user_id


def can_edit(caller: CallerContext, issue: IssueRecord) -> bool:
    """Update/delete rights: admin, the reporter, or a moderator on an anonymous report."""

    if caller.is_admin:
        return True
    if issue.is_effectively_anonymous:
        return caller.role is Role.moderator
    return is_reporter(caller, issue)


def can_update_status(caller: CallerContext, issue: IssueRecord) -> bool:
    return caller.is_admin or is_assignee(caller, issue)


def can_view_reporter_contact(caller: CallerContext, issue: IssueRecord) -> bool:
    return caller.is_admin or is_reporter(caller, issue)


__all__ = [
    "CallerContext",
    "Identity",
    "PRIVILEGED_ROLES",
    "Role",
    "VisibilityDecision",
    "can_edit",
    "can_update_status",
    "can_view_reporter_contact",
    "evaluate",
    "is_assignee",
    "is_reporter",
]
