"""Repository abstractions for the service layer.

Repositories hand the service layer frozen records; the access gate and the
redactor work on these records only and never touch ORM objects.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from app.utils.geo import BoundingBox, GeoPoint


@dataclass(frozen=True)
class UserRef:
    id: int | None
    display_name: str
    contact: str | None = None
    role: str = "user"


ANONYMOUS_REPORTER = UserRef(id=None, display_name="Anonymous", contact=None)


@dataclass(frozen=True)
class CommentRecord:
    id: int
    author: UserRef | None
    author_name: str | None
    content: str
    created_at: datetime | None = None
    is_edited: bool = False


@dataclass(frozen=True)
class ActivityRecord:
    action: str
    details: str
    actor: UserRef | None
    actor_name: str | None
    created_at: datetime | None = None


@dataclass(frozen=True)
class FlagRecord:
    user: UserRef | None
    reason: str
    description: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class IssueRecord:
    id: int
    title: str
    description: str
    category: str
    location: GeoPoint
    address: str | None = None
    status: str = "Reported"
    priority: str = "Medium"
    severity: str = "Moderate"
    reporter: UserRef | None = None
    is_anonymous: bool = False
    is_hidden: bool = False
    hidden_reason: str | None = None
    assignee: UserRef | None = None
    is_urgent: bool = False
    affected_area: str | None = None
    upvote_count: int = 0
    upvoter_ids: tuple[int, ...] = ()
    flag_count: int = 0
    images: tuple[str, ...] = ()
    comments: tuple[CommentRecord, ...] = ()
    activity_log: tuple[ActivityRecord, ...] = ()
    flags: tuple[FlagRecord, ...] = ()
    created_at: datetime | None = None
    updated_at: datetime | None = None
    resolved_at: datetime | None = None

    @property
    def reporter_id(self) -> int | None:
        return self.reporter.id if self.reporter is not None else None

    @property
    def is_effectively_anonymous(self) -> bool:
        # A missing reporter id makes the report anonymous whatever the flag says
        return self.is_anonymous or self.reporter_id is None

    @property
    def assignee_id(self) -> int | None:
        return self.assignee.id if self.assignee is not None else None


@dataclass(frozen=True)
class NewIssue:
    title: str
    description: str
    category: str
    location: GeoPoint
    address: str | None
    reporter_id: int | None
    is_anonymous: bool
    priority: str = "Medium"
    severity: str = "Moderate"
    is_urgent: bool = False
    affected_area: str | None = None
    images: tuple[str, ...] = ()


@dataclass(frozen=True)
class CandidateQuery:
    """Coarse storage-side filter; the access gate re-checks every row."""

    box: BoundingBox
    include_hidden: bool = False
    category: str | None = None
    status: str | None = None
    search: str | None = None
    reporter_id: int | None = None
    sort_by: str = "created_at"
    descending: bool = True


@dataclass
class IssueStats:
    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_category: dict[str, int] = field(default_factory=dict)
    by_month: list[tuple[int, int, int]] = field(default_factory=list)


class IssueRepository(Protocol):
    """Read/write boundary for issues and their embedded collections."""

    async def get(self, issue_id: int) -> IssueRecord | None: ...

    async def list_candidates(self, query: CandidateQuery) -> list[IssueRecord]: ...

    async def list_flagged(
        self, *, min_flags: int, offset: int, limit: int
    ) -> tuple[list[IssueRecord], int]: ...

    async def create(self, data: NewIssue) -> IssueRecord: ...

    async def update(self, issue_id: int, changes: Mapping[str, object]) -> None: ...

    async def delete(self, issue_id: int) -> bool: ...

    async def add_activity(
        self,
        issue_id: int,
        *,
        action: str,
        details: str,
        actor_id: int | None,
        actor_name: str | None,
    ) -> None: ...

    async def add_comment(
        self, issue_id: int, *, author_id: int, author_name: str, content: str
    ) -> None: ...

    async def add_flag(
        self, issue_id: int, *, user_id: int, reason: str, description: str | None
    ) -> int: ...

    async def remove_flag(self, issue_id: int, *, user_id: int) -> int: ...

    async def add_upvote(self, issue_id: int, *, user_id: int) -> int: ...

    async def remove_upvote(self, issue_id: int, *, user_id: int) -> int: ...

    async def stats(self) -> IssueStats: ...


class UserRepository(Protocol):
    async def get(self, user_id: int) -> UserRef | None: ...
