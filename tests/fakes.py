"""In-memory repositories and a stub Unit of Work for service and API tests."""

from __future__ import annotations

import itertools
from collections.abc import Mapping
from dataclasses import fields, replace
from datetime import UTC, datetime, timedelta

from app.core.config import GeoAccessConfig
from app.core.exceptions import ConflictError
from app.infra.jwt import encode_access
from app.repositories.interfaces import (
    ActivityRecord,
    CandidateQuery,
    CommentRecord,
    FlagRecord,
    IssueRecord,
    IssueStats,
    NewIssue,
    UserRef,
)
from app.services.access_gate import AccessGate
from app.services.issues import IssueService
from app.services.moderation import ModerationService
from app.utils.geo import GeoPoint

# Pune city centre; every fixture issue is placed relative to it
CENTER = GeoPoint(18.5204, 73.8567)
NEAR = GeoPoint(18.5205, 73.8568)  # ~15m
MID = GeoPoint(18.5384, 73.8567)  # ~2km north
FAR = GeoPoint(18.60, 73.90)  # ~9.9km

_PRIORITY_RANK = {"Low": 0, "Medium": 1, "High": 2, "Critical": 3}
_RECORD_FIELDS = {f.name for f in fields(IssueRecord)}
_BASE_TIME = datetime(2024, 5, 1, 9, 0, tzinfo=UTC)


class InMemoryStore:
    def __init__(self) -> None:
        self.issues: dict[int, IssueRecord] = {}
        self.users: dict[int, UserRef] = {}
        self._issue_ids = itertools.count(1)
        self._child_ids = itertools.count(1)
        self._ticks = itertools.count()

    def now(self) -> datetime:
        # Strictly increasing so created_at ordering is deterministic
        return _BASE_TIME + timedelta(minutes=next(self._ticks))

    def add_user(
        self, user_id: int, name: str, *, role: str = "user", contact: str | None = None
    ) -> UserRef:
        ref = UserRef(
            id=user_id, display_name=name, contact=contact or f"{name}@example.com", role=role
        )
        self.users[user_id] = ref
        return ref

    def user(self, user_id: int | None) -> UserRef | None:
        if user_id is None:
            return None
        return self.users.get(user_id) or UserRef(id=user_id, display_name=f"user-{user_id}")

    def add_issue(
        self,
        location: GeoPoint,
        *,
        title: str = "Pothole on main road",
        reporter_id: int | None = None,
        is_anonymous: bool = False,
        **extra: object,
    ) -> IssueRecord:
        issue_id = next(self._issue_ids)
        record = IssueRecord(
            id=issue_id,
            title=title,
            description=f"{title} needs attention",
            category=str(extra.pop("category", "Roads")),
            location=location,
            reporter=None if is_anonymous else self.user(reporter_id),
            is_anonymous=is_anonymous,
            created_at=self.now(),
        )
        record = replace(record, **extra)
        self.issues[issue_id] = record
        return record


class InMemoryIssueRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def _set(self, issue_id: int, **changes: object) -> IssueRecord:
        record = replace(self._store.issues[issue_id], **changes)
        self._store.issues[issue_id] = record
        return record

    async def get(self, issue_id: int) -> IssueRecord | None:
        return self._store.issues.get(issue_id)

    async def list_candidates(self, query: CandidateQuery) -> list[IssueRecord]:
        out = []
        for issue in self._store.issues.values():
            if not query.box.contains(issue.location):
                continue
            if issue.is_hidden and not query.include_hidden:
                continue
            if query.category and issue.category != query.category:
                continue
            if query.status and issue.status != query.status:
                continue
            if query.reporter_id is not None and issue.reporter_id != query.reporter_id:
                continue
            if query.search:
                needle = query.search.lower()
                haystack = " ".join(
                    [issue.title, issue.description, issue.address or ""]
                ).lower()
                if needle not in haystack:
                    continue
            out.append(issue)

        def key(issue: IssueRecord) -> object:
            if query.sort_by == "upvote_count":
                return issue.upvote_count
            if query.sort_by == "priority":
                return _PRIORITY_RANK.get(issue.priority, 1)
            return issue.created_at

        return sorted(out, key=lambda i: (key(i), i.id), reverse=query.descending)

    async def list_flagged(
        self, *, min_flags: int, offset: int, limit: int
    ) -> tuple[list[IssueRecord], int]:
        flagged = [i for i in self._store.issues.values() if i.flag_count >= max(1, min_flags)]
        flagged.sort(key=lambda i: (i.flag_count, i.created_at, i.id), reverse=True)
        return flagged[offset : offset + limit], len(flagged)

    async def create(self, data: NewIssue) -> IssueRecord:
        record = self._store.add_issue(
            data.location,
            title=data.title,
            reporter_id=data.reporter_id,
            is_anonymous=data.is_anonymous,
            description=data.description,
            category=data.category,
            address=data.address,
            priority=data.priority,
            severity=data.severity,
            is_urgent=data.is_urgent,
            affected_area=data.affected_area,
            images=data.images,
        )
        return record

    async def update(self, issue_id: int, changes: Mapping[str, object]) -> None:
        if issue_id not in self._store.issues:
            return
        values: dict[str, object] = {}
        for key, value in changes.items():
            if key == "assignee_id":
                values["assignee"] = self._store.user(value)  # type: ignore[arg-type]
            elif key == "assigned_at":
                continue
            elif key in _RECORD_FIELDS:
                values[key] = value
            else:
                raise ValueError(f"field {key!r} is not updatable")
        values["updated_at"] = self._store.now()
        self._set(issue_id, **values)

    async def delete(self, issue_id: int) -> bool:
        return self._store.issues.pop(issue_id, None) is not None

    async def add_activity(
        self,
        issue_id: int,
        *,
        action: str,
        details: str,
        actor_id: int | None,
        actor_name: str | None,
    ) -> None:
        issue = self._store.issues[issue_id]
        entry = ActivityRecord(
            action=action,
            details=details,
            actor=self._store.user(actor_id),
            actor_name=actor_name,
            created_at=self._store.now(),
        )
        self._set(issue_id, activity_log=issue.activity_log + (entry,))

    async def add_comment(
        self, issue_id: int, *, author_id: int, author_name: str, content: str
    ) -> None:
        issue = self._store.issues[issue_id]
        comment = CommentRecord(
            id=next(self._store._child_ids),
            author=self._store.user(author_id),
            author_name=author_name,
            content=content,
            created_at=self._store.now(),
        )
        self._set(issue_id, comments=issue.comments + (comment,))

    async def add_flag(
        self, issue_id: int, *, user_id: int, reason: str, description: str | None
    ) -> int:
        issue = self._store.issues[issue_id]
        if any(f.user is not None and f.user.id == user_id for f in issue.flags):
            raise ConflictError("User has already flagged this issue")
        flag = FlagRecord(
            user=self._store.user(user_id),
            reason=reason,
            description=description,
            created_at=self._store.now(),
        )
        flags = issue.flags + (flag,)
        self._set(issue_id, flags=flags, flag_count=len(flags))
        return len(flags)

    async def remove_flag(self, issue_id: int, *, user_id: int) -> int:
        issue = self._store.issues[issue_id]
        flags = tuple(f for f in issue.flags if f.user is None or f.user.id != user_id)
        self._set(issue_id, flags=flags, flag_count=len(flags))
        return len(flags)

    async def add_upvote(self, issue_id: int, *, user_id: int) -> int:
        issue = self._store.issues[issue_id]
        voters = issue.upvoter_ids
        if user_id not in voters:
            voters = voters + (user_id,)
        self._set(issue_id, upvoter_ids=voters, upvote_count=len(voters))
        return len(voters)

    async def remove_upvote(self, issue_id: int, *, user_id: int) -> int:
        issue = self._store.issues[issue_id]
        voters = tuple(v for v in issue.upvoter_ids if v != user_id)
        self._set(issue_id, upvoter_ids=voters, upvote_count=len(voters))
        return len(voters)

    async def stats(self) -> IssueStats:
        stats = IssueStats(total=len(self._store.issues))
        months: dict[tuple[int, int], int] = {}
        for issue in self._store.issues.values():
            stats.by_status[issue.status] = stats.by_status.get(issue.status, 0) + 1
            stats.by_category[issue.category] = stats.by_category.get(issue.category, 0) + 1
            if issue.created_at is not None:
                ym = (issue.created_at.year, issue.created_at.month)
                months[ym] = months.get(ym, 0) + 1
        stats.by_month = [(y, m, n) for (y, m), n in sorted(months.items(), reverse=True)]
        return stats


class InMemoryUserRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    async def get(self, user_id: int) -> UserRef | None:
        return self._store.users.get(user_id)


class StubUnitOfWork:
    def __init__(self, store: InMemoryStore):
        self.issues = InMemoryIssueRepository(store)
        self.users = InMemoryUserRepository(store)
        self.committed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.committed = exc_type is None
        return False

    async def commit(self) -> None:  # pragma: no cover - not used
        return None

    async def rollback(self) -> None:  # pragma: no cover - not used
        return None


def make_gate(max_km: float = 5.0, default_km: float = 5.0) -> AccessGate:
    return AccessGate(
        GeoAccessConfig(max_search_radius_km=max_km, default_search_radius_km=default_km)
    )


def make_issue_service(store: InMemoryStore, *, spam_flag_threshold: int = 5) -> IssueService:
    return IssueService(
        lambda: StubUnitOfWork(store), make_gate(), spam_flag_threshold=spam_flag_threshold
    )


def make_moderation_service(store: InMemoryStore) -> ModerationService:
    return ModerationService(lambda: StubUnitOfWork(store))


def bearer(user_id: int, role: str = "user", username: str = "") -> dict[str, str]:
    claims: dict[str, object] = {"sub": str(user_id), "role": role}
    if username:
        claims["username"] = username
    return {"Authorization": f"Bearer {encode_access(claims)}"}
