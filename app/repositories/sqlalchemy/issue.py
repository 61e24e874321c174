"""SQLAlchemy implementation of the issue repository."""

from __future__ import annotations

from collections.abc import Mapping

from sqlalchemy import Select, case, delete, extract, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import ConflictError
from app.models import Issue, IssueActivity, IssueComment, IssueFlag, IssueImage, IssueUpvote
from app.repositories.interfaces import (
    ActivityRecord,
    CandidateQuery,
    CommentRecord,
    FlagRecord,
    IssueRecord,
    IssueRepository,
    IssueStats,
    NewIssue,
)
from app.repositories.sqlalchemy.user import user_ref
from app.utils.geo import GeoPoint

_UPDATABLE = frozenset(
    {
        "title",
        "description",
        "category",
        "priority",
        "severity",
        "address",
        "is_urgent",
        "affected_area",
        "status",
        "resolved_at",
        "is_hidden",
        "hidden_reason",
        "assignee_id",
        "assigned_at",
    }
)

_PRIORITY_RANK = case(
    {"Low": 0, "Medium": 1, "High": 2, "Critical": 3},
    value=Issue.priority,
    else_=1,
)


def _with_children(stmt):  # type: ignore[no-untyped-def]
    return stmt.options(
        selectinload(Issue.reporter),
        selectinload(Issue.assignee),
        selectinload(Issue.comments).selectinload(IssueComment.user),
        selectinload(Issue.activity_log).selectinload(IssueActivity.actor),
        selectinload(Issue.flags).selectinload(IssueFlag.user),
        selectinload(Issue.upvotes),
        selectinload(Issue.images),
    )


def _to_record(issue: Issue) -> IssueRecord:
    return IssueRecord(
        id=int(issue.id),
        title=issue.title,
        description=issue.description,
        category=issue.category,
        location=GeoPoint(float(issue.latitude), float(issue.longitude)),
        address=issue.address,
        status=issue.status,
        priority=issue.priority,
        severity=issue.severity,
        reporter=user_ref(issue.reporter),
        is_anonymous=bool(issue.is_anonymous),
        is_hidden=bool(issue.is_hidden),
        hidden_reason=issue.hidden_reason,
        assignee=user_ref(issue.assignee),
        is_urgent=bool(issue.is_urgent),
        affected_area=issue.affected_area,
        upvote_count=int(issue.upvote_count or 0),
        upvoter_ids=tuple(int(u.user_id) for u in issue.upvotes),
        flag_count=int(issue.flag_count or 0),
        images=tuple(img.url for img in issue.images),
        comments=tuple(
            CommentRecord(
                id=int(c.id),
                author=user_ref(c.user),
                author_name=c.username,
                content=c.content,
                created_at=c.created_at,
                is_edited=bool(c.is_edited),
            )
            for c in issue.comments
        ),
        activity_log=tuple(
            ActivityRecord(
                action=a.action,
                details=a.details,
                actor=user_ref(a.actor),
                actor_name=a.actor_name,
                created_at=a.created_at,
            )
            for a in issue.activity_log
        ),
        flags=tuple(
            FlagRecord(
                user=user_ref(f.user),
                reason=f.reason,
                description=f.description,
                created_at=f.created_at,
            )
            for f in issue.flags
        ),
        created_at=issue.created_at,
        updated_at=issue.updated_at,
        resolved_at=issue.resolved_at,
    )


def like_pattern(term: str) -> str:
    """Substring ILIKE pattern with the user's ``%``/``_`` taken literally."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def candidate_statement(query: CandidateQuery) -> Select:
    """Coarse bounding-box query; exact radius filtering happens in the gate."""
    box = query.box
    stmt = select(Issue).where(
        Issue.latitude.between(box.min_lat, box.max_lat),
        # Two ranges when the box crosses the antimeridian
        or_(*(Issue.longitude.between(lo, hi) for lo, hi in box.lng_ranges())),
    )
    if not query.include_hidden:
        stmt = stmt.where(Issue.is_hidden.is_(False))
    if query.category:
        stmt = stmt.where(Issue.category == query.category)
    if query.status:
        stmt = stmt.where(Issue.status == query.status)
    if query.reporter_id is not None:
        stmt = stmt.where(Issue.reporter_id == query.reporter_id)
    if query.search:
        pattern = like_pattern(query.search)
        stmt = stmt.where(
            or_(
                Issue.title.ilike(pattern, escape="\\"),
                Issue.description.ilike(pattern, escape="\\"),
                Issue.address.ilike(pattern, escape="\\"),
            )
        )

    if query.sort_by == "upvote_count":
        key = Issue.upvote_count
    elif query.sort_by == "priority":
        key = _PRIORITY_RANK
    else:
        key = Issue.created_at
    order = key.desc() if query.descending else key.asc()
    return stmt.order_by(order, Issue.id.desc())


class SqlAlchemyIssueRepository(IssueRepository):
    """Default SQLAlchemy-backed implementation."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, issue_id: int) -> IssueRecord | None:
        stmt = _with_children(select(Issue).where(Issue.id == issue_id)).execution_options(
            populate_existing=True
        )
        issue = (await self._session.scalars(stmt)).first()
        return _to_record(issue) if issue is not None else None

    async def list_candidates(self, query: CandidateQuery) -> list[IssueRecord]:
        stmt = _with_children(candidate_statement(query))
        return [_to_record(i) for i in (await self._session.scalars(stmt)).all()]

    async def list_flagged(
        self, *, min_flags: int, offset: int, limit: int
    ) -> tuple[list[IssueRecord], int]:
        cond = Issue.flag_count >= max(1, min_flags)
        total = await self._session.scalar(select(func.count()).select_from(Issue).where(cond))
        stmt = _with_children(
            select(Issue)
            .where(cond)
            .order_by(Issue.flag_count.desc(), Issue.created_at.desc(), Issue.id.desc())
            .offset(offset)
            .limit(limit)
        )
        rows = (await self._session.scalars(stmt)).all()
        return [_to_record(i) for i in rows], int(total or 0)

    async def create(self, data: NewIssue) -> IssueRecord:
        issue = Issue(
            title=data.title,
            description=data.description,
            category=data.category,
            priority=data.priority,
            severity=data.severity,
            latitude=data.location.latitude,
            longitude=data.location.longitude,
            address=data.address,
            reporter_id=data.reporter_id,
            is_anonymous=data.is_anonymous,
            is_urgent=data.is_urgent,
            affected_area=data.affected_area,
        )
        self._session.add(issue)
        await self._session.flush()
        for url in data.images:
            self._session.add(IssueImage(issue_id=issue.id, url=url))
        await self._session.flush()
        record = await self.get(int(issue.id))
        assert record is not None
        return record

    async def update(self, issue_id: int, changes: Mapping[str, object]) -> None:
        issue = await self._session.get(Issue, issue_id)
        if issue is None:
            return
        for key, value in changes.items():
            if key == "location":
                assert isinstance(value, GeoPoint)
                issue.latitude = value.latitude
                issue.longitude = value.longitude
            elif key in _UPDATABLE:
                setattr(issue, key, value)
            else:
                raise ValueError(f"field {key!r} is not updatable")
        await self._session.flush()

    async def delete(self, issue_id: int) -> bool:
        result = await self._session.execute(delete(Issue).where(Issue.id == issue_id))
        return bool(result.rowcount)

    async def add_activity(
        self,
        issue_id: int,
        *,
        action: str,
        details: str,
        actor_id: int | None,
        actor_name: str | None,
    ) -> None:
        self._session.add(
            IssueActivity(
                issue_id=issue_id,
                action=action,
                details=details,
                actor_id=actor_id,
                actor_name=actor_name,
            )
        )
        await self._session.flush()

    async def add_comment(
        self, issue_id: int, *, author_id: int, author_name: str, content: str
    ) -> None:
        self._session.add(
            IssueComment(issue_id=issue_id, user_id=author_id, username=author_name, content=content)
        )
        await self._session.flush()

    async def _sync_flag_count(self, issue_id: int) -> int:
        count = await self._session.scalar(
            select(func.count()).select_from(IssueFlag).where(IssueFlag.issue_id == issue_id)
        )
        issue = await self._session.get(Issue, issue_id)
        if issue is not None:
            issue.flag_count = int(count or 0)
        await self._session.flush()
        return int(count or 0)

    async def add_flag(
        self, issue_id: int, *, user_id: int, reason: str, description: str | None
    ) -> int:
        self._session.add(
            IssueFlag(issue_id=issue_id, user_id=user_id, reason=reason, description=description)
        )
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise ConflictError("User has already flagged this issue") from exc
        return await self._sync_flag_count(issue_id)

    async def remove_flag(self, issue_id: int, *, user_id: int) -> int:
        await self._session.execute(
            delete(IssueFlag).where(IssueFlag.issue_id == issue_id, IssueFlag.user_id == user_id)
        )
        return await self._sync_flag_count(issue_id)

    async def _sync_upvote_count(self, issue_id: int) -> int:
        count = await self._session.scalar(
            select(func.count()).select_from(IssueUpvote).where(IssueUpvote.issue_id == issue_id)
        )
        issue = await self._session.get(Issue, issue_id)
        if issue is not None:
            issue.upvote_count = int(count or 0)
        await self._session.flush()
        return int(count or 0)

    async def add_upvote(self, issue_id: int, *, user_id: int) -> int:
        existing = await self._session.get(IssueUpvote, (issue_id, user_id))
        if existing is None:
            try:
                # Savepoint so a duplicate key does not abort the outer transaction
                async with self._session.begin_nested():
                    self._session.add(IssueUpvote(issue_id=issue_id, user_id=user_id))
            except IntegrityError:
                # A concurrent request recorded the same vote; upvoting is idempotent
                pass
        return await self._sync_upvote_count(issue_id)

    async def remove_upvote(self, issue_id: int, *, user_id: int) -> int:
        await self._session.execute(
            delete(IssueUpvote).where(
                IssueUpvote.issue_id == issue_id, IssueUpvote.user_id == user_id
            )
        )
        return await self._sync_upvote_count(issue_id)

    async def stats(self) -> IssueStats:
        total = await self._session.scalar(select(func.count()).select_from(Issue))

        by_status = await self._session.execute(
            select(Issue.status, func.count()).group_by(Issue.status)
        )
        by_category = await self._session.execute(
            select(Issue.category, func.count())
            .group_by(Issue.category)
            .order_by(func.count().desc())
        )
        year = extract("year", Issue.created_at)
        month = extract("month", Issue.created_at)
        by_month = await self._session.execute(
            select(year, month, func.count())
            .group_by(year, month)
            .order_by(year.desc(), month.desc())
            .limit(12)
        )
        return IssueStats(
            total=int(total or 0),
            by_status={str(s): int(n) for s, n in by_status.all()},
            by_category={str(c): int(n) for c, n in by_category.all()},
            by_month=[(int(y), int(m), int(n)) for y, m, n in by_month.all()],
        )
