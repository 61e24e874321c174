"""Issue use cases: every read and write runs through the access gate."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from app.core.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    InvalidLocationError,
    NotFoundError,
)
from app.dto import (
    CallerLocationDTO,
    FlagResultDTO,
    IssueDTO,
    IssueListPageDTO,
    IssueMapDTO,
    IssueStatsDTO,
    MonthCountDTO,
    UpvoteResultDTO,
)
from app.dto.mappers import map_issue_to_detail, map_issue_to_map_item, map_issue_to_summary
from app.infra.unit_of_work import UnitOfWork
from app.repositories.interfaces import CandidateQuery, IssueRecord, NewIssue
from app.schemas.issue import (
    CommentCreateRequest,
    FlagCreateRequest,
    IssueCreateRequest,
    IssueListQuery,
    IssueStatus,
    IssueUpdateRequest,
    StatusUpdateRequest,
)
from app.services.access_gate import AccessGate, LocatedIssue, RawNumber
from app.services.redaction import ANONYMOUS_NAME, redact
from app.services.visibility import CallerContext, Identity, can_edit, can_update_status
from app.utils.geo import bounding_box, distance_km, parse_location_string

UnitOfWorkFactory = Callable[[], UnitOfWork]

logger = structlog.get_logger(__name__)

AUTO_HIDDEN_REASON = "Auto-hidden due to multiple spam flags"
MAP_ITEM_LIMIT = 500


def _require_identity(identity: Identity | None) -> Identity:
    if identity is None:
        raise AuthenticationError("Authentication required")
    return identity


def _now() -> datetime:
    return datetime.now(UTC)


class IssueService:
    """Use cases behind the /issues routes."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        gate: AccessGate,
        *,
        spam_flag_threshold: int = 5,
    ) -> None:
        self._uow_factory = uow_factory
        self._gate = gate
        self._spam_flag_threshold = spam_flag_threshold

    # --- helpers ---

    def _locate(
        self,
        identity: Identity | None,
        latitude: RawNumber,
        longitude: RawNumber,
        location: str | None = None,
    ) -> CallerContext:
        if latitude in (None, "") and longitude in (None, "") and location:
            point = parse_location_string(location)
            if point is None:
                raise InvalidLocationError("Invalid location coordinates provided")
            latitude, longitude = point.latitude, point.longitude
        point = self._gate.require_location(latitude, longitude)
        return CallerContext(identity=identity).at(point)

    def _caller_location(self, caller: CallerContext) -> CallerLocationDTO:
        assert caller.query_location is not None
        return CallerLocationDTO(
            latitude=caller.query_location.latitude,
            longitude=caller.query_location.longitude,
            max_allowed_distance_km=self._gate.max_radius_km,
        )

    async def _guarded(self, uow: UnitOfWork, issue_id: int, caller: CallerContext) -> LocatedIssue:
        return self._gate.guard_single_item(await uow.issues.get(issue_id), caller)

    async def _detail(self, uow: UnitOfWork, issue_id: int, caller: CallerContext) -> IssueDTO:
        # Re-read after a write; the caller already passed the gate for this id
        issue = await uow.issues.get(issue_id)
        if issue is None:
            raise NotFoundError("Issue not found")
        assert caller.query_location is not None
        return map_issue_to_detail(
            redact(issue, caller),
            distance_km=distance_km(caller.query_location, issue.location),
        )

    async def _display_name(self, uow: UnitOfWork, identity: Identity) -> str:
        if identity.username:
            return identity.username
        user = await uow.users.get(identity.user_id)
        return user.display_name if user is not None else f"user-{identity.user_id}"

    async def _candidates(
        self,
        uow: UnitOfWork,
        caller: CallerContext,
        query: IssueListQuery,
        radius_km: float,
        *,
        reporter_id: int | None = None,
    ) -> list[IssueRecord]:
        assert caller.query_location is not None
        return await uow.issues.list_candidates(
            CandidateQuery(
                # Padded so the box never clips what the rounded haversine check admits
                box=bounding_box(caller.query_location, radius_km * 1.01 + 0.01),
                include_hidden=caller.is_privileged,
                category=query.category.value if query.category else None,
                status=query.status.value if query.status else None,
                search=query.search,
                reporter_id=reporter_id,
                sort_by=query.sort_by,
                descending=query.sort_order == "desc",
            )
        )

    def _page(
        self, caller: CallerContext, visible: list[LocatedIssue], query: IssueListQuery
    ) -> IssueListPageDTO:
        start = (query.page - 1) * query.limit
        window = visible[start : start + query.limit]
        return IssueListPageDTO(
            items=[
                map_issue_to_summary(redact(li.issue, caller), distance_km=li.distance_km)
                for li in window
            ],
            total=len(visible),
            page=query.page,
            limit=query.limit,
            has_more=start + len(window) < len(visible),
            user_location=self._caller_location(caller),
        )

    # --- reads ---

    async def list_issues(
        self, identity: Identity | None, query: IssueListQuery
    ) -> IssueListPageDTO:
        caller = self._locate(identity, query.latitude, query.longitude, query.location)
        radius = self._gate.resolve_radius(query.distance)
        async with self._uow_factory() as uow:
            candidates = await self._candidates(uow, caller, query, radius)
        visible = self._gate.filter_collection(candidates, caller, radius_km=radius)
        return self._page(caller, visible, query)

    async def list_user_issues(
        self, identity: Identity | None, user_id: int, query: IssueListQuery
    ) -> IssueListPageDTO:
        caller = self._locate(identity, query.latitude, query.longitude, query.location)
        radius = self._gate.resolve_radius(query.distance)
        async with self._uow_factory() as uow:
            candidates = await self._candidates(uow, caller, query, radius, reporter_id=user_id)
        # Anonymous reports never count as the user's own, whatever the stored flag
        candidates = [c for c in candidates if not c.is_effectively_anonymous]
        visible = self._gate.filter_collection(candidates, caller, radius_km=radius)
        return self._page(caller, visible, query)

    async def map_issues(
        self, identity: Identity | None, query: IssueListQuery, bounds: str | None
    ) -> IssueMapDTO:
        caller = self._locate(identity, query.latitude, query.longitude, query.location)
        radius = self._gate.resolve_radius(query.distance)
        viewport = self._gate.parse_viewport(bounds)
        async with self._uow_factory() as uow:
            candidates = await self._candidates(uow, caller, query, radius)
        visible = self._gate.filter_collection(
            candidates, caller, radius_km=radius, viewport=viewport
        )
        return IssueMapDTO(
            items=[
                map_issue_to_map_item(redact(li.issue, caller), distance_km=li.distance_km)
                for li in visible[:MAP_ITEM_LIMIT]
            ],
            # Count of every visible match, not just the plotted ones
            total=len(visible),
            user_location=self._caller_location(caller),
        )

    async def get_issue(
        self,
        identity: Identity | None,
        issue_id: int,
        latitude: RawNumber,
        longitude: RawNumber,
    ) -> IssueDTO:
        caller = self._locate(identity, latitude, longitude)
        async with self._uow_factory() as uow:
            located = await self._guarded(uow, issue_id, caller)
        return map_issue_to_detail(redact(located.issue, caller), distance_km=located.distance_km)

    async def stats(self) -> IssueStatsDTO:
        async with self._uow_factory() as uow:
            stats = await uow.issues.stats()
        return IssueStatsDTO(
            total=stats.total,
            by_status=dict(stats.by_status),
            by_category=dict(stats.by_category),
            by_month=[MonthCountDTO(year=y, month=m, count=n) for y, m, n in stats.by_month],
        )

    # --- writes ---

    async def create_issue(self, identity: Identity | None, payload: IssueCreateRequest) -> IssueDTO:
        point = self._gate.require_location(
            payload.latitude, payload.longitude, purpose="reporting an issue"
        )
        caller = CallerContext(identity=identity).at(point)
        anonymous = identity is None or payload.is_anonymous

        async with self._uow_factory() as uow:
            created = await uow.issues.create(
                NewIssue(
                    title=payload.title,
                    description=payload.description,
                    category=payload.category.value,
                    location=point,
                    address=payload.address,
                    reporter_id=None if anonymous else identity.user_id,  # type: ignore[union-attr]
                    is_anonymous=anonymous,
                    priority=payload.priority.value,
                    severity=payload.severity.value,
                    is_urgent=payload.is_urgent,
                    affected_area=payload.affected_area,
                    images=tuple(str(url) for url in payload.images),
                )
            )
            if anonymous:
                actor_id, actor_name = None, ANONYMOUS_NAME
            else:
                assert identity is not None
                actor_id, actor_name = identity.user_id, await self._display_name(uow, identity)
            await uow.issues.add_activity(
                created.id,
                action="Created",
                details="Issue reported",
                actor_id=actor_id,
                actor_name=actor_name,
            )
            await self._guarded(uow, created.id, caller)
            dto = await self._detail(uow, created.id, caller)

        logger.info("issue_created", issue_id=created.id, anonymous=anonymous)
        return dto

    async def update_issue(
        self,
        identity: Identity | None,
        issue_id: int,
        latitude: RawNumber,
        longitude: RawNumber,
        payload: IssueUpdateRequest,
    ) -> IssueDTO:
        who = _require_identity(identity)
        caller = self._locate(who, latitude, longitude)

        changes: dict[str, object] = payload.model_dump(
            mode="json",
            exclude_unset=True,
            exclude_none=True,
            exclude={"latitude", "longitude"},
        )
        if "latitude" in payload.model_fields_set or "longitude" in payload.model_fields_set:
            changes["location"] = self._gate.require_location(
                payload.latitude, payload.longitude, purpose="moving an issue"
            )

        async with self._uow_factory() as uow:
            located = await self._guarded(uow, issue_id, caller)
            if not can_edit(caller, located.issue):
                raise ForbiddenError("You do not have permission to modify this issue")
            if changes:
                await uow.issues.update(issue_id, changes)
                await uow.issues.add_activity(
                    issue_id,
                    action="Updated",
                    details="Issue details updated",
                    actor_id=who.user_id,
                    actor_name=await self._display_name(uow, who),
                )
            return await self._detail(uow, issue_id, caller)

    async def delete_issue(
        self,
        identity: Identity | None,
        issue_id: int,
        latitude: RawNumber,
        longitude: RawNumber,
    ) -> None:
        who = _require_identity(identity)
        caller = self._locate(who, latitude, longitude)
        async with self._uow_factory() as uow:
            located = await self._guarded(uow, issue_id, caller)
            if not can_edit(caller, located.issue):
                raise ForbiddenError("You do not have permission to delete this issue")
            await uow.issues.delete(issue_id)
        logger.info("issue_deleted", issue_id=issue_id, user_id=who.user_id)

    async def update_status(
        self,
        identity: Identity | None,
        issue_id: int,
        latitude: RawNumber,
        longitude: RawNumber,
        payload: StatusUpdateRequest,
    ) -> IssueDTO:
        who = _require_identity(identity)
        caller = self._locate(who, latitude, longitude)
        async with self._uow_factory() as uow:
            located = await self._guarded(uow, issue_id, caller)
            if not can_update_status(caller, located.issue):
                raise ForbiddenError("Only admins or the assigned user can update the status")

            old = located.issue.status
            new = payload.status.value
            changes: dict[str, object] = {"status": new}
            if payload.status is IssueStatus.resolved:
                changes["resolved_at"] = _now()
            elif old == IssueStatus.resolved.value:
                changes["resolved_at"] = None
            await uow.issues.update(issue_id, changes)

            details = f"Status changed from {old} to {new}"
            if payload.notes:
                details = f"{details}: {payload.notes}"
            await uow.issues.add_activity(
                issue_id,
                action="Status Updated",
                details=details,
                actor_id=who.user_id,
                actor_name=await self._display_name(uow, who),
            )
            return await self._detail(uow, issue_id, caller)

    async def add_comment(
        self,
        identity: Identity | None,
        issue_id: int,
        latitude: RawNumber,
        longitude: RawNumber,
        payload: CommentCreateRequest,
    ) -> IssueDTO:
        who = _require_identity(identity)
        caller = self._locate(who, latitude, longitude)
        async with self._uow_factory() as uow:
            await self._guarded(uow, issue_id, caller)
            name = await self._display_name(uow, who)
            await uow.issues.add_comment(
                issue_id, author_id=who.user_id, author_name=name, content=payload.content
            )
            await uow.issues.add_activity(
                issue_id,
                action="Comment Added",
                details="New comment added",
                actor_id=who.user_id,
                actor_name=name,
            )
            return await self._detail(uow, issue_id, caller)

    async def flag(
        self,
        identity: Identity | None,
        issue_id: int,
        latitude: RawNumber,
        longitude: RawNumber,
        payload: FlagCreateRequest,
    ) -> FlagResultDTO:
        who = _require_identity(identity)
        caller = self._locate(who, latitude, longitude)
        async with self._uow_factory() as uow:
            issue = (await self._guarded(uow, issue_id, caller)).issue
            if any(f.user is not None and f.user.id == who.user_id for f in issue.flags):
                raise ConflictError("You have already flagged this issue")

            count = await uow.issues.add_flag(
                issue_id,
                user_id=who.user_id,
                reason=payload.reason.value,
                description=payload.description,
            )
            await uow.issues.add_activity(
                issue_id,
                action="Flagged",
                details=f"Issue flagged as {payload.reason.value}",
                actor_id=who.user_id,
                actor_name=await self._display_name(uow, who),
            )
            hidden = issue.is_hidden
            if count >= self._spam_flag_threshold and not hidden:
                hidden = True
                await uow.issues.update(
                    issue_id, {"is_hidden": True, "hidden_reason": AUTO_HIDDEN_REASON}
                )
                await uow.issues.add_activity(
                    issue_id,
                    action="Hidden",
                    details=AUTO_HIDDEN_REASON,
                    actor_id=None,
                    actor_name=None,
                )
                logger.info("issue_auto_hidden", issue_id=issue_id, flag_count=count)

        return FlagResultDTO(message="Issue flagged successfully", flag_count=count, is_hidden=hidden)

    async def unflag(
        self,
        identity: Identity | None,
        issue_id: int,
        latitude: RawNumber,
        longitude: RawNumber,
    ) -> FlagResultDTO:
        who = _require_identity(identity)
        caller = self._locate(who, latitude, longitude)
        async with self._uow_factory() as uow:
            issue = (await self._guarded(uow, issue_id, caller)).issue
            if not any(f.user is not None and f.user.id == who.user_id for f in issue.flags):
                raise NotFoundError("You have not flagged this issue")

            count = await uow.issues.remove_flag(issue_id, user_id=who.user_id)
            hidden = issue.is_hidden
            # Manual moderator hides stay in place
            auto_hidden = hidden and issue.hidden_reason == AUTO_HIDDEN_REASON
            if auto_hidden and count < self._spam_flag_threshold:
                hidden = False
                await uow.issues.update(issue_id, {"is_hidden": False, "hidden_reason": None})
                await uow.issues.add_activity(
                    issue_id,
                    action="Unhidden",
                    details="Flag count dropped below the threshold",
                    actor_id=None,
                    actor_name=None,
                )

        return FlagResultDTO(message="Flag removed", flag_count=count, is_hidden=hidden)

    async def upvote(
        self,
        identity: Identity | None,
        issue_id: int,
        latitude: RawNumber,
        longitude: RawNumber,
    ) -> UpvoteResultDTO:
        who = _require_identity(identity)
        caller = self._locate(who, latitude, longitude)
        async with self._uow_factory() as uow:
            await self._guarded(uow, issue_id, caller)
            count = await uow.issues.add_upvote(issue_id, user_id=who.user_id)
        return UpvoteResultDTO(message="Issue upvoted", upvote_count=count, has_upvoted=True)

    async def remove_upvote(
        self,
        identity: Identity | None,
        issue_id: int,
        latitude: RawNumber,
        longitude: RawNumber,
    ) -> UpvoteResultDTO:
        who = _require_identity(identity)
        caller = self._locate(who, latitude, longitude)
        async with self._uow_factory() as uow:
            await self._guarded(uow, issue_id, caller)
            count = await uow.issues.remove_upvote(issue_id, user_id=who.user_id)
        return UpvoteResultDTO(message="Upvote removed", upvote_count=count, has_upvoted=False)


__all__ = ["AUTO_HIDDEN_REASON", "IssueService", "UnitOfWorkFactory"]
