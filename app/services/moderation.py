"""Moderation queue, review and assignment for privileged callers.

These routes carry no caller location: moderators and admins act on issues
by id, so the radius check does not apply here.
"""

from __future__ import annotations

from datetime import UTC, datetime

import structlog

from app.core.exceptions import NotFoundError, ValidationError
from app.dto import BulkUpdateResultDTO, FlaggedIssuePageDTO, IssueDTO, ReviewResultDTO
from app.dto.mappers import map_issue_to_detail
from app.schemas.issue import BulkUpdateRequest, IssueStatus, ReviewAction
from app.services.issues import UnitOfWorkFactory
from app.services.redaction import redact
from app.services.visibility import CallerContext, Identity

logger = structlog.get_logger(__name__)

MANUAL_HIDDEN_REASON = "Hidden by moderator"


class ModerationService:
    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def flagged(
        self, identity: Identity, *, min_flags: int, page: int, limit: int
    ) -> FlaggedIssuePageDTO:
        caller = CallerContext(identity=identity)
        offset = (page - 1) * limit
        async with self._uow_factory() as uow:
            issues, total = await uow.issues.list_flagged(
                min_flags=min_flags, offset=offset, limit=limit
            )
        return FlaggedIssuePageDTO(
            items=[map_issue_to_detail(redact(i, caller), distance_km=None) for i in issues],
            total=total,
            page=page,
            limit=limit,
            has_more=offset + len(issues) < total,
        )

    async def review(
        self,
        identity: Identity,
        issue_id: int,
        action: ReviewAction,
        reason: str | None = None,
    ) -> ReviewResultDTO:
        caller = CallerContext(identity=identity)
        async with self._uow_factory() as uow:
            issue = await uow.issues.get(issue_id)
            if issue is None:
                raise NotFoundError("Issue not found")

            if action is ReviewAction.delete:
                await uow.issues.delete(issue_id)
                logger.info("issue_review", issue_id=issue_id, action=action.value)
                return ReviewResultDTO(
                    message="Issue deleted", issue_id=issue_id, action=action.value
                )

            if action is ReviewAction.hide:
                changes: dict[str, object] = {
                    "is_hidden": True,
                    "hidden_reason": reason or MANUAL_HIDDEN_REASON,
                }
                message = "Issue hidden"
            else:
                changes = {"is_hidden": False, "hidden_reason": None}
                message = "Issue unhidden"
            await uow.issues.update(issue_id, changes)
            await uow.issues.add_activity(
                issue_id,
                action="Reviewed",
                details=f"{message}: {reason}" if reason else message,
                actor_id=identity.user_id,
                actor_name=identity.username or None,
            )
            updated = await uow.issues.get(issue_id)

        assert updated is not None
        logger.info("issue_review", issue_id=issue_id, action=action.value)
        return ReviewResultDTO(
            message=message,
            issue_id=issue_id,
            action=action.value,
            issue=map_issue_to_detail(redact(updated, caller), distance_km=None),
        )

    async def assign(self, identity: Identity, issue_id: int, user_id: int) -> IssueDTO:
        caller = CallerContext(identity=identity)
        async with self._uow_factory() as uow:
            if await uow.issues.get(issue_id) is None:
                raise NotFoundError("Issue not found")
            assignee = await uow.users.get(user_id)
            if assignee is None:
                raise NotFoundError("User not found")

            await uow.issues.update(
                issue_id, {"assignee_id": user_id, "assigned_at": datetime.now(UTC)}
            )
            await uow.issues.add_activity(
                issue_id,
                action="Assigned",
                details=f"Assigned to {assignee.display_name}",
                actor_id=identity.user_id,
                actor_name=identity.username or None,
            )
            updated = await uow.issues.get(issue_id)

        assert updated is not None
        return map_issue_to_detail(redact(updated, caller), distance_km=None)

    async def bulk_update(
        self, identity: Identity, payload: BulkUpdateRequest
    ) -> BulkUpdateResultDTO:
        """Apply status, priority and assignee changes to many issues at once.

        Unknown ids are skipped; the result counts the issues actually changed.
        """
        issue_ids = list(dict.fromkeys(payload.issue_ids))
        if not issue_ids:
            raise ValidationError("Issue IDs are required")

        changes: dict[str, object] = {}
        if payload.status is not None:
            changes["status"] = payload.status.value
        if payload.priority is not None:
            changes["priority"] = payload.priority.value
        if not changes and payload.assignee_id is None:
            raise ValidationError("No changes requested")

        modified = 0
        async with self._uow_factory() as uow:
            if payload.assignee_id is not None:
                if await uow.users.get(payload.assignee_id) is None:
                    raise NotFoundError("User not found")
                changes["assignee_id"] = payload.assignee_id
                changes["assigned_at"] = datetime.now(UTC)

            for issue_id in issue_ids:
                issue = await uow.issues.get(issue_id)
                if issue is None:
                    continue
                per_issue = dict(changes)
                if payload.status is IssueStatus.resolved:
                    per_issue["resolved_at"] = datetime.now(UTC)
                elif payload.status is not None and issue.status == IssueStatus.resolved.value:
                    per_issue["resolved_at"] = None
                await uow.issues.update(issue_id, per_issue)
                await uow.issues.add_activity(
                    issue_id,
                    action="Bulk Updated",
                    details="Updated " + ", ".join(sorted(k for k in changes if k != "assigned_at")),
                    actor_id=identity.user_id,
                    actor_name=identity.username or None,
                )
                modified += 1

        logger.info("issues_bulk_updated", requested=len(issue_ids), modified=modified)
        return BulkUpdateResultDTO(
            message=f"{modified} issues updated", modified_count=modified
        )


__all__ = ["ModerationService"]
