"""/admin/issues routers for moderators and admins."""

from fastapi import APIRouter, Depends, Path, Query

from app.api.deps import get_moderation_service, require_roles
from app.dto import BulkUpdateResultDTO, FlaggedIssuePageDTO, IssueDTO, ReviewResultDTO
from app.schemas.common import ErrorResponse
from app.schemas.issue import AssignRequest, BulkUpdateRequest, ReviewRequest
from app.services.moderation import ModerationService
from app.services.visibility import Identity, Role

router = APIRouter(prefix="/admin/issues", tags=["admin-issues"])

_ERRORS = {
    401: {"model": ErrorResponse, "description": "authentication required"},
    403: {"model": ErrorResponse, "description": "insufficient role"},
    404: {"model": ErrorResponse, "description": "Not Found"},
}

_moderators = require_roles(Role.moderator, Role.admin)
_admins = require_roles(Role.admin)


@router.get(
    "/flagged",
    response_model=FlaggedIssuePageDTO,
    summary="Flagged issues awaiting review",
    responses=_ERRORS,
)
async def list_flagged(
    min_flags: int = Query(1, ge=1, description="Minimum number of flags"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    identity: Identity = Depends(_moderators),
    svc: ModerationService = Depends(get_moderation_service),
):
    return await svc.flagged(identity, min_flags=min_flags, page=page, limit=limit)


@router.post(
    "/bulk-update",
    response_model=BulkUpdateResultDTO,
    summary="Update status, priority or assignee of many issues (admin)",
    responses={**_ERRORS, 400: {"model": ErrorResponse, "description": "Bad Request"}},
)
async def bulk_update_issues(
    payload: BulkUpdateRequest,
    identity: Identity = Depends(_admins),
    svc: ModerationService = Depends(get_moderation_service),
):
    return await svc.bulk_update(identity, payload)


@router.patch(
    "/{issue_id}/review",
    response_model=ReviewResultDTO,
    summary="Hide, unhide or delete a reported issue",
    responses=_ERRORS,
)
async def review_issue(
    payload: ReviewRequest,
    issue_id: int = Path(ge=1),
    identity: Identity = Depends(_moderators),
    svc: ModerationService = Depends(get_moderation_service),
):
    return await svc.review(identity, issue_id, payload.action, payload.reason)


@router.post(
    "/{issue_id}/assign",
    response_model=IssueDTO,
    summary="Assign an issue to a user (admin)",
    responses=_ERRORS,
)
async def assign_issue(
    payload: AssignRequest,
    issue_id: int = Path(ge=1),
    identity: Identity = Depends(_admins),
    svc: ModerationService = Depends(get_moderation_service),
):
    return await svc.assign(identity, issue_id, payload.user_id)
