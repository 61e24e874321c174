"""/issues routers that delegate to the issue service via DI."""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Response, status

from app.api.deps import get_identity, get_issue_service, require_roles
from app.dto import (
    FlagResultDTO,
    IssueDTO,
    IssueListPageDTO,
    IssueMapDTO,
    IssueStatsDTO,
    UpvoteResultDTO,
)
from app.schemas.common import ErrorResponse
from app.schemas.issue import (
    CommentCreateRequest,
    FlagCreateRequest,
    IssueCreateRequest,
    IssueListQuery,
    IssueUpdateRequest,
    StatusUpdateRequest,
)
from app.services.issues import IssueService
from app.services.visibility import Identity, Role

router = APIRouter(prefix="/issues", tags=["issues"])

_LOCATION_ERRORS = {
    400: {"model": ErrorResponse, "description": "missing/invalid location or radius"},
    401: {"model": ErrorResponse, "description": "invalid or missing token"},
}
_ITEM_ERRORS = {
    **_LOCATION_ERRORS,
    403: {"model": ErrorResponse, "description": "outside the allowed area or not permitted"},
    404: {"model": ErrorResponse, "description": "Not Found"},
}

_LIST_DESC = (
    "Issues within the allowed radius of the caller.\n"
    "- latitude/longitude are required (or location=lat,lng)\n"
    "- distance defaults to the server default and may not exceed the server maximum\n"
    "- total and has_more count only issues the caller may see\n"
)

LatitudeParam = Annotated[str | None, Query(description="Caller latitude (required)")]
LongitudeParam = Annotated[str | None, Query(description="Caller longitude (required)")]


@router.get(
    "",
    response_model=IssueListPageDTO,
    summary="List nearby issues",
    description=_LIST_DESC,
    responses=_LOCATION_ERRORS,
)
async def list_issues(
    q: IssueListQuery = Depends(IssueListQuery.as_query),
    identity: Identity | None = Depends(get_identity),
    svc: IssueService = Depends(get_issue_service),
):
    return await svc.list_issues(identity, q)


@router.get(
    "/map",
    response_model=IssueMapDTO,
    summary="Compact nearby issues for map rendering",
    responses=_LOCATION_ERRORS,
)
async def map_issues(
    q: IssueListQuery = Depends(IssueListQuery.as_query),
    bounds: str | None = Query(
        default=None, description='Viewport JSON: {"north","south","east","west"}'
    ),
    identity: Identity | None = Depends(get_identity),
    svc: IssueService = Depends(get_issue_service),
):
    return await svc.map_issues(identity, q, bounds)


@router.get(
    "/stats",
    response_model=IssueStatsDTO,
    summary="Issue statistics (admin)",
    responses={403: {"model": ErrorResponse, "description": "admin only"}},
)
async def issue_stats(
    _: Identity = Depends(require_roles(Role.admin)),
    svc: IssueService = Depends(get_issue_service),
):
    return await svc.stats()


@router.get(
    "/user/{user_id}",
    response_model=IssueListPageDTO,
    summary="Issues reported by a user near the caller",
    responses=_LOCATION_ERRORS,
)
async def list_user_issues(
    user_id: int = Path(ge=1),
    q: IssueListQuery = Depends(IssueListQuery.as_query),
    identity: Identity | None = Depends(get_identity),
    svc: IssueService = Depends(get_issue_service),
):
    return await svc.list_user_issues(identity, user_id, q)


@router.post(
    "",
    response_model=IssueDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Report an issue",
    responses=_LOCATION_ERRORS,
)
async def create_issue(
    payload: IssueCreateRequest,
    identity: Identity | None = Depends(get_identity),
    svc: IssueService = Depends(get_issue_service),
):
    return await svc.create_issue(identity, payload)


@router.get(
    "/{issue_id}",
    response_model=IssueDTO,
    summary="Issue detail",
    responses=_ITEM_ERRORS,
)
async def get_issue(
    issue_id: int = Path(ge=1),
    latitude: LatitudeParam = None,
    longitude: LongitudeParam = None,
    identity: Identity | None = Depends(get_identity),
    svc: IssueService = Depends(get_issue_service),
):
    return await svc.get_issue(identity, issue_id, latitude, longitude)


@router.patch(
    "/{issue_id}",
    response_model=IssueDTO,
    summary="Edit an issue (reporter, admin, or moderator on anonymous reports)",
    responses=_ITEM_ERRORS,
)
async def update_issue(
    payload: IssueUpdateRequest,
    issue_id: int = Path(ge=1),
    latitude: LatitudeParam = None,
    longitude: LongitudeParam = None,
    identity: Identity | None = Depends(get_identity),
    svc: IssueService = Depends(get_issue_service),
):
    return await svc.update_issue(identity, issue_id, latitude, longitude, payload)


@router.delete(
    "/{issue_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an issue",
    responses=_ITEM_ERRORS,
)
async def delete_issue(
    issue_id: int = Path(ge=1),
    latitude: LatitudeParam = None,
    longitude: LongitudeParam = None,
    identity: Identity | None = Depends(get_identity),
    svc: IssueService = Depends(get_issue_service),
):
    await svc.delete_issue(identity, issue_id, latitude, longitude)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch(
    "/{issue_id}/status",
    response_model=IssueDTO,
    summary="Update issue status (admin or assignee)",
    responses=_ITEM_ERRORS,
)
async def update_issue_status(
    payload: StatusUpdateRequest,
    issue_id: int = Path(ge=1),
    latitude: LatitudeParam = None,
    longitude: LongitudeParam = None,
    identity: Identity | None = Depends(get_identity),
    svc: IssueService = Depends(get_issue_service),
):
    return await svc.update_status(identity, issue_id, latitude, longitude, payload)


@router.post(
    "/{issue_id}/comments",
    response_model=IssueDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Comment on an issue",
    responses=_ITEM_ERRORS,
)
async def add_comment(
    payload: CommentCreateRequest,
    issue_id: int = Path(ge=1),
    latitude: LatitudeParam = None,
    longitude: LongitudeParam = None,
    identity: Identity | None = Depends(get_identity),
    svc: IssueService = Depends(get_issue_service),
):
    return await svc.add_comment(identity, issue_id, latitude, longitude, payload)


@router.post(
    "/{issue_id}/flag",
    response_model=FlagResultDTO,
    summary="Flag an issue",
    responses={**_ITEM_ERRORS, 409: {"model": ErrorResponse, "description": "already flagged"}},
)
async def flag_issue(
    payload: FlagCreateRequest,
    issue_id: int = Path(ge=1),
    latitude: LatitudeParam = None,
    longitude: LongitudeParam = None,
    identity: Identity | None = Depends(get_identity),
    svc: IssueService = Depends(get_issue_service),
):
    return await svc.flag(identity, issue_id, latitude, longitude, payload)


@router.delete(
    "/{issue_id}/flag",
    response_model=FlagResultDTO,
    summary="Withdraw a flag",
    responses=_ITEM_ERRORS,
)
async def unflag_issue(
    issue_id: int = Path(ge=1),
    latitude: LatitudeParam = None,
    longitude: LongitudeParam = None,
    identity: Identity | None = Depends(get_identity),
    svc: IssueService = Depends(get_issue_service),
):
    return await svc.unflag(identity, issue_id, latitude, longitude)


@router.post(
    "/{issue_id}/upvote",
    response_model=UpvoteResultDTO,
    summary="Upvote an issue (idempotent)",
    responses=_ITEM_ERRORS,
)
async def upvote_issue(
    issue_id: int = Path(ge=1),
    latitude: LatitudeParam = None,
    longitude: LongitudeParam = None,
    identity: Identity | None = Depends(get_identity),
    svc: IssueService = Depends(get_issue_service),
):
    return await svc.upvote(identity, issue_id, latitude, longitude)


@router.delete(
    "/{issue_id}/upvote",
    response_model=UpvoteResultDTO,
    summary="Remove an upvote (idempotent)",
    responses=_ITEM_ERRORS,
)
async def remove_upvote(
    issue_id: int = Path(ge=1),
    latitude: LatitudeParam = None,
    longitude: LongitudeParam = None,
    identity: Identity | None = Depends(get_identity),
    svc: IssueService = Depends(get_issue_service),
):
    return await svc.remove_upvote(identity, issue_id, latitude, longitude)
