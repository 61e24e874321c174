"""Utilities to map repository records into DTOs."""

from __future__ import annotations

from app.dto.issue import (
    ActivityDTO,
    CommentDTO,
    FlagDTO,
    IssueDTO,
    IssueMapItemDTO,
    IssueSummaryDTO,
    LocationDTO,
    UserRefDTO,
)
from app.repositories.interfaces import IssueRecord, UserRef
from app.services.redaction import ANONYMOUS_NAME, SYSTEM_NAME
from app.utils.geo import format_distance


def _user(ref: UserRef | None) -> UserRefDTO | None:
    if ref is None:
        return None
    return UserRefDTO(id=ref.id, display_name=ref.display_name, contact=ref.contact)


def _location(issue: IssueRecord) -> LocationDTO:
    return LocationDTO(
        latitude=issue.location.latitude,
        longitude=issue.location.longitude,
        address=issue.address,
    )


def _reporter_name(issue: IssueRecord) -> str:
    if issue.is_effectively_anonymous or issue.reporter is None:
        return ANONYMOUS_NAME
    return issue.reporter.display_name


def _summary_fields(view: IssueRecord, distance_km: float | None) -> dict:
    reporter = _user(view.reporter) or UserRefDTO(display_name=ANONYMOUS_NAME)
    return dict(
        id=view.id,
        title=view.title,
        category=view.category,
        status=view.status,
        priority=view.priority,
        severity=view.severity,
        location=_location(view),
        reporter=reporter,
        reporter_name=_reporter_name(view),
        is_anonymous=view.is_effectively_anonymous,
        is_urgent=view.is_urgent,
        upvote_count=view.upvote_count,
        flag_count=view.flag_count,
        image_url=view.images[0] if view.images else None,
        created_at=view.created_at,
        distance_km=distance_km,
        distance_display=format_distance(distance_km) if distance_km is not None else None,
    )


def map_issue_to_summary(view: IssueRecord, *, distance_km: float | None) -> IssueSummaryDTO:
    """``view`` must already be redacted for the caller."""
    return IssueSummaryDTO(**_summary_fields(view, distance_km))


def map_issue_to_detail(view: IssueRecord, *, distance_km: float | None) -> IssueDTO:
    """``view`` must already be redacted for the caller."""
    return IssueDTO(
        **_summary_fields(view, distance_km),
        description=view.description,
        affected_area=view.affected_area,
        assignee=_user(view.assignee),
        images=list(view.images),
        comments=[
            CommentDTO(
                id=c.id,
                author=_user(c.author),
                author_name=c.author_name or ANONYMOUS_NAME,
                content=c.content,
                created_at=c.created_at,
                is_edited=c.is_edited,
            )
            for c in view.comments
        ],
        activity_log=[
            ActivityDTO(
                action=a.action,
                details=a.details,
                actor=_user(a.actor),
                actor_name=a.actor_name or SYSTEM_NAME,
                created_at=a.created_at,
            )
            for a in view.activity_log
        ],
        flags=[
            FlagDTO(
                user=_user(f.user),
                reason=f.reason,
                description=f.description,
                created_at=f.created_at,
            )
            for f in view.flags
        ],
        is_hidden=view.is_hidden,
        hidden_reason=view.hidden_reason,
        updated_at=view.updated_at,
        resolved_at=view.resolved_at,
    )


def map_issue_to_map_item(view: IssueRecord, *, distance_km: float) -> IssueMapItemDTO:
    return IssueMapItemDTO(
        id=view.id,
        title=view.title,
        category=view.category,
        status=view.status,
        priority=view.priority,
        location=_location(view),
        reporter_name=_reporter_name(view),
        is_anonymous=view.is_effectively_anonymous,
        created_at=view.created_at,
        upvote_count=view.upvote_count,
        flag_count=view.flag_count,
        has_images=bool(view.images),
        image_url=view.images[0] if view.images else None,
        distance_km=distance_km,
    )
