# app/schemas/issue.py
"""Request payloads and query models for /issues and /admin/issues."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Literal

from fastapi import Query
from pydantic import BaseModel, Field, HttpUrl

__all__ = [
    "AssignRequest",
    "BulkUpdateRequest",
    "CommentCreateRequest",
    "FlagCreateRequest",
    "FlagReason",
    "IssueCategory",
    "IssueCreateRequest",
    "IssueListQuery",
    "IssuePriority",
    "IssueSeverity",
    "IssueStatus",
    "IssueUpdateRequest",
    "ReviewAction",
    "ReviewRequest",
    "StatusUpdateRequest",
]


class IssueCategory(str, Enum):
    roads = "Roads"
    lighting = "Lighting"
    water_supply = "Water Supply"
    cleanliness = "Cleanliness"
    public_safety = "Public Safety"
    obstructions = "Obstructions"


class IssueStatus(str, Enum):
    reported = "Reported"
    in_progress = "In Progress"
    resolved = "Resolved"
    rejected = "Rejected"


class IssuePriority(str, Enum):
    low = "Low"
    medium = "Medium"
    high = "High"
    critical = "Critical"


class IssueSeverity(str, Enum):
    minor = "Minor"
    moderate = "Moderate"
    major = "Major"
    critical = "Critical"


class FlagReason(str, Enum):
    spam = "Spam"
    inappropriate = "Inappropriate"
    duplicate = "Duplicate"
    false_information = "False Information"
    other = "Other"


class ReviewAction(str, Enum):
    hide = "hide"
    unhide = "unhide"
    delete = "delete"


class IssueCreateRequest(BaseModel):
    title: str = Field(min_length=5, max_length=100)
    description: str = Field(min_length=10, max_length=1000)
    category: IssueCategory
    # Kept loose on purpose: the access gate owns coordinate validation
    latitude: float | str | None = Field(default=None, description="Issue latitude (-90..90)")
    longitude: float | str | None = Field(default=None, description="Issue longitude (-180..180)")
    address: str | None = Field(default=None, max_length=300)
    is_anonymous: bool = False
    priority: IssuePriority = IssuePriority.medium
    severity: IssueSeverity = IssueSeverity.moderate
    is_urgent: bool = False
    affected_area: str | None = Field(default=None, max_length=200)
    images: list[HttpUrl] = Field(default_factory=list, max_length=5)


class IssueUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=5, max_length=100)
    description: str | None = Field(default=None, min_length=10, max_length=1000)
    category: IssueCategory | None = None
    latitude: float | str | None = None
    longitude: float | str | None = None
    address: str | None = Field(default=None, max_length=300)
    priority: IssuePriority | None = None
    severity: IssueSeverity | None = None
    is_urgent: bool | None = None
    affected_area: str | None = Field(default=None, max_length=200)


class StatusUpdateRequest(BaseModel):
    status: IssueStatus
    notes: str | None = Field(default=None, max_length=1000)


class CommentCreateRequest(BaseModel):
    content: str = Field(min_length=1, max_length=500)


class FlagCreateRequest(BaseModel):
    reason: FlagReason
    description: str | None = Field(default=None, max_length=200)


class ReviewRequest(BaseModel):
    action: ReviewAction
    reason: str | None = Field(default=None, max_length=200)


class AssignRequest(BaseModel):
    user_id: int = Field(ge=1)


class BulkUpdateRequest(BaseModel):
    issue_ids: list[int] = Field(default_factory=list, max_length=100)
    status: IssueStatus | None = None
    priority: IssuePriority | None = None
    assignee_id: int | None = Field(default=None, ge=1)


SortBy = Literal["created_at", "upvote_count", "priority"]


@dataclass(frozen=True)
class IssueListQuery:
    """Query parameters shared by the issue list endpoints.

    Coordinates and distance stay raw strings so that the access gate is the
    one place that rejects missing or malformed values.
    """

    latitude: str | None
    longitude: str | None
    distance: str | None
    location: str | None = None
    category: IssueCategory | None = None
    status: IssueStatus | None = None
    search: str | None = None
    sort_by: SortBy = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = 1
    limit: int = 20

    @classmethod
    def as_query(
        cls,
        latitude: Annotated[str | None, Query(description="Caller latitude (required)")] = None,
        longitude: Annotated[str | None, Query(description="Caller longitude (required)")] = None,
        distance: Annotated[
            str | None, Query(description="Search radius in km (capped by the server maximum)")
        ] = None,
        location: Annotated[
            str | None, Query(description='"lat,lng" shorthand used when latitude/longitude are absent')
        ] = None,
        category: Annotated[IssueCategory | None, Query()] = None,
        status: Annotated[IssueStatus | None, Query()] = None,
        search: Annotated[str | None, Query(max_length=100)] = None,
        sort_by: Annotated[SortBy, Query()] = "created_at",
        sort_order: Annotated[Literal["asc", "desc"], Query()] = "desc",
        page: Annotated[int, Query(ge=1)] = 1,
        limit: Annotated[int, Query(ge=1, le=100)] = 20,
    ) -> IssueListQuery:
        return cls(
            latitude=latitude,
            longitude=longitude,
            distance=distance,
            location=location,
            category=category,
            status=status,
            search=(search or "").strip() or None,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
