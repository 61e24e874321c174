"""DTOs for issue responses."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserRefDTO(BaseModel):
    id: int | None = Field(default=None, description="User id (null when anonymous)")
    display_name: str = Field(description="Public display name")
    contact: str | None = Field(default=None, description="Contact email (owner/admin only)")


class LocationDTO(BaseModel):
    latitude: float
    longitude: float
    address: str | None = None


class CommentDTO(BaseModel):
    id: int
    author: UserRefDTO | None = None
    author_name: str
    content: str
    created_at: datetime | None = None
    is_edited: bool = False


class ActivityDTO(BaseModel):
    action: str
    details: str
    actor: UserRefDTO | None = None
    actor_name: str
    created_at: datetime | None = None


class FlagDTO(BaseModel):
    user: UserRefDTO | None = Field(default=None, description="Flagger (moderators/admins only)")
    reason: str
    description: str | None = None
    created_at: datetime | None = None


class IssueSummaryDTO(BaseModel):
    """Issue as listed by the collection endpoints."""

    id: int
    title: str
    category: str
    status: str
    priority: str
    severity: str
    location: LocationDTO
    reporter: UserRefDTO
    reporter_name: str
    is_anonymous: bool
    is_urgent: bool = False
    upvote_count: int = 0
    flag_count: int = 0
    image_url: str | None = None
    created_at: datetime | None = None
    distance_km: float | None = Field(default=None, description="Distance from the caller (km)")
    distance_display: str | None = Field(default=None, description="e.g. 850m, 2.4km")

    model_config = ConfigDict(from_attributes=True)


class IssueDTO(IssueSummaryDTO):
    """Full issue detail."""

    description: str
    affected_area: str | None = None
    assignee: UserRefDTO | None = None
    images: list[str] = Field(default_factory=list)
    comments: list[CommentDTO] = Field(default_factory=list)
    activity_log: list[ActivityDTO] = Field(default_factory=list)
    flags: list[FlagDTO] = Field(default_factory=list)
    is_hidden: bool = False
    hidden_reason: str | None = None
    updated_at: datetime | None = None
    resolved_at: datetime | None = None


class IssueMapItemDTO(BaseModel):
    id: int
    title: str
    category: str
    status: str
    priority: str
    location: LocationDTO
    reporter_name: str
    is_anonymous: bool
    created_at: datetime | None = None
    upvote_count: int = 0
    flag_count: int = 0
    has_images: bool = False
    image_url: str | None = None
    distance_km: float


class CallerLocationDTO(BaseModel):
    latitude: float
    longitude: float
    max_allowed_distance_km: float


class IssueListPageDTO(BaseModel):
    items: list[IssueSummaryDTO] = Field(description="Issues within the allowed radius")
    total: int = Field(default=0, description="Total visible issues")
    page: int = Field(default=1, description="Current page (1-based)")
    limit: int = Field(default=20, description="Page size")
    has_more: bool = Field(default=False, description="Whether a next page exists")
    user_location: CallerLocationDTO


class IssueMapDTO(BaseModel):
    items: list[IssueMapItemDTO]
    total: int = 0
    user_location: CallerLocationDTO


class FlaggedIssuePageDTO(BaseModel):
    items: list[IssueDTO]
    total: int = 0
    page: int = 1
    limit: int = 20
    has_more: bool = False


class MonthCountDTO(BaseModel):
    year: int
    month: int
    count: int


class IssueStatsDTO(BaseModel):
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, int] = Field(default_factory=dict)
    by_month: list[MonthCountDTO] = Field(default_factory=list)


class FlagResultDTO(BaseModel):
    message: str
    flag_count: int
    is_hidden: bool = Field(description="Whether the issue is hidden after this change")


class UpvoteResultDTO(BaseModel):
    message: str
    upvote_count: int
    has_upvoted: bool


class BulkUpdateResultDTO(BaseModel):
    message: str
    modified_count: int


class ReviewResultDTO(BaseModel):
    message: str
    issue_id: int
    action: str
    issue: IssueDTO | None = Field(default=None, description="Null after delete")
