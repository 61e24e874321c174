"""Public DTO exports for FastAPI response models."""

from .issue import (
    ActivityDTO,
    BulkUpdateResultDTO,
    CallerLocationDTO,
    CommentDTO,
    FlagDTO,
    FlaggedIssuePageDTO,
    FlagResultDTO,
    IssueDTO,
    IssueListPageDTO,
    IssueMapDTO,
    IssueMapItemDTO,
    IssueStatsDTO,
    IssueSummaryDTO,
    LocationDTO,
    MonthCountDTO,
    ReviewResultDTO,
    UpvoteResultDTO,
    UserRefDTO,
)

__all__ = [
    "ActivityDTO",
    "BulkUpdateResultDTO",
    "CallerLocationDTO",
    "CommentDTO",
    "FlagDTO",
    "FlagResultDTO",
    "FlaggedIssuePageDTO",
    "IssueDTO",
    "IssueListPageDTO",
    "IssueMapDTO",
    "IssueMapItemDTO",
    "IssueStatsDTO",
    "IssueSummaryDTO",
    "LocationDTO",
    "MonthCountDTO",
    "ReviewResultDTO",
    "UpvoteResultDTO",
    "UserRefDTO",
]
