from .common import ErrorResponse, OkResponse
from .issue import (
    AssignRequest,
    BulkUpdateRequest,
    CommentCreateRequest,
    FlagCreateRequest,
    IssueCreateRequest,
    IssueListQuery,
    IssueUpdateRequest,
    ReviewRequest,
    StatusUpdateRequest,
)

__all__ = [
    "AssignRequest",
    "BulkUpdateRequest",
    "CommentCreateRequest",
    "ErrorResponse",
    "FlagCreateRequest",
    "IssueCreateRequest",
    "IssueListQuery",
    "IssueUpdateRequest",
    "OkResponse",
    "ReviewRequest",
    "StatusUpdateRequest",
]
