# app/models/__init__.py
# Imported here so Alembic sees every table
from .base import Base
from .issue import Issue, IssueActivity, IssueComment, IssueFlag, IssueImage, IssueUpvote
from .user import User

__all__ = [
    "Base",
    "Issue",
    "IssueActivity",
    "IssueComment",
    "IssueFlag",
    "IssueImage",
    "IssueUpvote",
    "User",
]
