"""SQLAlchemy implementations of repository interfaces."""

from .issue import SqlAlchemyIssueRepository
from .user import SqlAlchemyUserRepository

__all__ = [
    "SqlAlchemyIssueRepository",
    "SqlAlchemyUserRepository",
]
