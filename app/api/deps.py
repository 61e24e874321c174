"""API dependency helpers and service providers."""

from collections.abc import Callable

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import AuthenticationError, ForbiddenError
from app import db
from app.db import get_async_session
from app.infra.jwt import identity_from_token
from app.infra.unit_of_work import SqlAlchemyUnitOfWork
from app.services.access_gate import AccessGate
from app.services.health import HealthService
from app.services.issues import IssueService
from app.services.moderation import ModerationService
from app.services.visibility import Identity, Role

__all__ = [
    "get_access_gate",
    "get_health_service",
    "get_identity",
    "get_issue_service",
    "get_moderation_service",
    "require_identity",
    "require_roles",
]

_bearer_scheme = HTTPBearer(auto_error=False)


def get_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> Identity | None:
    """Resolve the caller from an optional Bearer token; no token means anonymous."""
    if credentials is None:
        return None
    return identity_from_token(credentials.credentials)


def require_identity(identity: Identity | None = Depends(get_identity)) -> Identity:
    if identity is None:
        raise AuthenticationError("Authentication required")
    return identity


def require_roles(*roles: Role) -> Callable[..., Identity]:
    allowed = frozenset(roles)

    def _dep(identity: Identity = Depends(require_identity)) -> Identity:
        if identity.role not in allowed:
            raise ForbiddenError("You do not have permission to perform this action")
        return identity

    return _dep


# --- Service providers for DI ---


def _uow_factory() -> SqlAlchemyUnitOfWork:
    return SqlAlchemyUnitOfWork(db.SessionLocal)


def get_access_gate() -> AccessGate:
    return AccessGate(settings.geo_access())


def get_issue_service(gate: AccessGate = Depends(get_access_gate)) -> IssueService:
    return IssueService(_uow_factory, gate, spam_flag_threshold=settings.spam_flag_threshold)


def get_moderation_service() -> ModerationService:
    return ModerationService(_uow_factory)


def get_health_service(
    session: AsyncSession = Depends(get_async_session),
) -> HealthService:
    return HealthService(session)
