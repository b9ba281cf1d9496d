"""Session resolution.

Turns an inbound credential into an :class:`Identity`. A missing, forged,
stale or orphaned credential resolves to ``None``; it is up to the caller to
decide that ``None`` means 401.
"""

import logging
from dataclasses import dataclass, field

from fastapi import Request
from sqlalchemy.orm import Session

from remise.auth.models import User
from remise.auth.permissions import permissions_for
from remise.auth.security import JWTError, SessionExpired, decode_session_token
from remise.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: str
    username: str
    role: str
    tenant_id: str | None
    access_level: str = "stakeholder"
    permissions: frozenset[str] = field(default_factory=frozenset)
    name: str = ""

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(
            user_id=user.id,
            username=user.username,
            role=user.role,
            tenant_id=user.tenant_id,
            access_level=user.access_level,
            permissions=permissions_for(user.role),
            name=user.name,
        )

    @property
    def display_name(self) -> str:
        return self.name or self.username


def credential_from_request(request: Request) -> str | None:
    auth = request.headers.get("authorization") or ""
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return request.cookies.get(settings.SESSION_COOKIE_NAME) or None


def resolve_session(token: str | None, db: Session) -> Identity | None:
    if not token:
        return None

    try:
        claims = decode_session_token(token)
    except SessionExpired:
        logger.info("Rejected session older than %s hours", settings.SESSION_MAX_AGE_HOURS)
        return None
    except JWTError:
        return None

    user_id = claims.get("sub")
    if not user_id:
        return None

    user = db.get(User, user_id)
    if not user or not user.is_active:
        return None
    # role changes since issue invalidate the session
    if claims.get("role") != user.role:
        return None

    return Identity.from_user(user)
