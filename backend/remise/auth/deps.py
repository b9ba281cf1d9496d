from fastapi import Depends, Request
from sqlalchemy.orm import Session

from remise.auth.permissions import Role
from remise.auth.session import Identity, credential_from_request, resolve_session
from remise.core.errors import Forbidden, Unauthenticated
from remise.db.session import get_db


def get_optional_identity(
    request: Request,
    db: Session = Depends(get_db),
) -> Identity | None:
    return resolve_session(credential_from_request(request), db)


def get_current_identity(
    identity: Identity | None = Depends(get_optional_identity),
) -> Identity:
    if identity is None:
        raise Unauthenticated()
    return identity


def require_roles(*allowed_roles: str):
    def checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed_roles:
            raise Forbidden("Insufficient permissions")
        return identity

    return checker


require_super_admin = require_roles(Role.SUPER_ADMIN.value)
