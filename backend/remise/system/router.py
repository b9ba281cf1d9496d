import logging
import secrets

from fastapi import APIRouter, Depends, Header
from sqlalchemy import select
from sqlalchemy.orm import Session

from remise.audit.service import write_audit_log
from remise.auth.models import User
from remise.auth.permissions import AccessLevel, Role
from remise.auth.security import hash_password
from remise.core.config import settings
from remise.core.errors import Conflict, Forbidden, Unauthenticated
from remise.db.session import get_db
from remise.system.schemas import BootstrapRequest
from remise.tenants.service import create_tenant

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/bootstrap", status_code=201)
def bootstrap(
    payload: BootstrapRequest,
    db: Session = Depends(get_db),
    x_bootstrap_secret: str | None = Header(default=None, alias="X-Bootstrap-Secret"),
):
    # 1) Must be enabled
    if not settings.BOOTSTRAP_ENABLED:
        raise Forbidden("Bootstrap is disabled")

    # 2) Must provide correct secret
    expected = settings.BOOTSTRAP_SECRET
    if not expected or not x_bootstrap_secret or not secrets.compare_digest(x_bootstrap_secret, expected):
        raise Unauthenticated("Invalid bootstrap secret")

    # 3) Only allowed while no super admin exists
    already = db.execute(select(User.id).where(User.role == Role.SUPER_ADMIN.value)).first()
    if already:
        raise Conflict("Bootstrap already completed")

    tenant = create_tenant(
        db,
        name=payload.tenant_name,
        description="Platform administration tenant",
    )
    user = User(
        id=f"u_{secrets.token_hex(8)}",
        username=payload.admin_username.strip(),
        email=str(payload.admin_email).lower(),
        name=payload.admin_name.strip(),
        password_hash=hash_password(payload.admin_password),
        role=Role.SUPER_ADMIN.value,
        access_level=AccessLevel.OWNER.value,
        tenant_id=tenant.id,
        is_active=True,
        email_verified=True,
    )
    db.add(user)
    db.commit()

    write_audit_log(
        db,
        action="platform_bootstrapped",
        user_id=user.id,
        username=user.username,
        resource=f"tenant:{tenant.id}",
        resource_type="tenant",
        severity="warning",
    )
    logger.warning("Bootstrap created super admin=%s tenant=%s", user.id, tenant.id)

    return {
        "tenant": {"id": tenant.id, "name": tenant.name},
        "admin": {"id": user.id, "username": user.username, "email": user.email, "role": user.role},
    }
