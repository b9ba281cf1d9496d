import logging
import secrets
from datetime import timedelta

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from remise.audit.service import write_audit_log
from remise.auth.deps import get_current_identity
from remise.auth.models import User
from remise.auth.permissions import ROLES, AccessLevel, Role, is_valid_role
from remise.auth.router import to_user_out
from remise.auth.schemas import UserOut
from remise.auth.security import hash_password
from remise.auth.session import Identity
from remise.auth.tokens import PASSWORD_RESET, issue_token
from remise.authz.policy import Action, Resource, Verb, require
from remise.authz.scoping import load_member, scope_members
from remise.core.errors import Conflict, Forbidden, ValidationFailed
from remise.db.session import get_db
from remise.notifications.email import invitation_message, send_best_effort
from remise.tenant.schemas import MemberInviteRequest, MemberPatchRequest, MembersListResponse
from remise.tenants.models import Tenant

logger = logging.getLogger(__name__)

router = APIRouter()

# roles a tenant owner can hand out; platform roles come from the admin API
INVITABLE_ROLES = ROLES - {Role.SUPER_ADMIN.value, Role.LAW_ENFORCEMENT.value}

INVITATION_TTL = timedelta(days=7)


@router.get("/users", response_model=MembersListResponse)
def list_members(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0, le=100_000),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    require(identity, Action(Resource.MEMBER, Verb.READ), identity.tenant_id)

    stmt = scope_members(select(User), identity)
    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    users = db.execute(
        stmt.order_by(User.created_at.asc(), User.id.asc()).limit(limit).offset(offset)
    ).scalars().all()
    return MembersListResponse(
        tenant_id=identity.tenant_id,
        users=[to_user_out(u) for u in users],
        total=int(total or 0),
    )


@router.get("/users/{user_id}", response_model=UserOut)
def get_member(
    user_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    return to_user_out(load_member(db, identity, user_id))


@router.post("/users", response_model=UserOut, status_code=201)
def invite_member(
    payload: MemberInviteRequest,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    require(identity, Action(Resource.MEMBER, Verb.CREATE), identity.tenant_id)

    role = payload.role.lower()
    if not is_valid_role(role) or role not in INVITABLE_ROLES:
        raise ValidationFailed(f"Role cannot be assigned by a tenant owner: {payload.role}")

    username = payload.username.strip()
    email = str(payload.email).lower()
    if db.execute(select(User.id).where(func.lower(User.username) == username.lower())).first():
        raise Conflict("Username is already taken")
    if db.execute(select(User.id).where(User.email == email)).first():
        raise Conflict("Email is already registered")

    tenant = db.get(Tenant, identity.tenant_id)

    # unusable until the invitee picks a password through the reset link
    user = User(
        id=f"u_{secrets.token_hex(8)}",
        username=username,
        email=email,
        name=payload.name.strip(),
        password_hash=hash_password(secrets.token_urlsafe(32)[:48]),
        role=role,
        access_level=AccessLevel.STAKEHOLDER.value,
        tenant_id=identity.tenant_id,
        is_active=True,
        email_verified=False,
    )
    db.add(user)
    db.flush()
    raw = issue_token(db, user=user, kind=PASSWORD_RESET, ttl=INVITATION_TTL)
    db.commit()
    db.refresh(user)

    write_audit_log(
        db,
        action="user_invited",
        user_id=identity.user_id,
        username=identity.username,
        resource=f"user:{user.id}",
        resource_type="user",
        details={"tenant_id": identity.tenant_id, "role": role},
        request=request,
    )

    subject, html = invitation_message(
        user.name,
        identity.username,
        tenant.name if tenant else "your organisation",
        raw,
    )
    send_best_effort(to=user.email, subject=subject, html=html)

    logger.info("Invited user=%s into tenant=%s", user.id, identity.tenant_id)
    return to_user_out(user)


@router.patch("/users/{user_id}", response_model=UserOut)
def update_member(
    user_id: str,
    payload: MemberPatchRequest,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if user_id == identity.user_id and changes.get("is_active") is False:
        raise Forbidden("Cannot deactivate your own account")

    user = load_member(db, identity, user_id, Verb.WRITE)
    if not changes:
        raise ValidationFailed("Provide at least one field to update")
    if "access_level" in changes and changes["access_level"] not in {
        AccessLevel.OWNER.value,
        AccessLevel.STAKEHOLDER.value,
    }:
        raise ValidationFailed("access_level must be owner or stakeholder")

    for key, value in changes.items():
        setattr(user, key, value)
    db.add(user)
    db.commit()
    db.refresh(user)

    write_audit_log(
        db,
        action="user_modified",
        user_id=identity.user_id,
        username=identity.username,
        resource=f"user:{user.id}",
        resource_type="user",
        details={"changes": changes},
        request=request,
    )
    return to_user_out(user)
