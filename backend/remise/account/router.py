"""Self-service profile and password for the signed-in user."""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from remise.account.schemas import PasswordChangeRequest, ProfileUpdateRequest
from remise.audit.service import write_audit_log
from remise.auth.deps import get_current_identity
from remise.auth.models import User
from remise.auth.router import to_user_out
from remise.auth.schemas import MeResponse, OkResponse
from remise.auth.security import hash_password, verify_password
from remise.auth.session import Identity
from remise.auth.tokens import EMAIL_VERIFICATION, issue_token
from remise.core.config import settings
from remise.core.errors import Conflict, Unauthenticated, ValidationFailed
from remise.db.session import get_db
from remise.notifications.email import send_best_effort, verification_message
from remise.system.rate_limit import auth_limiter, enforce

logger = logging.getLogger(__name__)

router = APIRouter()


def _current_user(db: Session, identity: Identity) -> User:
    user = db.get(User, identity.user_id)
    if user is None:
        raise Unauthenticated()
    return user


def _profile(user: User, identity: Identity) -> MeResponse:
    return MeResponse(**to_user_out(user).model_dump(), permissions=sorted(identity.permissions))


@router.get("/profile", response_model=MeResponse)
def get_profile(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    return _profile(_current_user(db, identity), identity)


@router.put("/profile", response_model=MeResponse)
def update_profile(
    payload: ProfileUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    user = _current_user(db, identity)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ValidationFailed("Provide at least one field to update")

    if "name" in changes:
        user.name = changes["name"].strip() or user.name

    raw = None
    if "email" in changes:
        email = str(changes["email"]).lower()
        if email != user.email:
            taken = db.execute(select(User.id).where(User.email == email, User.id != user.id)).first()
            if taken:
                raise Conflict("Email is already registered")
            user.email = email
            # the new mailbox has to be confirmed again
            user.email_verified = False
            raw = issue_token(
                db,
                user=user,
                kind=EMAIL_VERIFICATION,
                ttl=timedelta(hours=settings.EMAIL_VERIFICATION_EXP_HOURS),
            )

    db.add(user)
    db.commit()
    db.refresh(user)

    write_audit_log(
        db,
        action="profile_updated",
        user_id=user.id,
        username=user.username,
        resource=f"user:{user.id}",
        resource_type="user",
        details={"fields": sorted(changes)},
        request=request,
    )
    if raw:
        subject, html = verification_message(user.name, raw)
        send_best_effort(to=user.email, subject=subject, html=html)
    return _profile(user, identity)


@router.put("/password", response_model=OkResponse)
def change_password(
    payload: PasswordChangeRequest,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    # keyed on the account, not the client address
    limiter_key = f"password:{identity.user_id}"
    enforce(auth_limiter, limiter_key)

    user = _current_user(db, identity)
    try:
        current_ok = verify_password(payload.current_password, user.password_hash)
    except ValueError:
        current_ok = False
    if not current_ok:
        write_audit_log(
            db,
            action="password_change_failed",
            user_id=user.id,
            username=user.username,
            success=False,
            severity="warning",
            request=request,
        )
        raise ValidationFailed("Current password is incorrect")

    if payload.new_password == payload.current_password:
        raise ValidationFailed("New password must differ from the current one")
    try:
        user.password_hash = hash_password(payload.new_password)
    except ValueError as e:
        raise ValidationFailed(str(e))
    db.add(user)
    db.commit()

    auth_limiter.reset(limiter_key)
    write_audit_log(
        db,
        action="password_changed",
        user_id=user.id,
        username=user.username,
        request=request,
    )
    logger.info("Password changed for user=%s", user.id)
    return OkResponse(message="Password updated")
