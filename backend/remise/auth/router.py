import logging
import secrets
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from remise.audit.service import log_auth_attempt, write_audit_log
from remise.auth.deps import get_current_identity, get_optional_identity
from remise.auth.models import User
from remise.auth.permissions import AccessLevel, Role, is_valid_role
from remise.auth.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    OkResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UserOut,
    VerifyEmailRequest,
)
from remise.auth.security import SESSION_MAX_AGE, create_session_token, hash_password, verify_password
from remise.auth.session import Identity
from remise.auth.tokens import EMAIL_VERIFICATION, PASSWORD_RESET, consume_token, issue_token
from remise.core.config import settings
from remise.core.errors import Conflict, Unauthenticated, ValidationFailed
from remise.db.session import get_db
from remise.notifications.email import (
    password_reset_message,
    send_best_effort,
    send_email,
    verification_message,
    welcome_message,
)
from remise.system.rate_limit import auth_limiter, enforce, rate_limit_key
from remise.tenants.service import available_tenant_name, create_tenant

logger = logging.getLogger(__name__)

router = APIRouter()

SELF_SERVICE_BLOCKED_ROLES = {Role.SUPER_ADMIN.value, Role.LAW_ENFORCEMENT.value}


def to_user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        username=user.username,
        email=user.email,
        name=user.name,
        role=user.role,
        access_level=user.access_level,
        tenant_id=user.tenant_id,
        is_active=user.is_active,
        email_verified=user.email_verified,
        last_login_at=user.last_login_at,
    )


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=int(SESSION_MAX_AGE.total_seconds()),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


@router.post("/register", response_model=UserOut, status_code=201)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    role = payload.role.lower()
    if not is_valid_role(role):
        raise ValidationFailed(f"Unknown role: {payload.role}")
    if role in SELF_SERVICE_BLOCKED_ROLES:
        raise ValidationFailed("This role cannot be self-assigned")

    username = payload.username.strip()
    email = str(payload.email).lower()
    if db.execute(select(User.id).where(func.lower(User.username) == username.lower())).first():
        raise Conflict("Username is already taken")
    if db.execute(select(User.id).where(User.email == email)).first():
        raise Conflict("Email is already registered")

    try:
        pw_hash = hash_password(payload.password)
    except ValueError as e:
        raise ValidationFailed(str(e))

    if role == Role.PROPERTY_OWNER.value:
        tenant_name = payload.property_name or f"{payload.name}'s Property"
        description = f"Property managed by {payload.name}"
    else:
        tenant_name = f"{payload.name}'s Account"
        description = f"Account for {payload.name} ({role})"
    # self-service names collide easily; another tenant's name is never reported back
    tenant = create_tenant(db, name=available_tenant_name(db, tenant_name), description=description)

    user = User(
        id=f"u_{secrets.token_hex(8)}",
        username=username,
        email=email,
        name=payload.name.strip(),
        password_hash=pw_hash,
        role=role,
        access_level=(
            AccessLevel.OWNER.value if role == Role.PROPERTY_OWNER.value else AccessLevel.STAKEHOLDER.value
        ),
        tenant_id=tenant.id,
        is_active=True,
        email_verified=False,
    )
    db.add(user)
    db.flush()
    raw = issue_token(
        db,
        user=user,
        kind=EMAIL_VERIFICATION,
        ttl=timedelta(hours=settings.EMAIL_VERIFICATION_EXP_HOURS),
    )
    db.commit()

    subject, html = verification_message(user.name, raw)
    send_best_effort(to=user.email, subject=subject, html=html)

    logger.info("Registered user=%s tenant=%s role=%s", user.id, tenant.id, role)
    return to_user_out(user)


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    username = payload.username.strip()
    limiter_key = rate_limit_key(request, username.lower())
    enforce(auth_limiter, limiter_key)

    user = db.execute(
        select(User).where(func.lower(User.username) == username.lower())
    ).scalar_one_or_none()

    reason = None
    if user is None:
        reason = "unknown_user"
    elif not user.is_active:
        reason = "inactive"
    elif not user.email_verified and user.role != Role.SUPER_ADMIN.value:
        reason = "email_not_verified"
    else:
        try:
            if not verify_password(payload.password, user.password_hash):
                reason = "bad_password"
        except ValueError:
            reason = "bad_password"

    if reason:
        log_auth_attempt(
            db,
            username=username,
            user_id=user.id if user else None,
            success=False,
            reason=reason,
            request=request,
        )
        raise Unauthenticated("Invalid credentials")

    auth_limiter.reset(limiter_key)
    user.last_login_at = datetime.utcnow()
    db.add(user)
    db.commit()
    log_auth_attempt(db, username=user.username, user_id=user.id, success=True, request=request)

    token = create_session_token(user_id=user.id, role=user.role, tenant_id=user.tenant_id)
    _set_session_cookie(response, token)
    return LoginResponse(
        access_token=token,
        expires_in=int(SESSION_MAX_AGE.total_seconds()),
        user=to_user_out(user),
    )


@router.post("/logout", response_model=OkResponse)
def logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    identity: Identity | None = Depends(get_optional_identity),
):
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    if identity:
        write_audit_log(
            db,
            action="logout",
            user_id=identity.user_id,
            username=identity.username,
            request=request,
        )
    return OkResponse()


@router.get("/me", response_model=MeResponse)
def me(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    user = db.get(User, identity.user_id)
    if user is None:
        raise Unauthenticated()
    return MeResponse(**to_user_out(user).model_dump(), permissions=sorted(identity.permissions))


@router.post("/forgot-password", response_model=OkResponse)
def forgot_password(payload: ForgotPasswordRequest, db: Session = Depends(get_db)):
    user = db.execute(
        select(User).where(User.email == str(payload.email).lower())
    ).scalar_one_or_none()
    # same answer whether or not the address is known
    generic = OkResponse(message="If the address is registered, a reset link has been sent")
    if user is None or not user.is_active:
        return generic

    raw = issue_token(
        db,
        user=user,
        kind=PASSWORD_RESET,
        ttl=timedelta(minutes=settings.PASSWORD_RESET_EXP_MINUTES),
    )
    db.commit()

    subject, html = password_reset_message(user.name, raw)
    send_email(to=user.email, subject=subject, html=html)
    return generic


@router.post("/reset-password", response_model=OkResponse)
def reset_password(payload: ResetPasswordRequest, request: Request, db: Session = Depends(get_db)):
    user = consume_token(db, raw=payload.token, kind=PASSWORD_RESET)
    try:
        user.password_hash = hash_password(payload.password)
    except ValueError as e:
        raise ValidationFailed(str(e))
    # a working reset link proves control of the mailbox
    user.email_verified = True
    db.add(user)
    db.commit()
    write_audit_log(
        db,
        action="password_reset",
        user_id=user.id,
        username=user.username,
        request=request,
    )

    subject, html = welcome_message(user.name)
    send_best_effort(to=user.email, subject=subject, html=html)
    return OkResponse(message="Password updated")


@router.post("/verify-email", response_model=OkResponse)
def verify_email(payload: VerifyEmailRequest, request: Request, db: Session = Depends(get_db)):
    user = consume_token(db, raw=payload.token, kind=EMAIL_VERIFICATION)
    if user.email_verified:
        db.commit()
        return OkResponse(message="Email already verified")
    user.email_verified = True
    db.add(user)
    db.commit()
    write_audit_log(
        db,
        action="email_verified",
        user_id=user.id,
        username=user.username,
        request=request,
    )
    return OkResponse(message="Email verified")


@router.post("/resend-verification", response_model=OkResponse)
def resend_verification(payload: ForgotPasswordRequest, db: Session = Depends(get_db)):
    user = db.execute(
        select(User).where(User.email == str(payload.email).lower())
    ).scalar_one_or_none()
    answer = OkResponse(message="If the account needs verification, an email has been sent")
    if user is None or user.email_verified:
        return answer

    raw = issue_token(
        db,
        user=user,
        kind=EMAIL_VERIFICATION,
        ttl=timedelta(hours=settings.EMAIL_VERIFICATION_EXP_HOURS),
    )
    db.commit()
    subject, html = verification_message(user.name, raw)
    send_best_effort(to=user.email, subject=subject, html=html)
    return answer
