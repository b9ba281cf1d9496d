import secrets
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from remise.auth.models import AuthToken, User
from remise.auth.security import generate_one_time_token, hash_token
from remise.core.errors import ValidationFailed

PASSWORD_RESET = "password_reset"
EMAIL_VERIFICATION = "email_verification"


def issue_token(db: Session, *, user: User, kind: str, ttl: timedelta) -> str:
    """Store a hashed one-time token and return the raw value.

    Earlier unused tokens of the same kind are retired.
    """
    now = datetime.utcnow()
    for stale in db.execute(
        select(AuthToken).where(
            AuthToken.user_id == user.id,
            AuthToken.kind == kind,
            AuthToken.used_at.is_(None),
        )
    ).scalars():
        stale.used_at = now

    raw = generate_one_time_token()
    db.add(
        AuthToken(
            id=f"at_{secrets.token_hex(10)}",
            user_id=user.id,
            kind=kind,
            token_hash=hash_token(raw),
            expires_at=now + ttl,
        )
    )
    return raw


def consume_token(db: Session, *, raw: str, kind: str) -> User:
    row = db.execute(
        select(AuthToken).where(AuthToken.token_hash == hash_token(raw), AuthToken.kind == kind)
    ).scalar_one_or_none()
    if row is None or row.used_at is not None:
        raise ValidationFailed("Invalid or already used token")
    if row.expires_at <= datetime.utcnow():
        raise ValidationFailed("Token expired")

    user = db.get(User, row.user_id)
    if user is None:
        raise ValidationFailed("Invalid or already used token")

    row.used_at = datetime.utcnow()
    return user
