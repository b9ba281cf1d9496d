import secrets
from hashlib import sha256
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt
from passlib.context import CryptContext

from remise.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ENV = settings.ENV
JWT_SECRET = settings.JWT_SECRET
if not JWT_SECRET and ENV != "dev":
    raise RuntimeError("JWT_SECRET is not set")
if not JWT_SECRET:
    JWT_SECRET = "dev-change-me"
JWT_ALG = "HS256"
SESSION_MAX_AGE = timedelta(hours=settings.SESSION_MAX_AGE_HOURS)


class SessionExpired(JWTError):
    pass


def _ensure_bcrypt_limit(password: str) -> None:
    # bcrypt limit is 72 BYTES, not characters
    if len(password.encode("utf-8")) > 72:
        raise ValueError("Password too long (max 72 bytes).")


def hash_password(password: str) -> str:
    _ensure_bcrypt_limit(password)
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    _ensure_bcrypt_limit(password)
    return pwd_context.verify(password, password_hash)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_session_token(
    *, user_id: str, role: str, tenant_id: str | None, issued_at: datetime | None = None
) -> str:
    issued = issued_at or _now()
    payload = {
        "typ": "session",
        "sub": user_id,
        "role": role,
        "tenant_id": tenant_id,
        "iat": int(issued.timestamp()),
        "exp": int((issued + SESSION_MAX_AGE).timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def decode_session_token(token: str) -> Dict[str, Any]:
    """Verify signature and age of a session token.

    The age ceiling is checked against ``iat`` on its own, so a token minted
    with a generous ``exp`` is still refused after SESSION_MAX_AGE.
    """
    claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    if claims.get("typ") != "session":
        raise JWTError("Invalid token type")

    issued_at = claims.get("iat")
    if not isinstance(issued_at, (int, float)):
        raise JWTError("Missing issue time")
    age = _now() - datetime.fromtimestamp(issued_at, tz=timezone.utc)
    if age > SESSION_MAX_AGE:
        raise SessionExpired("Session too old")
    return claims


def generate_one_time_token() -> str:
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    return sha256(token.encode("utf-8")).hexdigest()


__all__ = [
    "JWTError",
    "SessionExpired",
    "create_session_token",
    "decode_session_token",
    "generate_one_time_token",
    "hash_password",
    "hash_token",
    "verify_password",
]
