import json
import logging
from urllib import error, request

from remise.core.config import settings
from remise.core.errors import UpstreamFailure

logger = logging.getLogger(__name__)


def send_email(*, to: str, subject: str, html: str) -> bool:
    """POST a message to the transactional email API.

    Returns False when no provider is configured. Raises UpstreamFailure when
    the provider cannot be reached or rejects the message.
    """
    if not settings.EMAIL_API_KEY:
        logger.info("Email provider not configured; skipping '%s' to %s", subject, to)
        return False

    body = json.dumps(
        {"from": settings.EMAIL_FROM, "to": [to], "subject": subject, "html": html}
    ).encode("utf-8")
    req = request.Request(
        settings.EMAIL_API_URL,
        data=body,
        headers={
            "Content-Type": "application/json",
            "Authorization": f"Bearer {settings.EMAIL_API_KEY}",
        },
        method="POST",
    )
    try:
        with request.urlopen(req, timeout=settings.EMAIL_TIMEOUT_SECONDS):
            pass
    except (error.URLError, TimeoutError) as exc:
        logger.error("Email delivery failed for '%s' to %s: %s", subject, to, exc)
        raise UpstreamFailure("email", str(exc)) from exc
    return True


def send_best_effort(*, to: str, subject: str, html: str) -> bool:
    """Send without letting a provider failure escape.

    For messages sent after the primary operation already succeeded.
    """
    try:
        return send_email(to=to, subject=subject, html=html)
    except UpstreamFailure:
        logger.warning("Continuing after email failure: '%s' to %s", subject, to)
        return False


def _link(path: str, token: str) -> str:
    base = settings.FRONTEND_PUBLIC_BASE_URL.rstrip("/")
    return f"{base}/{path}?token={token}"


def password_reset_message(name: str, token: str) -> tuple[str, str]:
    url = _link("reset-password", token)
    return (
        "Reset your REMISE password",
        f"<p>Hello {name},</p>"
        f"<p>Use the link below to choose a new password. It expires in "
        f"{settings.PASSWORD_RESET_EXP_MINUTES} minutes.</p>"
        f'<p><a href="{url}">{url}</a></p>',
    )


def verification_message(name: str, token: str) -> tuple[str, str]:
    url = _link("verify-email", token)
    return (
        "Verify your REMISE email address",
        f"<p>Hello {name},</p><p>Confirm your email address to activate your account:</p>"
        f'<p><a href="{url}">{url}</a></p>',
    )


def invitation_message(name: str, inviter: str, tenant_name: str, token: str) -> tuple[str, str]:
    url = _link("reset-password", token)
    return (
        f"You have been invited to {tenant_name} on REMISE",
        f"<p>Hello {name},</p><p>{inviter} invited you to join {tenant_name}.</p>"
        f'<p>Set your password to get started: <a href="{url}">{url}</a></p>',
    )


def welcome_message(name: str) -> tuple[str, str]:
    return (
        "Your REMISE password was changed",
        f"<p>Hello {name},</p><p>Your password was updated. "
        "If this was not you, contact your administrator immediately.</p>",
    )
