"""HTTP error taxonomy shared by every router.

Each error is an ``HTTPException`` so handlers can raise it directly and FastAPI
renders it without extra wiring.
"""

from fastapi import HTTPException, status

from remise.core.config import settings


class Unauthenticated(HTTPException):
    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class Forbidden(HTTPException):
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class Conflict(HTTPException):
    def __init__(self, detail: str | dict = "Conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ValidationFailed(HTTPException):
    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=422, detail=detail)


class UpstreamFailure(HTTPException):
    """Media or email provider failure.

    The caller only sees provider details outside production.
    """

    def __init__(self, provider: str, reason: str | None = None):
        self.provider = provider
        self.reason = reason
        if settings.is_production or not reason:
            detail = f"The {provider} service is currently unavailable"
        else:
            detail = f"{provider} error: {reason}"
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)


class RateLimited(HTTPException):
    def __init__(self, retry_after: int, limit: int, reset_at: str):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests",
            headers={
                "Retry-After": str(max(retry_after, 1)),
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": reset_at,
            },
        )
