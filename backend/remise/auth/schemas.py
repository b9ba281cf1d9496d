from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    name: str = Field(min_length=1, max_length=255)
    # bcrypt hard limit = 72 bytes
    password: str = Field(min_length=8, max_length=72)
    role: str = Field(
        default="property_owner",
        description="Any role except super_admin and law_enforcement",
    )
    property_name: str | None = Field(default=None, min_length=2, max_length=255)


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=255)
    # prevent bcrypt crash on long input
    password: str = Field(min_length=1, max_length=72)


class UserOut(BaseModel):
    id: str
    username: str
    email: EmailStr
    name: str
    role: str
    access_level: str
    tenant_id: str | None
    is_active: bool
    email_verified: bool
    last_login_at: datetime | None = None


class MeResponse(UserOut):
    permissions: list[str]


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserOut


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=20)
    password: str = Field(min_length=8, max_length=72)


class VerifyEmailRequest(BaseModel):
    token: str = Field(min_length=20)


class OkResponse(BaseModel):
    ok: bool = True
    message: str | None = None
