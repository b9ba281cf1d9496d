from pydantic import BaseModel, EmailStr, Field


class ProfileUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=72)
    # bcrypt hard limit = 72 bytes
    new_password: str = Field(min_length=8, max_length=72)
