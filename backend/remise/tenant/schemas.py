from pydantic import BaseModel, EmailStr, Field

from remise.auth.schemas import UserOut


class MembersListResponse(BaseModel):
    tenant_id: str | None
    users: list[UserOut]
    total: int


class MemberInviteRequest(BaseModel):
    username: str = Field(min_length=3, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    name: str = Field(min_length=1, max_length=255)
    role: str = Field(default="insurance_agent", description="any role except super_admin and law_enforcement")


class MemberPatchRequest(BaseModel):
    is_active: bool | None = None
    access_level: str | None = Field(default=None, description="owner|stakeholder")
