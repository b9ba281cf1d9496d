from datetime import datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field

from remise.auth.schemas import UserOut


class AdminUserOut(UserOut):
    item_count: int = 0
    created_at: datetime | None = None


class AdminUsersListResponse(BaseModel):
    users: list[AdminUserOut]
    total: int


class AdminUserPatchRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    role: str | None = Field(default=None, min_length=3, max_length=32)
    access_level: str | None = Field(default=None, description="owner|stakeholder")
    tenant_id: str | None = Field(default=None, max_length=64)
    is_active: bool | None = None
    email_verified: bool | None = None


class AdminUserDeleteResponse(BaseModel):
    deleted: bool
    user_id: str


class PlatformStatsResponse(BaseModel):
    tenant_count: int
    active_tenant_count: int
    user_count: int
    active_user_count: int
    users_by_role: dict[str, int]
    item_count: int
    evidence_count: int
    total_estimated_value: float


class AuditLogEntryOut(BaseModel):
    id: str
    timestamp: datetime
    user_id: str | None
    username: str | None
    action: str
    resource: str | None
    resource_type: str | None
    details: dict[str, Any]
    ip_address: str | None
    user_agent: str | None
    success: bool
    severity: str


class AuditLogListResponse(BaseModel):
    count: int
    entries: list[AuditLogEntryOut]
