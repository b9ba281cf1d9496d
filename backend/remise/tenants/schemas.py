from datetime import datetime

from pydantic import BaseModel, Field


class TenantCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    is_active: bool = True


class TenantUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    is_active: bool | None = None


class TenantOut(BaseModel):
    id: str
    name: str
    description: str | None
    is_active: bool
    user_count: int = 0
    item_count: int = 0
    total_value: float = 0.0
    created_at: datetime
    updated_at: datetime


class TenantsListResponse(BaseModel):
    tenants: list[TenantOut]
    total: int


class TenantDeleteResponse(BaseModel):
    deleted: bool
    tenant_id: str
