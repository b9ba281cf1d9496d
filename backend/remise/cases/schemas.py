from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

CaseStatus = Literal["open", "investigating", "closed"]
CasePriority = Literal["low", "medium", "high", "critical"]


class CaseCreate(BaseModel):
    case_name: str = Field(min_length=1, max_length=255)
    case_number: str | None = Field(default=None, max_length=64)
    date_reported: str = Field(min_length=1, max_length=32)
    date_occurred: str = Field(min_length=1, max_length=32)
    location: str = Field(min_length=1, max_length=255)
    status: CaseStatus = "open"
    priority: CasePriority = "medium"
    assigned_officer: str | None = Field(default=None, max_length=255)
    description: str = Field(min_length=1, max_length=20_000)
    # super admin opening a case inside a specific tenant
    tenant_id: str | None = Field(default=None, min_length=3, max_length=64)


class CaseUpdateRequest(BaseModel):
    case_name: str | None = Field(default=None, min_length=1, max_length=255)
    case_number: str | None = Field(default=None, max_length=64)
    date_reported: str | None = Field(default=None, min_length=1, max_length=32)
    date_occurred: str | None = Field(default=None, min_length=1, max_length=32)
    location: str | None = Field(default=None, min_length=1, max_length=255)
    status: CaseStatus | None = None
    priority: CasePriority | None = None
    assigned_officer: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, min_length=1, max_length=20_000)


class _Row(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class TimelineEventIn(BaseModel):
    date: str = Field(min_length=1, max_length=32)
    time: str = Field(min_length=1, max_length=16)
    event: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1, max_length=10_000)


class TimelineEventPatch(BaseModel):
    date: str | None = Field(default=None, min_length=1, max_length=32)
    time: str | None = Field(default=None, min_length=1, max_length=16)
    event: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1, max_length=10_000)


class TimelineEventOut(_Row):
    id: int
    case_id: int
    date: str
    time: str
    event: str
    description: str
    created_by: str
    created_by_name: str
    created_by_role: str
    created_at: datetime


class SuspectIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1, max_length=10_000)
    address: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    status: str = Field(default="active", min_length=1, max_length=32)


class SuspectPatch(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, min_length=1, max_length=10_000)
    address: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    status: str | None = Field(default=None, min_length=1, max_length=32)


class SuspectOut(_Row):
    id: int
    case_id: int
    name: str
    description: str
    address: str | None
    phone: str | None
    status: str
    created_by: str
    created_by_name: str
    created_at: datetime


class CaseUpdateIn(BaseModel):
    date: str = Field(min_length=1, max_length=32)
    body: str = Field(min_length=1, max_length=10_000)


class CaseUpdatePatch(BaseModel):
    date: str | None = Field(default=None, min_length=1, max_length=32)
    body: str | None = Field(default=None, min_length=1, max_length=10_000)


class CaseUpdateOut(_Row):
    id: int
    case_id: int
    date: str
    body: str
    created_by: str
    created_by_name: str
    created_by_role: str
    created_at: datetime


class CasePermissionIn(BaseModel):
    user_id: str = Field(min_length=3, max_length=64)
    can_view: bool | None = None
    can_edit: bool | None = None
    can_delete: bool | None = None


class CasePermissionOut(_Row):
    id: int
    case_id: int
    user_id: str
    can_view: bool
    can_edit: bool
    can_delete: bool
    granted_by: str
    granted_by_name: str
    created_at: datetime


class CaseOut(_Row):
    id: int
    tenant_id: str
    case_name: str
    case_number: str | None
    date_reported: str
    date_occurred: str
    location: str
    status: str
    priority: str
    assigned_officer: str | None
    description: str
    created_by: str
    created_by_name: str
    created_by_role: str
    created_at: datetime
    updated_at: datetime


class CaseDetailOut(CaseOut):
    timeline: list[TimelineEventOut]
    suspects: list[SuspectOut]
    updates: list[CaseUpdateOut]
    permissions: list[CasePermissionOut]


class CasesListResponse(BaseModel):
    cases: list[CaseOut]
    total: int


class DeletedResponse(BaseModel):
    deleted: bool
    id: int
