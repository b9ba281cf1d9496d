from datetime import datetime

from pydantic import BaseModel, Field


class ItemCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=10_000)
    serial_number: str | None = Field(default=None, max_length=128)
    category: str = Field(default="other", min_length=1, max_length=64)
    purchase_date: str | None = Field(default=None, max_length=32)
    purchase_cost: float = Field(default=0.0, ge=0)
    estimated_value: float = Field(default=0.0, ge=0)
    date_last_seen: str | None = Field(default=None, max_length=32)
    location_last_seen: str | None = Field(default=None, max_length=255)
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None
    # set by law enforcement / super admin filing into a specific tenant
    tenant_id: str | None = Field(default=None, min_length=3, max_length=64)


class ItemUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=10_000)
    serial_number: str | None = Field(default=None, max_length=128)
    category: str | None = Field(default=None, min_length=1, max_length=64)
    purchase_date: str | None = Field(default=None, max_length=32)
    purchase_cost: float | None = Field(default=None, ge=0)
    estimated_value: float | None = Field(default=None, ge=0)
    date_last_seen: str | None = Field(default=None, max_length=32)
    location_last_seen: str | None = Field(default=None, max_length=255)
    tags: list[str] | None = None
    notes: str | None = None
    owner_id: str | None = Field(default=None, min_length=3, max_length=64)


class ItemOut(BaseModel):
    id: int
    tenant_id: str
    owner_id: str
    name: str
    description: str
    serial_number: str | None
    category: str
    purchase_date: str | None
    purchase_cost: float
    estimated_value: float
    date_last_seen: str | None
    location_last_seen: str | None
    tags: list[str]
    notes: str | None
    evidence_count: int = 0
    created_at: datetime
    updated_at: datetime


class ItemsListResponse(BaseModel):
    items: list[ItemOut]
    total: int


class ItemDeleteResponse(BaseModel):
    deleted: bool
    item_id: int
    evidence_deleted: int
