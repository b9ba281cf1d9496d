from datetime import datetime

from pydantic import BaseModel, Field


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    description: str | None = Field(default=None, max_length=1_000)
    sort_order: int = Field(default=100, ge=0, le=10_000)


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=64)
    description: str | None = Field(default=None, max_length=1_000)
    sort_order: int | None = Field(default=None, ge=0, le=10_000)


class CategoryOut(BaseModel):
    id: int
    tenant_id: str
    name: str
    description: str | None
    is_system: bool
    sort_order: int
    created_by: str
    created_at: datetime


class CategoriesListResponse(BaseModel):
    tenant_id: str
    categories: list[CategoryOut]
