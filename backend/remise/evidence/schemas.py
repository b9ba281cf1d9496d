from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

EvidenceType = Literal["photo", "video", "document"]


class EvidenceCreate(BaseModel):
    item_id: int
    type: EvidenceType
    storage_id: str = Field(min_length=1, max_length=512)
    original_name: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=5_000)
    mime_type: str | None = Field(default=None, max_length=128)
    file_size: int | None = Field(default=None, ge=0)


class InlineDocumentCreate(BaseModel):
    item_id: int
    filename: str = Field(min_length=1, max_length=255)
    mime_type: str = Field(default="application/octet-stream", max_length=128)
    content_base64: str = Field(min_length=1)
    description: str | None = Field(default=None, max_length=5_000)


class EvidenceUpdate(BaseModel):
    description: str | None = Field(default=None, max_length=5_000)


class EvidenceOut(BaseModel):
    id: int
    item_id: int
    type: str
    storage_id: str | None
    original_name: str | None
    description: str | None
    mime_type: str | None
    file_size: int | None
    stored_inline: bool
    url: str | None = None
    uploaded_by: str | None
    created_at: datetime


class EvidenceListResponse(BaseModel):
    item_id: int
    evidence: list[EvidenceOut]
    total: int


class EvidenceDeleteResponse(BaseModel):
    deleted: bool
    evidence_id: int
