from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class NoteCreate(BaseModel):
    item_id: int
    content: str = Field(min_length=1, max_length=20_000)
    is_confidential: bool = False


class NoteUpdate(BaseModel):
    content: str | None = Field(default=None, min_length=1, max_length=20_000)
    is_confidential: bool | None = None


class NoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    item_id: int
    content: str
    is_confidential: bool
    created_by: str
    created_by_name: str
    created_by_role: str
    created_at: datetime
    updated_at: datetime


class NotesListResponse(BaseModel):
    item_id: int
    notes: list[NoteOut]
    total: int


class NoteDeleteResponse(BaseModel):
    deleted: bool
    note_id: int
