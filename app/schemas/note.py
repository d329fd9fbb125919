from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List

from app.schemas.access import AccessResponse


class TagRef(BaseModel):
    id: int
    name: str


class NoteBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)


class NoteCreate(NoteBase):
    tag_ids: Optional[List[int]] = []


class NoteUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    content: Optional[str] = None
    tag_ids: Optional[List[int]] = None  # replaces your own tags on the note when given


class NoteResponse(BaseModel):
    id: int
    title: str
    content: str
    owner_id: int
    tags: List[TagRef] = []  # the requesting user's own tags on this note
    created_at: datetime
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NoteDetailResponse(NoteResponse):
    role: str  # "owner", "editor" or "viewer" for the requesting user
    accesses: List[AccessResponse] = []


class NoteListResponse(BaseModel):
    owned: List[NoteResponse] = []
    shared: List[NoteResponse] = []
