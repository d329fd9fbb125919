from pydantic import BaseModel, Field
from typing import List


class TagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    note_ids: List[int] = []


class TagRename(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)


class TagResponse(BaseModel):
    id: int
    name: str
    note_count: int = 0


class TagAttach(BaseModel):
    note_ids: List[int]


class TagAttachResponse(BaseModel):
    attached_ids: List[int]
