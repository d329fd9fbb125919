from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class TrashItem(BaseModel):
    id: int
    title: str
    content: str
    deleted_at: datetime
    updated_at: Optional[datetime] = None
    purge_at: datetime
    days_left: int  # negative once the deadline has passed
    purge_eligible: bool
