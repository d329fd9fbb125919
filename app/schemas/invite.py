from pydantic import BaseModel, EmailStr
from datetime import datetime

from app.models.note_access import Role


class InviteCreate(BaseModel):
    email: EmailStr
    role: Role = Role.EDITOR


class InviteCreated(BaseModel):
    invite_id: str


class InviteResponse(BaseModel):
    id: str
    note_id: int
    invitee_email: str
    role: Role
    expires_at: datetime
    accepted: bool
    created_at: datetime

    class Config:
        from_attributes = True
