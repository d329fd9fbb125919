from pydantic import BaseModel, EmailStr
from typing import Optional, List

from app.models.note_access import Role


class AccessResponse(BaseModel):
    id: int
    user_id: int
    role: Role
    email: str
    display_name: Optional[str] = None


class ShareRequest(BaseModel):
    email: EmailStr
    role: Role = Role.EDITOR


class ShareResponse(BaseModel):
    accesses: List[AccessResponse]
    invite_id: Optional[str] = None  # set when the email had no account and an invite was sent


class RoleUpdate(BaseModel):
    user_id: int
    role: Role
