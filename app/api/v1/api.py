from fastapi import APIRouter
from app.api.v1.endpoints import auth, users, notes, invites, tags, trash

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(notes.router, prefix="/notes", tags=["notes"])
api_router.include_router(invites.router, prefix="/invites", tags=["invites"])
api_router.include_router(tags.router, prefix="/tags", tags=["tags"])
api_router.include_router(trash.router, prefix="/trash", tags=["trash"])
