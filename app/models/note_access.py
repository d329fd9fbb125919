from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.models.base import utcnow


class Role(str, Enum):
    VIEWER = "viewer"
    EDITOR = "editor"


class NoteAccess(Base):
    __tablename__ = "note_accesses"
    __table_args__ = (UniqueConstraint("note_id", "user_id", name="uq_note_accesses_note_user"),)

    id = Column(Integer, primary_key=True, index=True)
    note_id = Column(Integer, ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="viewer")  # viewer, editor
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    note = relationship("Note", back_populates="accesses")
    user = relationship("User", back_populates="note_accesses")
