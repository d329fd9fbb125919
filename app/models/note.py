from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.models.base import utcnow


class Note(Base):
    __tablename__ = "notes"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    # NULL while active; set when moved to the trash
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    # Relationships
    owner = relationship("User", back_populates="notes")
    accesses = relationship("NoteAccess", back_populates="note", cascade="all, delete-orphan")
    invites = relationship("NoteInvite", back_populates="note", cascade="all, delete-orphan")
    tags = relationship("Tag", secondary="note_tags", back_populates="notes")
