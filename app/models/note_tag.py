from sqlalchemy import Column, Integer, ForeignKey, Index, Table

from app.core.database import Base

# Join rows recording which tags a user has put on which notes.
# A row never grants the tag owner any access to the note.
note_tags = Table(
    "note_tags",
    Base.metadata,
    Column("note_id", Integer, ForeignKey("notes.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
    Index("ix_note_tags_tag_id", "tag_id"),
)
