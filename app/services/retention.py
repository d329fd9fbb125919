"""
Trash retention arithmetic.

A trashed note is kept for TRASH_RETENTION_DAYS after its deleted_at
timestamp; after that it is eligible for the purge sweep.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.base import as_utc, utcnow
from app.models.note import Note

ONE_DAY_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class PurgeEligibility:
    purge_at: datetime
    days_left: int

    @property
    def eligible(self) -> bool:
        return self.days_left <= 0


def purge_eligibility(
    deleted_at: datetime,
    retention_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> PurgeEligibility:
    """Compute the purge deadline and whole days remaining (rounded up, may be negative)"""
    if retention_days is None:
        retention_days = settings.TRASH_RETENTION_DAYS
    now = as_utc(now) if now is not None else utcnow()
    purge_at = as_utc(deleted_at) + timedelta(days=retention_days)
    days_left = math.ceil((purge_at - now).total_seconds() / ONE_DAY_SECONDS)
    return PurgeEligibility(purge_at=purge_at, days_left=days_left)


def is_purge_eligible(deleted_at: Optional[datetime], retention_days: Optional[int] = None,
                      now: Optional[datetime] = None) -> bool:
    if deleted_at is None:
        return False
    return purge_eligibility(deleted_at, retention_days, now).eligible


async def list_trash(db: AsyncSession, user_id: int, now: Optional[datetime] = None) -> List[dict]:
    """The user's own trashed notes, newest first, with their purge deadline"""
    result = await db.execute(
        select(Note)
        .where(Note.owner_id == user_id, Note.deleted_at.is_not(None))
        .order_by(Note.deleted_at.desc())
    )
    items = []
    for note in result.scalars().all():
        info = purge_eligibility(note.deleted_at, now=now)
        items.append({
            "note": note,
            "purge_at": info.purge_at,
            "days_left": info.days_left,
            "purge_eligible": info.eligible,
        })
    return items
