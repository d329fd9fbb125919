#!/usr/bin/env python3
"""
Purge Expired Trash

Permanently deletes every trashed note whose retention period
(TRASH_RETENTION_DAYS) has elapsed. Meant to be run by cron or a
scheduler; uses the same DATABASE_URL as the API.

Usage:
    $ python scripts/purge_expired_notes.py
"""

import asyncio
import logging
import os
import sys

# Required for direct script execution without package installation
sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from app.core.database import dispose_engine, get_session_factory  # noqa: E402
from app.core.logging import setup_logging  # noqa: E402
from app.services.lifecycle import purge_expired_notes  # noqa: E402

logger = logging.getLogger("app.scripts.purge_expired_notes")


async def main() -> None:
    setup_logging()
    try:
        async with get_session_factory()() as session:
            purged = await purge_expired_notes(session)
        logger.info("Sweep finished, %d notes purged", len(purged))
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
