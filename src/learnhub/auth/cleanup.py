"""Periodic purge of expired and revoked refresh tokens.

Only terminal rows are touched, and each pass is a single short DELETE, so
it never holds locks that foreground authentication traffic waits on.
Skipping a pass is harmless: verification already rejects these rows.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from learnhub.auth.tokens import delete_expired_tokens
from learnhub.database import transaction

if TYPE_CHECKING:
    from learnhub.database import Database

logger = logging.getLogger(__name__)


async def purge_expired_tokens(database: Database) -> int:
    """Run one purge pass. Returns the number of rows deleted."""
    async with database.session() as db, transaction(db):
        deleted = await delete_expired_tokens(db)
    logger.info("Purged %d expired or revoked refresh tokens", deleted)
    return deleted


async def run_token_cleanup(database: Database, interval_seconds: float) -> None:
    """Purge now, then every ``interval_seconds`` until cancelled."""
    while True:
        try:
            await purge_expired_tokens(database)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Refresh token purge failed", exc_info=True)
        await asyncio.sleep(interval_seconds)
