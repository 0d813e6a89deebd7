"""
Office bearer term background tasks.
Closes terms whose two-year tenure has run out.
"""

from __future__ import annotations

import asyncio
import logging

from sangh.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="sangh.workers.term_tasks.sweep_expired_terms",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def sweep_expired_terms(self) -> dict[str, int]:
    """
    1. Open a session and mark every expired active term as completed.
    2. Commit; a failure rolls back and the task is retried.
    """
    try:
        # Fresh event loop per run; forked workers inherit a closed one.
        from sangh.core.database import async_engine
        async_engine.sync_engine.dispose()

        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            count = loop.run_until_complete(_sweep())
        finally:
            loop.close()
        return {"completed": count}
    except Exception as exc:
        logger.error("sweep_expired_terms failed: %s", exc)
        raise self.retry(exc=exc)


async def _sweep() -> int:
    """Async helper: run the sweep in its own transaction."""
    from sangh.core.database import AsyncSessionLocal
    from sangh.services.term_service import TermService

    async with AsyncSessionLocal() as db:
        try:
            count = await TermService(db).sweep_expired_terms()
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    return count
