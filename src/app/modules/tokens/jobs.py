"""
Auth Token Background Jobs

Periodic removal of expired verification and reset tokens.

Expired tokens are already unusable (consume checks the expiry instant), so
this job is storage hygiene only. It is idempotent and safe to run at any
time, including manually via the debug endpoints.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.core.database import async_session_maker
from app.core.scheduler import register_job
from app.modules.tokens.service import TokenStore

logger = logging.getLogger(__name__)

# Job ID for registration and manual triggering
JOB_ID_SWEEP_EXPIRED = "auth_tokens_sweep_expired"


async def sweep_expired_tokens() -> dict[str, Any]:
    """
    Delete all expired auth tokens.

    Handles its own database session.

    Returns:
        Dict with the number of tokens removed and when the sweep ran
    """
    started_at = datetime.now(UTC)
    logger.info("Starting expired token sweep")

    async with async_session_maker() as db:
        removed = await TokenStore().sweep(db)

    return {"removed": removed, "swept_at": started_at.isoformat()}


def register_token_jobs() -> None:
    """
    Register token background jobs with the scheduler.

    Call during application startup, before the scheduler is started.
    """
    interval = settings.token_sweep_interval_minutes

    register_job(
        job_id=JOB_ID_SWEEP_EXPIRED,
        func=sweep_expired_tokens,
        trigger=IntervalTrigger(minutes=interval),
    )
    logger.info(f"Registered job: {JOB_ID_SWEEP_EXPIRED} (interval: {interval} minutes)")
