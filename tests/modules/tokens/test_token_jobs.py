"""
Tests for the expired token sweep job and its scheduler registration.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from app.core import scheduler
from app.modules.tokens.jobs import (
    JOB_ID_SWEEP_EXPIRED,
    register_token_jobs,
    sweep_expired_tokens,
)
from app.modules.tokens.models import AuthToken, TokenPurpose
from app.modules.tokens.service import TokenStore


class TestSweepExpiredTokens:
    """Tests for the sweep_expired_tokens job."""

    @pytest.mark.asyncio
    async def test_removes_expired_tokens(self, db, session_factory):
        past = TokenStore(clock=lambda: datetime.now(UTC) - timedelta(days=2))
        await past.issue(db, "subject-a", TokenPurpose.VERIFY, timedelta(hours=1))
        await TokenStore().issue(db, "subject-b", TokenPurpose.VERIFY, timedelta(hours=1))

        with patch("app.modules.tokens.jobs.async_session_maker", session_factory):
            result = await sweep_expired_tokens()

        assert result["removed"] == 1
        remaining = (await db.execute(select(func.count()).select_from(AuthToken))).scalar_one()
        assert remaining == 1

    @pytest.mark.asyncio
    async def test_nothing_to_remove(self, session_factory):
        with patch("app.modules.tokens.jobs.async_session_maker", session_factory):
            result = await sweep_expired_tokens()

        assert result["removed"] == 0
        assert "swept_at" in result


class TestRegisterTokenJobs:
    """Tests for job registration and manual triggering."""

    @pytest.fixture(autouse=True)
    def isolated_registry(self, monkeypatch):
        monkeypatch.setattr(scheduler, "_job_registry", {})
        monkeypatch.setattr(scheduler, "_scheduler", None)

    def test_registers_sweep_job(self):
        register_token_jobs()

        jobs = scheduler.list_registered_jobs()
        assert [job["job_id"] for job in jobs] == [JOB_ID_SWEEP_EXPIRED]
        assert jobs[0]["next_run_time"] is None

    @pytest.mark.asyncio
    async def test_manual_trigger_runs_sweep(self, session_factory):
        register_token_jobs()

        with patch("app.modules.tokens.jobs.async_session_maker", session_factory):
            result = await scheduler.trigger_job_manually(JOB_ID_SWEEP_EXPIRED)

        assert result["status"] == "success"
        assert result["result"]["removed"] == 0

    @pytest.mark.asyncio
    async def test_manual_trigger_unknown_job(self):
        with pytest.raises(ValueError, match="not found"):
            await scheduler.trigger_job_manually("does_not_exist")

    @pytest.mark.asyncio
    async def test_scheduler_start_schedules_registered_jobs(self):
        register_token_jobs()

        started = await scheduler.start_scheduler()
        try:
            assert started.get_job(JOB_ID_SWEEP_EXPIRED) is not None
            assert scheduler.list_registered_jobs()[0]["next_run_time"] is not None
        finally:
            await scheduler.stop_scheduler()

        assert scheduler.get_scheduler() is None
