"""
Tests for the TokenStore against a real (SQLite) database.

These tests cover:
- Issue: raw token shape, hash-only storage, supersession
- Consume: single use, purpose binding, expiry boundaries, concurrency
- Collision retry on token hash
- Peek, revoke_all and sweep
"""

import asyncio
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select

from app.core.database import StoreUnavailableError
from app.modules.tokens.models import AuthToken, TokenPurpose
from app.modules.tokens.repository import _dialect_insert
from app.modules.tokens.service import TokenStore, hash_token

SUBJECT = "5b0f1c44-2a5e-4c4f-9a53-0d7f3b1b7a11"
OTHER_SUBJECT = "8e7f2b9c-61d4-4b0a-a3f5-2c9d1e6f4a22"
COLLIDING_TOKEN = "colliding-token-" + "x" * 27


async def _count_tokens(db) -> int:
    return (await db.execute(select(func.count()).select_from(AuthToken))).scalar_one()


class TestHashToken:
    """Tests for token hashing."""

    def test_returns_sha256_hex(self):
        assert len(hash_token("abc")) == 64

    def test_is_deterministic(self):
        assert hash_token("token") == hash_token("token")

    def test_different_inputs_differ(self):
        assert hash_token("token1") != hash_token("token2")


class TestIssue:
    """Tests for TokenStore.issue."""

    @pytest.mark.asyncio
    async def test_token_is_url_safe_and_long(self, db, token_store):
        token = await token_store.issue(db, SUBJECT, TokenPurpose.VERIFY, timedelta(hours=1))
        assert len(token) >= 43
        assert all(c.isalnum() or c in "-_" for c in token)

    @pytest.mark.asyncio
    async def test_only_hash_is_stored(self, db, token_store, clock):
        token = await token_store.issue(db, SUBJECT, TokenPurpose.VERIFY, timedelta(hours=1))

        record = (await db.execute(select(AuthToken))).scalar_one()
        assert record.token_hash == hash_token(token)
        assert record.token_hash != token
        assert record.subject_id == SUBJECT
        assert record.purpose == TokenPurpose.VERIFY

    @pytest.mark.asyncio
    async def test_reissue_supersedes_previous_token(self, db, token_store):
        """Only the latest token for a (subject, purpose) pair is redeemable."""
        first = await token_store.issue(db, SUBJECT, TokenPurpose.RESET, timedelta(hours=1))
        second = await token_store.issue(db, SUBJECT, TokenPurpose.RESET, timedelta(hours=1))

        assert await _count_tokens(db) == 1
        assert await token_store.consume(db, first, TokenPurpose.RESET) is None
        assert await token_store.consume(db, second, TokenPurpose.RESET) == SUBJECT

    @pytest.mark.asyncio
    async def test_purposes_are_independent(self, db, token_store):
        verify = await token_store.issue(db, SUBJECT, TokenPurpose.VERIFY, timedelta(hours=1))
        reset = await token_store.issue(db, SUBJECT, TokenPurpose.RESET, timedelta(hours=1))

        assert await _count_tokens(db) == 2
        assert await token_store.consume(db, verify, TokenPurpose.VERIFY) == SUBJECT
        assert await token_store.consume(db, reset, TokenPurpose.RESET) == SUBJECT

    @pytest.mark.asyncio
    async def test_hash_collision_retries_with_fresh_token(self, db, clock):
        tokens = iter([COLLIDING_TOKEN, COLLIDING_TOKEN, "fresh-token-" + "y" * 31])
        store = TokenStore(clock=clock, token_factory=tokens.__next__)

        first = await store.issue(db, SUBJECT, TokenPurpose.VERIFY, timedelta(hours=1))
        second = await store.issue(db, OTHER_SUBJECT, TokenPurpose.VERIFY, timedelta(hours=1))

        assert first == COLLIDING_TOKEN
        assert second != first
        assert await store.consume(db, first, TokenPurpose.VERIFY) == SUBJECT
        assert await store.consume(db, second, TokenPurpose.VERIFY) == OTHER_SUBJECT

    @pytest.mark.asyncio
    async def test_exhausted_collision_retries_raise(self, db, clock):
        store = TokenStore(
            clock=clock,
            token_factory=lambda: COLLIDING_TOKEN,
            max_attempts=3,
        )
        await store.issue(db, SUBJECT, TokenPurpose.VERIFY, timedelta(hours=1))

        with pytest.raises(StoreUnavailableError):
            await store.issue(db, OTHER_SUBJECT, TokenPurpose.VERIFY, timedelta(hours=1))

        assert await _count_tokens(db) == 1


class TestConsume:
    """Tests for TokenStore.consume."""

    @pytest.mark.asyncio
    async def test_consume_returns_subject_once(self, db, token_store):
        token = await token_store.issue(db, SUBJECT, TokenPurpose.VERIFY, timedelta(hours=1))

        assert await token_store.consume(db, token, TokenPurpose.VERIFY) == SUBJECT
        assert await token_store.consume(db, token, TokenPurpose.VERIFY) is None
        assert await _count_tokens(db) == 0

    @pytest.mark.asyncio
    async def test_unknown_and_empty_tokens(self, db, token_store):
        assert await token_store.consume(db, "never-issued", TokenPurpose.VERIFY) is None
        assert await token_store.consume(db, "", TokenPurpose.VERIFY) is None

    @pytest.mark.asyncio
    async def test_wrong_purpose_is_rejected_and_burns_token(self, db, token_store):
        """Tokens are never valid across purposes."""
        token = await token_store.issue(db, SUBJECT, TokenPurpose.VERIFY, timedelta(hours=1))

        assert await token_store.consume(db, token, TokenPurpose.RESET) is None
        assert await token_store.consume(db, token, TokenPurpose.VERIFY) is None

    @pytest.mark.asyncio
    async def test_valid_until_just_before_expiry(self, db, token_store, clock):
        token = await token_store.issue(db, SUBJECT, TokenPurpose.RESET, timedelta(hours=1))
        clock.advance(minutes=59, seconds=59)

        assert await token_store.consume(db, token, TokenPurpose.RESET) == SUBJECT

    @pytest.mark.asyncio
    async def test_rejected_at_expiry_instant(self, db, token_store, clock):
        token = await token_store.issue(db, SUBJECT, TokenPurpose.RESET, timedelta(hours=1))
        clock.advance(hours=1)

        assert await token_store.consume(db, token, TokenPurpose.RESET) is None
        assert await _count_tokens(db) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ttl", [timedelta(0), timedelta(seconds=-30)])
    async def test_non_positive_ttl_is_immediately_unconsumable(self, db, token_store, ttl):
        token = await token_store.issue(db, SUBJECT, TokenPurpose.VERIFY, ttl)
        assert await token_store.consume(db, token, TokenPurpose.VERIFY) is None

    @pytest.mark.asyncio
    async def test_concurrent_consume_succeeds_exactly_once(self, session_factory, token_store):
        """Two racing consumers on separate connections: one wins, one gets None."""
        async with session_factory() as db:
            token = await token_store.issue(db, SUBJECT, TokenPurpose.RESET, timedelta(hours=1))

        async def consume_once():
            async with session_factory() as session:
                return await token_store.consume(session, token, TokenPurpose.RESET)

        results = await asyncio.gather(*(consume_once() for _ in range(5)))

        assert results.count(SUBJECT) == 1
        assert results.count(None) == 4

    @pytest.mark.asyncio
    async def test_concurrent_issue_leaves_one_live_token(self, session_factory, token_store):
        """Racing issuers for one subject and purpose leave exactly one usable token."""

        async def issue_once():
            async with session_factory() as session:
                return await token_store.issue(
                    session, SUBJECT, TokenPurpose.RESET, timedelta(hours=1)
                )

        tokens = await asyncio.gather(*(issue_once() for _ in range(5)))

        assert len(set(tokens)) == 5
        async with session_factory() as db:
            assert await _count_tokens(db) == 1
            results = [
                await token_store.consume(db, token, TokenPurpose.RESET) for token in tokens
            ]

        assert results.count(SUBJECT) == 1
        assert results.count(None) == 4


class TestPeek:
    """Tests for TokenStore.peek."""

    @pytest.mark.asyncio
    async def test_peek_does_not_consume(self, db, token_store):
        token = await token_store.issue(db, SUBJECT, TokenPurpose.VERIFY, timedelta(hours=1))

        record = await token_store.peek(db, token, TokenPurpose.VERIFY)
        assert record is not None
        assert record.subject_id == SUBJECT
        assert await token_store.consume(db, token, TokenPurpose.VERIFY) == SUBJECT

    @pytest.mark.asyncio
    async def test_peek_wrong_purpose_leaves_token(self, db, token_store):
        token = await token_store.issue(db, SUBJECT, TokenPurpose.VERIFY, timedelta(hours=1))

        assert await token_store.peek(db, token, TokenPurpose.RESET) is None
        assert await _count_tokens(db) == 1

    @pytest.mark.asyncio
    async def test_peek_deletes_expired_token(self, db, token_store, clock):
        token = await token_store.issue(db, SUBJECT, TokenPurpose.VERIFY, timedelta(minutes=5))
        clock.advance(minutes=5)

        assert await token_store.peek(db, token, TokenPurpose.VERIFY) is None
        assert await _count_tokens(db) == 0


class TestRevokeAndSweep:
    """Tests for revoke_all and sweep."""

    @pytest.mark.asyncio
    async def test_revoke_all_purposes(self, db, token_store):
        await token_store.issue(db, SUBJECT, TokenPurpose.VERIFY, timedelta(hours=1))
        await token_store.issue(db, SUBJECT, TokenPurpose.RESET, timedelta(hours=1))
        other = await token_store.issue(db, OTHER_SUBJECT, TokenPurpose.RESET, timedelta(hours=1))

        assert await token_store.revoke_all(db, SUBJECT) == 2
        assert await token_store.consume(db, other, TokenPurpose.RESET) == OTHER_SUBJECT

    @pytest.mark.asyncio
    async def test_revoke_single_purpose(self, db, token_store):
        verify = await token_store.issue(db, SUBJECT, TokenPurpose.VERIFY, timedelta(hours=1))
        await token_store.issue(db, SUBJECT, TokenPurpose.RESET, timedelta(hours=1))

        assert await token_store.revoke_all(db, SUBJECT, TokenPurpose.RESET) == 1
        assert await token_store.consume(db, verify, TokenPurpose.VERIFY) == SUBJECT

    @pytest.mark.asyncio
    async def test_revoke_with_nothing_outstanding(self, db, token_store):
        assert await token_store.revoke_all(db, SUBJECT) == 0

    @pytest.mark.asyncio
    async def test_sweep_removes_only_expired(self, db, token_store, clock):
        await token_store.issue(db, SUBJECT, TokenPurpose.VERIFY, timedelta(minutes=10))
        live = await token_store.issue(db, OTHER_SUBJECT, TokenPurpose.VERIFY, timedelta(hours=2))
        clock.advance(minutes=10)

        assert await token_store.sweep(db) == 1
        assert await _count_tokens(db) == 1
        assert await token_store.consume(db, live, TokenPurpose.VERIFY) == OTHER_SUBJECT

    @pytest.mark.asyncio
    async def test_sweep_is_idempotent(self, db, token_store, clock):
        await token_store.issue(db, SUBJECT, TokenPurpose.VERIFY, timedelta(0))

        assert await token_store.sweep(db) == 1
        assert await token_store.sweep(db) == 0


class TestDialectSupport:
    """Tests for the backend check on token upserts."""

    def test_unsupported_dialect_raises(self):
        db = MagicMock()
        db.get_bind.return_value.dialect.name = "mysql"

        with pytest.raises(RuntimeError, match="not supported on mysql"):
            _dialect_insert(db)
