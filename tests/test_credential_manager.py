"""Tests for CredentialManager single-flight acquisition and proactive renewal.

Verifies:
- Concurrent callers share one acquisition and one result
- Failures are shared, then cleared so the next caller starts fresh
- Silent failure falls back to interactive acquisition exactly once
- Renewal is scheduled refresh_buffer before expiry, and never in the past
- Renewal timers are replaced, fire, and are cancelled on close
- Acquisitions still running at close() never arm a timer
"""

from __future__ import annotations

import asyncio
import datetime
import logging

import pytest

from auth.errors import AuthenticationError, InteractionRequiredError, NoActiveAccountError
from auth.session import Session
from conftest import FakeIdentityProvider, make_manager, utcnow


class TestSingleFlight:
    """Concurrent get_access_token() calls."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_trigger_one_acquisition(self, provider):
        """N concurrent callers produce exactly one silent acquisition."""
        manager = make_manager(provider)

        tokens = await asyncio.gather(*(manager.get_access_token() for _ in range(10)))

        assert provider.silent_calls == 1
        assert len(set(tokens)) == 1
        assert tokens[0] == "token-1-silent-1"
        assert manager.acquisitions == 1
        await manager.close()

    @pytest.mark.asyncio
    async def test_flag_cleared_after_settle(self, provider):
        """A call after the shared acquisition settled starts a new one."""
        manager = make_manager(provider)

        first = await manager.get_access_token()
        assert not manager.is_refreshing
        second = await manager.get_access_token()

        assert provider.silent_calls == 2
        assert first != second
        await manager.close()

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_failure(self):
        """All joined callers observe the same error, and the flag is reset."""
        error = InteractionRequiredError("popup blocked")
        provider = FakeIdentityProvider(
            silent_error=InteractionRequiredError("silent failed"),
            interactive_error=error,
        )
        manager = make_manager(provider)

        results = await asyncio.gather(
            *(manager.get_access_token() for _ in range(5)),
            return_exceptions=True,
        )

        assert all(result is error for result in results)
        assert provider.silent_calls == 1
        assert provider.interactive_calls == 1
        assert not manager.is_refreshing

        # Next caller does not replay the stale failure
        provider.silent_error = None
        assert await manager.get_access_token() == "token-1-silent-2"
        await manager.close()

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_shared_acquisition(self):
        """A joiner timing out leaves the shared acquisition running for others."""
        provider = FakeIdentityProvider(delay=0.05)
        manager = make_manager(provider)

        survivor = asyncio.ensure_future(manager.get_access_token())
        await asyncio.sleep(0)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(manager.get_access_token(), timeout=0.01)

        assert await survivor == "token-1-silent-1"
        assert provider.silent_calls == 1
        await manager.close()


class TestAcquisitionFallback:
    """Silent then interactive acquisition."""

    @pytest.mark.asyncio
    async def test_silent_failure_falls_back_to_interactive(self):
        provider = FakeIdentityProvider(silent_error=InteractionRequiredError("expired"))
        manager = make_manager(provider)

        token = await manager.get_access_token()

        assert token == "token-1-interactive-1"
        assert provider.interactive_calls == 1
        assert manager.credential.access_token == token
        await manager.close()

    @pytest.mark.asyncio
    async def test_interactive_failure_propagates(self, caplog):
        provider = FakeIdentityProvider(
            silent_error=InteractionRequiredError("expired"),
            interactive_error=RuntimeError("user closed popup"),
        )
        manager = make_manager(provider)

        with caplog.at_level(logging.ERROR, logger="auth.token_manager"):
            with pytest.raises(RuntimeError, match="user closed popup"):
                await manager.get_access_token()

        messages = [record.getMessage() for record in caplog.records]
        assert any("Silent token acquisition failed" in m for m in messages)
        assert any("Interactive token acquisition failed" in m for m in messages)
        assert manager.next_renewal_at is None

    @pytest.mark.asyncio
    async def test_no_active_account(self):
        provider = FakeIdentityProvider(account=None)
        manager = make_manager(provider)

        with pytest.raises(NoActiveAccountError):
            await manager.get_access_token()

        assert provider.silent_calls == 0
        assert not manager.is_refreshing

    @pytest.mark.asyncio
    async def test_scopes_forwarded_to_provider(self, provider):
        manager = make_manager(provider)

        await manager.get_access_token(["api.write"])

        assert provider.requests[0].scopes == ("api.write",)
        assert provider.requests[0].account is provider.account
        await manager.close()

    @pytest.mark.asyncio
    async def test_production_logs_are_sanitized(self, caplog):
        provider = FakeIdentityProvider(
            silent_error=InteractionRequiredError("refresh_token=abc123 rejected"),
        )
        manager = make_manager(provider, production=True)

        with caplog.at_level(logging.ERROR, logger="auth.token_manager"):
            await manager.get_access_token()

        text = caplog.text
        assert "abc123" not in text
        assert "[SECURE]" in text
        await manager.close()


class TestProactiveRenewal:
    """Renewal timer scheduling."""

    @pytest.mark.asyncio
    async def test_renewal_scheduled_five_minutes_before_expiry(self, provider):
        manager = make_manager(provider)

        await manager.get_access_token()

        expires_on = manager.credential.expires_on
        assert manager.next_renewal_at == expires_on - datetime.timedelta(minutes=5)
        await manager.close()

    @pytest.mark.asyncio
    async def test_no_renewal_when_buffer_already_passed(self):
        """A token expiring within the buffer does not start a renewal storm."""
        provider = FakeIdentityProvider(expires_in=datetime.timedelta(minutes=2))
        manager = make_manager(provider)

        await manager.get_access_token()

        assert manager.next_renewal_at is None

    @pytest.mark.asyncio
    async def test_no_renewal_without_expiry(self):
        provider = FakeIdentityProvider(expires_in=None)
        manager = make_manager(provider)

        await manager.get_access_token()

        assert manager.next_renewal_at is None

    @pytest.mark.asyncio
    async def test_rescheduling_replaces_pending_timer(self, provider):
        manager = make_manager(provider)
        first = utcnow() + datetime.timedelta(hours=1)
        second = utcnow() + datetime.timedelta(hours=2)

        manager.schedule_renewal(first)
        handle = manager._renewal_handle
        manager.schedule_renewal(second)

        assert handle.cancelled()
        assert manager.next_renewal_at == second - datetime.timedelta(minutes=5)
        await manager.close()

    @pytest.mark.asyncio
    async def test_renewal_fires_and_reacquires(self):
        provider = FakeIdentityProvider(expires_in=datetime.timedelta(minutes=5, milliseconds=50))
        manager = make_manager(provider)

        await manager.get_access_token()
        assert manager.next_renewal_at is not None
        provider.expires_in = datetime.timedelta(hours=1)

        await asyncio.sleep(0.2)

        assert provider.silent_calls == 2
        assert manager.credential.access_token == "token-1-silent-2"
        await manager.close()

    @pytest.mark.asyncio
    async def test_renewal_failure_is_logged_not_raised(self, caplog):
        provider = FakeIdentityProvider(expires_in=datetime.timedelta(minutes=5, milliseconds=50))
        manager = make_manager(provider)
        await manager.get_access_token()

        provider.silent_error = InteractionRequiredError("expired")
        provider.interactive_error = InteractionRequiredError("no browser")
        with caplog.at_level(logging.ERROR, logger="auth.token_manager"):
            await asyncio.sleep(0.2)

        assert any("Proactive token refresh failed" in r.getMessage() for r in caplog.records)
        assert not manager.is_refreshing
        await manager.close()

    @pytest.mark.asyncio
    async def test_close_cancels_pending_timer(self, provider):
        manager = make_manager(provider)
        await manager.get_access_token()
        handle = manager._renewal_handle

        await manager.close()

        assert handle.cancelled()
        assert manager.next_renewal_at is None

    @pytest.mark.asyncio
    async def test_clear_drops_credential(self, provider):
        manager = make_manager(provider)
        await manager.get_access_token()

        manager.clear()

        assert manager.credential is None
        assert manager.next_renewal_at is None


class TestShutdown:
    """close() while work is still in flight."""

    @pytest.mark.asyncio
    async def test_close_during_acquisition_leaves_no_timer(self):
        """An acquisition settling after close() neither caches nor schedules."""
        provider = FakeIdentityProvider(delay=0.05)
        manager = make_manager(provider)

        caller = asyncio.ensure_future(manager.get_access_token())
        await asyncio.sleep(0.01)
        await manager.close()

        with pytest.raises(AuthenticationError):
            await caller
        await asyncio.sleep(0.06)

        assert manager.next_renewal_at is None
        assert manager.credential is None
        assert not manager.is_refreshing

    @pytest.mark.asyncio
    async def test_acquisition_after_close_is_not_cached(self, provider):
        manager = make_manager(provider)
        await manager.close()

        token = await manager.get_access_token()

        assert token == "token-1-silent-1"
        assert manager.credential is None
        assert manager.next_renewal_at is None

    @pytest.mark.asyncio
    async def test_sign_out_during_acquisition(self):
        provider = FakeIdentityProvider(delay=0.05)
        manager = make_manager(provider)
        session = Session(provider, manager)

        caller = asyncio.ensure_future(manager.get_access_token())
        await asyncio.sleep(0.01)
        await session.sign_out()
        await asyncio.gather(caller, return_exceptions=True)

        assert manager.credential is None
        assert manager.next_renewal_at is None
        assert not session.is_authenticated()
