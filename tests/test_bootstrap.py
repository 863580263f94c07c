"""
tests/test_bootstrap.py
=======================
Profile bootstrap: timeout, retries and the degraded fallback.
"""
import asyncio
from unittest.mock import patch

from courierdesk.core.bootstrap import BootstrapState, ProfileBootstrap
from courierdesk.core.exceptions import RecordStoreError
from courierdesk.models.user import UserRole

_real_sleep = asyncio.sleep

PROFILE = {"id": "u1", "name": "Karim Hassan", "email": "karim@example.com", "role": "courier"}


def make_fetcher(*outcomes):
    """Async fetcher returning (or raising) each outcome in turn; "hang" never returns."""
    calls = []

    async def fetch(user_id):
        outcome = outcomes[min(len(calls), len(outcomes) - 1)]
        calls.append(user_id)
        if outcome == "hang":
            await _real_sleep(10)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return fetch, calls


class TestProfileBootstrap:

    def test_initial_state(self):
        fetch, _ = make_fetcher(PROFILE)
        bootstrap = ProfileBootstrap(fetch)
        assert bootstrap.state == BootstrapState.UNAUTHENTICATED
        bootstrap.begin()
        assert bootstrap.state == BootstrapState.AUTHENTICATING

    def test_defaults_from_settings(self):
        fetch, _ = make_fetcher(PROFILE)
        bootstrap = ProfileBootstrap(fetch)
        assert bootstrap.timeout == 15.0
        assert bootstrap.retries == 2
        assert bootstrap.retry_delay == 0.3

    def test_ready_with_profile(self):
        fetch, calls = make_fetcher(PROFILE)
        bootstrap = ProfileBootstrap(fetch)

        user = asyncio.run(bootstrap.run("u1", "karim@example.com"))

        assert bootstrap.state == BootstrapState.READY
        assert user.role == UserRole.COURIER
        assert user.name == "Karim Hassan"
        assert not user.degraded
        assert calls == ["u1"]

    def test_retries_after_timeout(self):
        fetch, calls = make_fetcher("hang", PROFILE)
        bootstrap = ProfileBootstrap(fetch, timeout=0.01, retries=2, retry_delay=0)

        user = asyncio.run(bootstrap.run("u1", "karim@example.com"))

        assert bootstrap.state == BootstrapState.READY
        assert len(calls) == 2
        assert user.role == UserRole.COURIER

    def test_degraded_after_retries_run_out(self):
        fetch, calls = make_fetcher("hang")
        bootstrap = ProfileBootstrap(fetch, timeout=0.01, retries=2, retry_delay=0)

        user = asyncio.run(bootstrap.run("u1", "karim.h@example.com"))

        assert bootstrap.state == BootstrapState.DEGRADED
        assert len(calls) == 3
        assert user.degraded
        assert user.role is None
        assert user.name == "karim.h"

    def test_waits_between_retries(self):
        fetch, _ = make_fetcher("hang", PROFILE)
        bootstrap = ProfileBootstrap(fetch, timeout=0.01, retries=2, retry_delay=0.3)

        async def fast_sleep(delay):
            await _real_sleep(0)

        with patch("courierdesk.core.bootstrap.asyncio.sleep", side_effect=fast_sleep) as sleep:
            asyncio.run(bootstrap.run("u1", "karim@example.com"))

        sleep.assert_called_once_with(0.3)

    def test_store_error_degrades_without_retry(self):
        fetch, calls = make_fetcher(RecordStoreError("Failed to fetch profile"))
        bootstrap = ProfileBootstrap(fetch, timeout=1, retries=2, retry_delay=0)

        user = asyncio.run(bootstrap.run("u1", "karim@example.com"))

        assert bootstrap.state == BootstrapState.DEGRADED
        assert len(calls) == 1
        assert user.degraded

    def test_missing_profile_row_degrades(self):
        fetch, _ = make_fetcher(None)
        bootstrap = ProfileBootstrap(fetch)

        user = asyncio.run(bootstrap.run("u1", None))

        assert bootstrap.state == BootstrapState.DEGRADED
        assert user.name is None
