"""
tests/test_purge_task.py -- Tests for the background expired-session purge loop.

The loop is driven directly with asyncio.run() and a zero interval, so each
test finishes in a fraction of a second without starting the app.
"""

from __future__ import annotations

import asyncio
from contextlib import suppress
from datetime import timedelta
from types import SimpleNamespace

from api.main import _purge_loop
from auth.models import Session
from core.config import to_iso, utc_now


def _run_loop_for(app, seconds: float) -> bool:
    """Run the purge loop for `seconds`, then cancel it. Returns True if it was still running."""

    async def scenario() -> bool:
        task = asyncio.create_task(_purge_loop(app, 0))
        await asyncio.sleep(seconds)
        alive = not task.done()
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        return alive

    return asyncio.run(scenario())


def test_loop_survives_a_failed_pass() -> None:
    calls: list[int] = []

    def flaky_purge() -> int:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("db down")
        return 0

    app = SimpleNamespace(state=SimpleNamespace(sessions=SimpleNamespace(purge_expired=flaky_purge)))

    assert _run_loop_for(app, 0.2) is True
    assert len(calls) >= 2


def test_loop_removes_expired_rows(sessions, accounts) -> None:
    past = to_iso(utc_now() - timedelta(minutes=1))
    sessions.replace_for_user(Session(user_id=accounts.admin.id, session_token="tok-expired", expires_at=past))
    app = SimpleNamespace(state=SimpleNamespace(sessions=sessions))

    assert _run_loop_for(app, 0.2) is True
    assert sessions.count_for_user(accounts.admin.id) == 0
