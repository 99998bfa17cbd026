"""Tests for the background session sweep in api/main.py.

_purge_loop runs until cancelled. A store failure or an unexpected error on
one tick is logged and the next tick still runs.
"""

import asyncio
from types import SimpleNamespace

import pytest

from api.main import _purge_loop
from auth.errors import StoreError


class _Stop(BaseException):
    """Ends the loop from inside purge_expired once enough ticks have run."""


class FlakyManager:
    def __init__(self, failures):
        self.failures = list(failures)
        self.calls = 0

    def purge_expired(self) -> int:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        raise _Stop()


def _run_loop(manager) -> None:
    app = SimpleNamespace(state=SimpleNamespace(session_manager=manager))
    with pytest.raises(_Stop):
        asyncio.run(_purge_loop(app, 0))


def test_unexpected_error_does_not_end_the_sweep(caplog):
    manager = FlakyManager([RuntimeError("boom")])
    with caplog.at_level("ERROR", logger="classhub.api"):
        _run_loop(manager)
    assert manager.calls == 2
    assert "Session purge failed unexpectedly" in caplog.text


def test_store_error_is_retried_on_next_tick():
    manager = FlakyManager([StoreError("down"), StoreError("still down")])
    _run_loop(manager)
    assert manager.calls == 3
