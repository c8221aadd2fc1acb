from __future__ import annotations

import pytest
import tzlocal


@pytest.fixture(autouse=True)
def _no_threads_in_unit_tests(monkeypatch: pytest.MonkeyPatch):
    """Run `asyncio.to_thread` inline for unit tests.

    The HTTP gateway and the observability recorder use `asyncio.to_thread`
    for blocking I/O. In unit tests the calls are fakes, and threadpool
    workers would only make ordering nondeterministic.
    """

    async def _to_thread(func, /, *args, **kwargs):  # noqa: ANN001, D401
        return func(*args, **kwargs)

    monkeypatch.setattr("delivery.gateways.http.asyncio.to_thread", _to_thread)
    yield


@pytest.fixture
def local_zone(monkeypatch: pytest.MonkeyPatch):
    """Pin the process timezone to `America/Los_Angeles` for the duration of a test."""
    with monkeypatch.context() as patch:
        patch.setenv("TZ", "America/Los_Angeles")
        tzlocal.reload_localzone()
        yield "America/Los_Angeles"
    tzlocal.reload_localzone()
