from __future__ import annotations

import asyncio
import os
import signal
from collections.abc import Sequence
from typing import Any

import pytest

from tzsync import daemon
from tzsync.daemon import _parse_args, main
from tzsync.exceptions import BusDisconnectedError, TimezoneLookupError


class _FakeRuntime:
    instances: list[_FakeRuntime] = []

    def __init__(self, *, loop: asyncio.AbstractEventLoop, logger: Any = None) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        _FakeRuntime.instances.append(self)

    async def __aenter__(self) -> _FakeRuntime:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def call_method(
        self,
        bus_name: str,
        path: str,
        interface: str,
        method: str,
        args: Sequence[Any],
        *,
        signature: str | None = None,
        timeout: float,
    ) -> tuple[Any, ...]:
        self.calls.append((method, tuple(args)))
        return ()


def _resolver_returning(timezone: str | None = None, error: Exception | None = None) -> type:
    class _Resolver:
        def __init__(self, config: Any, http_session: Any) -> None:
            pass

        async def resolve(self) -> str:
            if error is not None:
                raise error
            assert timezone is not None
            return timezone

    return _Resolver


class _DisconnectingLoop:
    def __init__(self, watcher: Any, action: Any, *, reconcile_on_start: bool = False) -> None:
        self.events_seen = 0
        self.reconciliations = 0

    async def run(self) -> None:
        raise BusDisconnectedError("Lost connection to D-Bus")


class _TerminatedLoop(_DisconnectingLoop):
    async def run(self) -> None:
        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.sleep(30)


@pytest.fixture(autouse=True)
def _fake_bus(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeRuntime.instances = []
    monkeypatch.setattr(daemon, "DbusRuntime", _FakeRuntime)
    monkeypatch.delenv("TZSYNC_APPLY_TIMEOUT", raising=False)
    monkeypatch.delenv("TZSYNC_RECONCILE_ON_START", raising=False)


def test_parse_args_defaults() -> None:
    args = _parse_args([])

    assert args.once is False
    assert args.reconcile_on_start is False
    assert args.verbose is False


def test_parse_args_flags() -> None:
    args = _parse_args(["--once", "--reconcile-on-start", "-v"])

    assert args.once is True
    assert args.reconcile_on_start is True
    assert args.verbose is True


def test_once_applies_and_exits_zero(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(daemon, "TimezoneResolver", _resolver_returning("Pacific/Auckland"))

    assert main(["--once"]) == 0
    assert _FakeRuntime.instances[0].calls == [("SetTimezone", ("Pacific/Auckland", False))]


def test_once_lookup_failure_exits_one(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        daemon,
        "TimezoneResolver",
        _resolver_returning(error=TimezoneLookupError("HTTP 503 from https://ipapi.co/timezone")),
    )

    assert main(["--once"]) == 1
    assert _FakeRuntime.instances[0].calls == []


def test_lost_bus_exits_one(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(daemon, "ReconciliationLoop", _DisconnectingLoop)

    assert main([]) == 1


def test_sigterm_exits_zero(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(daemon, "ReconciliationLoop", _TerminatedLoop)

    assert main([]) == 0


def test_invalid_environment_exits_with_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TZSYNC_APPLY_TIMEOUT", "never")

    assert main([]) == 1
