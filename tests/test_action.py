from __future__ import annotations

import pytest

from tzsync.action import ReconciliationAction
from tzsync.exceptions import ApplyError, TimezoneLookupError
from tzsync.models import ReconciliationOutcome


class _FakeResolver:
    def __init__(self, timezone: str = "America/New_York", error: Exception | None = None) -> None:
        self._timezone = timezone
        self._error = error
        self.calls = 0

    async def resolve(self) -> str:
        self.calls += 1
        if self._error is not None:
            raise self._error
        return self._timezone


class _FakeApplier:
    """Records the timezone passed to apply; the interactive flag is covered in test_applier.py."""

    def __init__(self, error: Exception | None = None) -> None:
        self._error = error
        self.calls: list[str] = []

    async def apply(self, timezone: str) -> None:
        self.calls.append(timezone)
        if self._error is not None:
            raise self._error


@pytest.mark.asyncio
async def test_resolved_timezone_is_applied() -> None:
    resolver = _FakeResolver("America/New_York")
    applier = _FakeApplier()

    result = await ReconciliationAction(resolver, applier).run()

    assert applier.calls == ["America/New_York"]
    assert result.ok
    assert result.outcome is ReconciliationOutcome.APPLIED
    assert result.timezone == "America/New_York"
    assert result.error is None


@pytest.mark.asyncio
async def test_lookup_failure_skips_apply() -> None:
    resolver = _FakeResolver(error=TimezoneLookupError("HTTP 429 from https://ipapi.co/timezone", status_code=429))
    applier = _FakeApplier()

    result = await ReconciliationAction(resolver, applier).run()

    assert not result.ok
    assert result.outcome is ReconciliationOutcome.LOOKUP_FAILED
    assert "429" in (result.error or "")
    assert result.timezone is None
    assert applier.calls == []


@pytest.mark.asyncio
async def test_apply_failure_is_reported() -> None:
    resolver = _FakeResolver("Europe/Berlin")
    applier = _FakeApplier(error=ApplyError("access denied", timezone="Europe/Berlin"))

    result = await ReconciliationAction(resolver, applier).run()

    assert not result.ok
    assert result.outcome is ReconciliationOutcome.APPLY_FAILED
    assert result.timezone == "Europe/Berlin"
    assert resolver.calls == 1
    assert applier.calls == ["Europe/Berlin"]


@pytest.mark.asyncio
async def test_timezone_is_logged_before_apply(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level("INFO", logger="tzsync.action")

    await ReconciliationAction(_FakeResolver("Asia/Tokyo"), _FakeApplier()).run()

    assert "Setting timezone to Asia/Tokyo" in caplog.text


@pytest.mark.asyncio
async def test_unexpected_errors_propagate() -> None:
    action = ReconciliationAction(_FakeResolver(error=RuntimeError("bug")), _FakeApplier())

    with pytest.raises(RuntimeError, match="bug"):
        await action.run()
