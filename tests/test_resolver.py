from __future__ import annotations

import asyncio
from typing import Any

import aiohttp
import pytest

from tzsync.config import TzSyncConfig
from tzsync.exceptions import TimezoneLookupError
from tzsync.resolver import TimezoneResolver


class _FakeResponse:
    def __init__(self, status: int, body: str | Exception) -> None:
        self.status = status
        self._body = body

    async def text(self) -> str:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class _FakeRequest:
    def __init__(self, response: _FakeResponse) -> None:
        self._response = response

    async def __aenter__(self) -> _FakeResponse:
        return self._response

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FakeSession:
    def __init__(self, response: _FakeResponse | None = None, error: Exception | None = None) -> None:
        self._response = response
        self._error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def get(self, url: str, **kwargs: Any) -> _FakeRequest:
        self.calls.append((url, kwargs))
        if self._error is not None:
            raise self._error
        assert self._response is not None
        return _FakeRequest(self._response)


def _resolver(session: _FakeSession, **config: Any) -> TimezoneResolver:
    return TimezoneResolver(TzSyncConfig(**config), session)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_returns_body_as_timezone() -> None:
    session = _FakeSession(_FakeResponse(200, "America/New_York"))

    assert await _resolver(session).resolve() == "America/New_York"

    url, kwargs = session.calls[0]
    assert url == "https://ipapi.co/timezone"
    assert kwargs["headers"]["user-agent"] == "tzsync"
    assert kwargs["timeout"].total == 10.0


@pytest.mark.asyncio
async def test_strips_trailing_newline() -> None:
    session = _FakeSession(_FakeResponse(200, "Europe/Amsterdam\n"))

    assert await _resolver(session).resolve() == "Europe/Amsterdam"


@pytest.mark.asyncio
async def test_uses_configured_url_and_timeout() -> None:
    session = _FakeSession(_FakeResponse(200, "Asia/Kolkata"))

    await _resolver(session, geoip_url="http://geo.internal/tz", lookup_timeout=3.0).resolve()

    url, kwargs = session.calls[0]
    assert url == "http://geo.internal/tz"
    assert kwargs["timeout"].total == 3.0


@pytest.mark.asyncio
async def test_non_success_status() -> None:
    session = _FakeSession(_FakeResponse(429, "RateLimited"))

    with pytest.raises(TimezoneLookupError) as exc_info:
        await _resolver(session).resolve()

    assert exc_info.value.status_code == 429
    assert exc_info.value.url == "https://ipapi.co/timezone"


@pytest.mark.asyncio
async def test_empty_body() -> None:
    session = _FakeSession(_FakeResponse(200, "  \n"))

    with pytest.raises(TimezoneLookupError, match="Empty"):
        await _resolver(session).resolve()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        aiohttp.ClientConnectionError("Cannot connect to host ipapi.co:443"),
        asyncio.TimeoutError(),
    ],
)
async def test_network_failures(error: Exception) -> None:
    session = _FakeSession(error=error)

    with pytest.raises(TimezoneLookupError):
        await _resolver(session).resolve()


@pytest.mark.asyncio
async def test_unreadable_body() -> None:
    body_error = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
    session = _FakeSession(_FakeResponse(200, body_error))

    with pytest.raises(TimezoneLookupError, match="Unreadable"):
        await _resolver(session).resolve()


def test_lookup_error_is_builtin_lookup_error() -> None:
    assert issubclass(TimezoneLookupError, LookupError)
