"""Narrow bus interface used by the watcher and the applier.

The production implementation lives in :mod:`tzsync._dbus`; everything
else only depends on the :class:`Bus` protocol and the plain data types
below, so tests can pass in-process fakes.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

_ids = itertools.count(1)


@dataclass(frozen=True)
class MatchRule:
    """Signal filter. ``None`` fields are wildcards."""

    interface: str
    member: str
    sender: str | None = None
    path: str | None = None
    arg0: str | None = None

    def __str__(self) -> str:
        parts = ["type='signal'"]
        for key, value in (
            ("sender", self.sender),
            ("interface", self.interface),
            ("member", self.member),
            ("path", self.path),
            ("arg0", self.arg0),
        ):
            if value is not None:
                parts.append(f"{key}='{value}'")
        return ",".join(parts)


@dataclass(frozen=True)
class BusMessage:
    """A raw signal as delivered by the transport."""

    sender: str | None
    path: str | None
    interface: str
    member: str
    args: tuple[Any, ...]


class Subscription:
    """A registered signal match and the ordered stream of its messages.

    Messages are pushed with :meth:`deliver` from the event loop thread.
    :meth:`close` ends the stream after any messages already queued; the
    stream cannot be restarted.
    """

    def __init__(self, rule: MatchRule) -> None:
        self.rule = rule
        self.id = next(_ids)
        self.token: Any = None
        self._queue: asyncio.Queue[BusMessage | None] = asyncio.Queue()
        self._closed = False
        self._reason: BaseException | None = None

    def __repr__(self) -> str:
        return f"Subscription(id={self.id}, rule={str(self.rule)!r}, closed={self._closed})"

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def reason(self) -> BaseException | None:
        """Why the stream ended, or ``None`` if it was cancelled locally."""
        return self._reason

    def deliver(self, message: BusMessage) -> None:
        if self._closed:
            return
        self._queue.put_nowait(message)

    def close(self, reason: BaseException | None = None) -> None:
        if self._closed:
            return
        self._closed = True
        self._reason = reason
        self._queue.put_nowait(None)

    async def messages(self) -> AsyncIterator[BusMessage]:
        while True:
            message = await self._queue.get()
            if message is None:
                return
            yield message


class Bus(Protocol):
    """Structural bus interface.

    Implementations must be safe to use from several tasks at once.
    """

    async def add_match(self, rule: MatchRule) -> Subscription:
        ...

    async def remove_match(self, subscription: Subscription) -> None:
        ...

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
        ...
