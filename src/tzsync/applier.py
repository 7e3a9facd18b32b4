"""systemd-timedated ``SetTimezone`` wrapper."""

from __future__ import annotations

import logging
from typing import Protocol

from tzsync._constants import (
    SET_TIMEZONE,
    TIMEDATE_BUS_NAME,
    TIMEDATE_INTERFACE,
    TIMEDATE_PATH,
)
from tzsync.bus import Bus
from tzsync.config import TzSyncConfig
from tzsync.exceptions import ApplyError, BusCallError

_logger = logging.getLogger(__name__)


class Applier(Protocol):
    async def apply(self, timezone: str) -> None:
        ...


class TimezoneApplier:
    """Sets the host timezone through ``org.freedesktop.timedate1``.

    ``interactive`` is always ``False``: the call must succeed without a
    polkit prompt, so the daemon runs privileged or pre-authorized.
    """

    def __init__(self, bus: Bus, config: TzSyncConfig | None = None) -> None:
        self._bus = bus
        self._timeout = (config or TzSyncConfig()).apply_timeout

    async def apply(self, timezone: str) -> None:
        try:
            await self._bus.call_method(
                TIMEDATE_BUS_NAME,
                TIMEDATE_PATH,
                TIMEDATE_INTERFACE,
                SET_TIMEZONE,
                (timezone, False),
                signature="sb",
                timeout=self._timeout,
            )
        except BusCallError as exc:
            raise ApplyError(
                f"SetTimezone({timezone!r}) failed: {exc}",
                timezone=timezone,
                dbus_name=exc.dbus_name,
            ) from exc
        _logger.debug("timedated accepted timezone %s", timezone)
