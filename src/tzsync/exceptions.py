"""Custom exception hierarchy for tzsync."""

from __future__ import annotations


class TzSyncError(Exception):
    """Base exception for all tzsync errors."""


class TzSyncConfigError(TzSyncError):
    """Invalid configuration value."""


class BusError(TzSyncError):
    """D-Bus transport failure."""


class SubscriptionError(BusError):
    """A signal match could not be registered or removed.

    Fatal: without the subscription no network events are observed.
    """


class BusCallError(BusError):
    """A remote method call failed, timed out, or its target was unreachable."""

    def __init__(self, message: str, *, dbus_name: str = "") -> None:
        self.dbus_name = dbus_name
        super().__init__(message)


class BusDisconnectedError(BusError):
    """The connection to the bus was lost.

    Fatal: reconnecting is left to the service manager.
    """


class DecodeError(TzSyncError):
    """A delivered bus message did not have the expected signal shape."""


class TimezoneLookupError(TzSyncError, LookupError):
    """Geo-IP timezone lookup failed (network, non-2xx, unreadable body)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class ApplyError(TzSyncError):
    """timedated rejected the new timezone or could not be reached."""

    def __init__(self, message: str, *, timezone: str = "", dbus_name: str = "") -> None:
        self.timezone = timezone
        self.dbus_name = dbus_name
        super().__init__(message)
