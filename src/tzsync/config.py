"""Daemon configuration for tzsync."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from tzsync._constants import (
    APPLY_TIMEOUT,
    CONNECTED_STATE,
    GEOIP_URL,
    IWD_BUS_NAME,
    LOOKUP_TIMEOUT,
    STATE_PROPERTY,
    STATION_INTERFACE,
    USER_AGENT,
)
from tzsync.exceptions import TzSyncConfigError


def _env_bool(name: str, value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    raise TzSyncConfigError(f"{name} must be a boolean, got {value!r}")


def _env_seconds(name: str, value: str) -> float:
    try:
        seconds = float(value)
    except ValueError as exc:
        raise TzSyncConfigError(f"{name} must be a number of seconds, got {value!r}") from exc
    if seconds <= 0:
        raise TzSyncConfigError(f"{name} must be positive, got {seconds}")
    return seconds


@dataclasses.dataclass(frozen=True)
class TzSyncConfig:
    """Daemon configuration.

    Every field defaults to the built-in endpoint, so the daemon runs
    without any configuration at all.

    Parameters
    ----------
    geoip_url : str
        URL answering a plain GET with the caller's IANA timezone name.
    lookup_timeout : float
        Total timeout in seconds for the Geo-IP request.
    apply_timeout : float
        Seconds to wait for the ``SetTimezone`` reply from timedated.
    network_service : str
        Well-known bus name whose ``PropertiesChanged`` signals are watched.
    station_interface : str
        Property interface that carries the connection state.
    state_property : str
        Name of the connection state property.
    connected_state : str
        State value that triggers a reconciliation.
    reconcile_on_start : bool
        Run one reconciliation before waiting for the first signal.
    user_agent : str
        User-Agent header sent with the Geo-IP request.
    """

    geoip_url: str = GEOIP_URL
    lookup_timeout: float = LOOKUP_TIMEOUT
    apply_timeout: float = APPLY_TIMEOUT
    network_service: str = IWD_BUS_NAME
    station_interface: str = STATION_INTERFACE
    state_property: str = STATE_PROPERTY
    connected_state: str = CONNECTED_STATE
    reconcile_on_start: bool = False
    user_agent: str = USER_AGENT

    @classmethod
    def from_env(cls, **overrides: Any) -> TzSyncConfig:
        """Create configuration from ``TZSYNC_*`` environment variables.

        Explicit keyword arguments override environment values.

        Raises
        ------
        TzSyncConfigError
            A numeric or boolean variable could not be parsed.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "TZSYNC_GEOIP_URL": "geoip_url",
            "TZSYNC_NETWORK_SERVICE": "network_service",
            "TZSYNC_STATION_INTERFACE": "station_interface",
            "TZSYNC_STATE_PROPERTY": "state_property",
            "TZSYNC_CONNECTED_STATE": "connected_state",
            "TZSYNC_USER_AGENT": "user_agent",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        # timeouts are numeric, handle separately
        for env_key, field_name in (
            ("TZSYNC_LOOKUP_TIMEOUT", "lookup_timeout"),
            ("TZSYNC_APPLY_TIMEOUT", "apply_timeout"),
        ):
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_seconds(env_key, val)

        if "reconcile_on_start" not in overrides:
            config_kwargs["reconcile_on_start"] = _env_bool(
                "TZSYNC_RECONCILE_ON_START",
                env.get("TZSYNC_RECONCILE_ON_START"),
                False,
            )

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
