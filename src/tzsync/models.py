"""Decoded bus events and reconciliation results."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from tzsync._constants import CONNECTED_STATE, STATE_PROPERTY, STATION_INTERFACE
from tzsync.config import TzSyncConfig


class BusEvent(BaseModel):
    """A ``PropertiesChanged`` notification reduced to its string properties."""

    model_config = ConfigDict(frozen=True)

    interface: str = Field(..., description="Interface whose properties changed")
    properties: dict[str, str] = Field(default_factory=dict, description="Changed string properties")
    path: str | None = Field(default=None, description="Object path of the sender, if known")


class QualifyingCondition(BaseModel):
    """The (interface, property, value) triple that means "network is up"."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    interface: str = STATION_INTERFACE
    property_name: str = STATE_PROPERTY
    value: str = CONNECTED_STATE

    @classmethod
    def from_config(cls, config: TzSyncConfig) -> QualifyingCondition:
        return cls(
            interface=config.station_interface,
            property_name=config.state_property,
            value=config.connected_state,
        )


class ReconciliationOutcome(StrEnum):
    APPLIED = "applied"
    LOOKUP_FAILED = "lookup_failed"
    APPLY_FAILED = "apply_failed"


class ReconciliationResult(BaseModel):
    """Outcome of one resolve-then-apply attempt. Reported, never retained."""

    model_config = ConfigDict(frozen=True)

    outcome: ReconciliationOutcome
    timezone: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is ReconciliationOutcome.APPLIED
