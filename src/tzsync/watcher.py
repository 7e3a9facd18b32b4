"""PropertiesChanged subscription, decoding and the "network is up" filter."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from tzsync._constants import (
    IWD_BUS_NAME,
    PROPERTIES_CHANGED,
    PROPERTIES_INTERFACE,
    STATION_INTERFACE,
)
from tzsync.bus import Bus, BusMessage, MatchRule, Subscription
from tzsync.exceptions import BusError, DecodeError, SubscriptionError
from tzsync.models import BusEvent, QualifyingCondition

_logger = logging.getLogger(__name__)


def decode_event(message: BusMessage) -> BusEvent:
    """Decode a ``PropertiesChanged(s, a{sv}, as)`` signal into a :class:`BusEvent`.

    Only string-typed property values are kept; anything else can never
    equal a string sentinel.

    Raises :class:`DecodeError` if the arguments do not start with an
    interface name followed by a property mapping keyed by strings.
    """
    args = message.args
    if len(args) < 2:
        raise DecodeError(f"expected (interface, changed, ...), got {len(args)} argument(s)")

    interface, changed = args[0], args[1]
    if not isinstance(interface, str):
        raise DecodeError(f"interface name is {type(interface).__name__}, not a string")
    if not isinstance(changed, Mapping):
        raise DecodeError(f"changed properties are {type(changed).__name__}, not a mapping")

    properties: dict[str, str] = {}
    for name, value in changed.items():
        if not isinstance(name, str):
            raise DecodeError(f"property name {name!r} is not a string")
        if isinstance(value, str):
            properties[str(name)] = str(value)

    return BusEvent(interface=str(interface), properties=properties, path=message.path)


def matches(event: BusEvent, condition: QualifyingCondition) -> bool:
    """Return ``True`` when *event* reports the configured connected state.

    Only the entry named ``condition.property_name`` is inspected; the
    comparison is exact and case-sensitive.
    """
    if event.interface != condition.interface:
        return False
    state = event.properties.get(condition.property_name)
    if state is None:
        return False
    return state == condition.value


class EventStream:
    """Ordered, single-use stream of decoded events for one subscription.

    Ends when the subscription is closed. Messages that fail to decode
    are logged and skipped.
    """

    def __init__(self, subscription: Subscription) -> None:
        self._subscription = subscription
        self._messages = subscription.messages()
        self.skipped = 0

    @property
    def subscription(self) -> Subscription:
        return self._subscription

    def __aiter__(self) -> EventStream:
        return self

    async def __anext__(self) -> BusEvent:
        while True:
            message = await anext(self._messages)
            try:
                return decode_event(message)
            except DecodeError as exc:
                self.skipped += 1
                _logger.warning(
                    "Skipping undecodable %s.%s from %s path=%s: %s",
                    message.interface,
                    message.member,
                    message.sender,
                    message.path,
                    exc,
                )


class SignalWatcher:
    """Watches one bus service for ``PropertiesChanged`` signals."""

    def __init__(
        self,
        bus: Bus,
        condition: QualifyingCondition | None = None,
        *,
        interface_filter: str | None = STATION_INTERFACE,
        sender_filter: str = IWD_BUS_NAME,
    ) -> None:
        self._bus = bus
        self.condition = condition or QualifyingCondition()
        self._interface_filter = interface_filter
        self._sender_filter = sender_filter

    async def subscribe(self) -> tuple[Subscription, EventStream]:
        """Register the signal match and return its subscription and stream."""
        rule = MatchRule(
            interface=PROPERTIES_INTERFACE,
            member=PROPERTIES_CHANGED,
            sender=self._sender_filter,
            arg0=self._interface_filter,
        )
        try:
            subscription = await self._bus.add_match(rule)
        except SubscriptionError:
            raise
        except BusError as exc:
            raise SubscriptionError(f"Could not subscribe to {rule}: {exc}") from exc
        _logger.info("Watching %s", rule)
        return subscription, EventStream(subscription)

    def matches(self, event: BusEvent) -> bool:
        return matches(event, self.condition)

    async def unsubscribe(self, subscription: Subscription) -> None:
        """Release *subscription*; transport errors surface as :class:`SubscriptionError`."""
        try:
            await self._bus.remove_match(subscription)
        except SubscriptionError:
            raise
        except BusError as exc:
            raise SubscriptionError(f"Could not unsubscribe from {subscription.rule}: {exc}") from exc
