"""Top-level driver: one reconciliation per "connected" event, strictly in order."""

from __future__ import annotations

import logging
from enum import StrEnum

from tzsync.action import ReconciliationAction
from tzsync.bus import Subscription
from tzsync.exceptions import BusDisconnectedError, SubscriptionError
from tzsync.models import ReconciliationResult
from tzsync.watcher import SignalWatcher

_logger = logging.getLogger(__name__)


class LoopState(StrEnum):
    RUNNING = "running"
    TERMINATED = "terminated"


class ReconciliationLoop:
    """Consumes the watcher's event stream for the lifetime of the process.

    The loop is ``RUNNING`` once the subscription is in place. Each
    qualifying event runs the action to completion before the next event
    is read, so timezone updates never overlap. Any exit (stream closed,
    cancellation, unexpected error) moves to ``TERMINATED`` and releases
    the subscription exactly once. A closed stream is never a normal
    exit: :meth:`run` raises :class:`BusDisconnectedError`.
    """

    def __init__(
        self,
        watcher: SignalWatcher,
        action: ReconciliationAction,
        *,
        reconcile_on_start: bool = False,
    ) -> None:
        self._watcher = watcher
        self._action = action
        self._reconcile_on_start = reconcile_on_start
        # None until run() has subscribed.
        self.state: LoopState | None = None
        self.events_seen = 0
        self.reconciliations = 0
        self.last_result: ReconciliationResult | None = None

    async def run(self) -> None:
        subscription, stream = await self._watcher.subscribe()
        self.state = LoopState.RUNNING
        try:
            if self._reconcile_on_start:
                await self._reconcile("startup")

            async for event in stream:
                self.events_seen += 1
                if not self._watcher.matches(event):
                    _logger.debug("Ignoring %s change on %s: %s", event.interface, event.path, event.properties)
                    continue
                await self._reconcile(f"{event.interface} {event.path or ''}".strip())
        finally:
            self.state = LoopState.TERMINATED
            await self._release(subscription)

        reason = subscription.reason
        if isinstance(reason, BusDisconnectedError):
            raise reason
        raise BusDisconnectedError("Signal stream closed") from reason

    async def _reconcile(self, trigger: str) -> None:
        _logger.info("Network connected (%s); reconciling timezone", trigger)
        result = await self._action.run()
        self.reconciliations += 1
        self.last_result = result
        _logger.debug("Reconciliation finished outcome=%s", result.outcome)

    async def _release(self, subscription: Subscription) -> None:
        try:
            await self._watcher.unsubscribe(subscription)
        except SubscriptionError as exc:
            _logger.warning("Could not release subscription: %s", exc)
