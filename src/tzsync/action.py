"""One reconciliation: look up the timezone, then apply it."""

from __future__ import annotations

import logging

from tzsync.applier import Applier
from tzsync.exceptions import ApplyError, TimezoneLookupError
from tzsync.models import ReconciliationOutcome, ReconciliationResult
from tzsync.resolver import Resolver

_logger = logging.getLogger(__name__)


class ReconciliationAction:
    """Resolve the current timezone and hand it to the applier.

    Lookup and apply failures are reported in the returned result and
    never raised. A failed lookup skips the apply call; a failed apply
    leaves the host timezone as it was.
    """

    def __init__(self, resolver: Resolver, applier: Applier) -> None:
        self._resolver = resolver
        self._applier = applier

    async def run(self) -> ReconciliationResult:
        try:
            timezone = await self._resolver.resolve()
        except TimezoneLookupError as exc:
            _logger.error("Timezone lookup failed: %s", exc)
            return ReconciliationResult(outcome=ReconciliationOutcome.LOOKUP_FAILED, error=str(exc))

        _logger.info("Setting timezone to %s", timezone)

        try:
            await self._applier.apply(timezone)
        except ApplyError as exc:
            _logger.error("Could not set timezone to %s: %s", timezone, exc)
            return ReconciliationResult(
                outcome=ReconciliationOutcome.APPLY_FAILED,
                timezone=timezone,
                error=str(exc),
            )

        return ReconciliationResult(outcome=ReconciliationOutcome.APPLIED, timezone=timezone)
