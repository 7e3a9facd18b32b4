"""Process entrypoint for the tzsync daemon."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from collections.abc import Sequence
from typing import Any

import aiohttp

from tzsync._dbus import DbusRuntime
from tzsync.action import ReconciliationAction
from tzsync.applier import TimezoneApplier
from tzsync.config import TzSyncConfig
from tzsync.exceptions import TzSyncError
from tzsync.loop import ReconciliationLoop
from tzsync.models import QualifyingCondition
from tzsync.resolver import TimezoneResolver
from tzsync.watcher import SignalWatcher

_logger = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tzsync",
        description="Set the system timezone from Geo-IP data whenever iwd reports a connection.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Reconcile the timezone a single time and exit.",
    )
    parser.add_argument(
        "--reconcile-on-start",
        action="store_true",
        help="Reconcile once at startup before waiting for network events.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace, config: TzSyncConfig) -> int:
    loop = asyncio.get_running_loop()

    async with aiohttp.ClientSession() as http_session, DbusRuntime(loop=loop) as bus:
        action = ReconciliationAction(
            TimezoneResolver(config, http_session),
            TimezoneApplier(bus, config),
        )
        if args.once:
            result = await action.run()
            return 0 if result.ok else 1

        watcher = SignalWatcher(
            bus,
            QualifyingCondition.from_config(config),
            interface_filter=config.station_interface,
            sender_filter=config.network_service,
        )
        reconciliation_loop = ReconciliationLoop(
            watcher,
            action,
            reconcile_on_start=config.reconcile_on_start,
        )
        task = asyncio.create_task(reconciliation_loop.run(), name="tzsync-loop")

        def stop_handler(signum: int, *_args: Any) -> None:
            _logger.info("Received %s; shutting down", signal.Signals(signum).name)
            task.cancel()

        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, stop_handler, signum)
        try:
            await task
        except asyncio.CancelledError:
            _logger.info(
                "Stopped after %d event(s) and %d reconciliation(s)",
                reconciliation_loop.events_seen,
                reconciliation_loop.reconciliations,
            )
            return 0
        finally:
            for signum in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(signum)
    # ReconciliationLoop.run only returns by raising.
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        overrides: dict[str, Any] = {"reconcile_on_start": True} if args.reconcile_on_start else {}
        config = TzSyncConfig.from_env(**overrides)
        return asyncio.run(_run(args, config))
    except TzSyncError as exc:
        _logger.error("Fatal: %s", exc)
        return 1
