"""dbus-python runtime: a system bus connection serviced on a GLib thread."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

import dbus
import dbus.exceptions
import dbus.mainloop.glib
from gi.repository import GLib

from tzsync.bus import BusMessage, MatchRule, Subscription
from tzsync.exceptions import (
    BusCallError,
    BusDisconnectedError,
    BusError,
    SubscriptionError,
)

T = TypeVar("T")

_JOIN_TIMEOUT_S = 2.0


def _settle(future: asyncio.Future[Any], result: Any = None, exc: BaseException | None = None) -> None:
    if future.done():
        return
    if exc is not None:
        future.set_exception(exc)
    else:
        future.set_result(result)


class DbusRuntime:
    """System bus connection whose GLib main loop runs on a daemon thread.

    Signals are handed to the asyncio loop with ``call_soon_threadsafe``;
    all bus work requested from asyncio is executed on the GLib thread
    through ``GLib.idle_add``. A lost connection closes every open
    subscription with a :class:`BusDisconnectedError` instead of exiting
    the process.

    Usage::

        async with DbusRuntime(loop=asyncio.get_running_loop()) as bus:
            subscription = await bus.add_match(rule)
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._logger = logger or logging.getLogger(__name__)
        self._bus: dbus.bus.BusConnection | None = None
        self._main_loop: GLib.MainLoop | None = None
        self._thread: threading.Thread | None = None
        self._subscriptions: dict[int, Subscription] = {}
        self._closed_reason: BusDisconnectedError | None = None
        self._stopping = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> DbusRuntime:
        await self._loop.run_in_executor(None, self.start)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._loop.run_in_executor(None, self.stop)

    @property
    def closed_reason(self) -> BusDisconnectedError | None:
        return self._closed_reason

    def start(self) -> None:
        """Connect to the system bus and start the GLib main loop thread."""
        dbus.mainloop.glib.threads_init()
        dbus.mainloop.glib.DBusGMainLoop(set_as_default=True)
        try:
            bus = dbus.SystemBus(private=True)
        except dbus.exceptions.DBusException as exc:
            raise BusError(f"Failed to connect to system D-Bus: {exc}") from exc

        bus.set_exit_on_disconnect(False)
        bus.call_on_disconnection(self._on_disconnected)

        self._bus = bus
        self._main_loop = GLib.MainLoop()
        self._thread = threading.Thread(target=self._run_main_loop, name="tzsync-dbus", daemon=True)
        self._thread.start()
        self._logger.debug("D-Bus main loop started unique_name=%s", bus.get_unique_name())

    def stop(self) -> None:
        """Stop the main loop thread and close the connection."""
        self._stopping = True
        main_loop = self._main_loop
        thread = self._thread
        bus = self._bus
        self._main_loop = None
        self._thread = None
        self._bus = None

        try:
            if main_loop is not None:
                main_loop.quit()
            if thread is not None:
                thread.join(timeout=_JOIN_TIMEOUT_S)
        finally:
            if bus is not None:
                bus.close()
            self._logger.debug("D-Bus main loop stopped")

    def _run_main_loop(self) -> None:
        main_loop = self._main_loop
        if main_loop is None:
            return
        try:
            main_loop.run()
        except Exception:
            self._logger.exception("D-Bus main loop crashed")
        if not self._stopping:
            self._notify_closed("D-Bus main loop exited unexpectedly")

    def _on_disconnected(self, _connection: Any) -> None:
        if self._stopping:
            return
        self._notify_closed("Lost connection to D-Bus")

    def _notify_closed(self, message: str) -> None:
        try:
            self._loop.call_soon_threadsafe(self._mark_closed, BusDisconnectedError(message))
        except RuntimeError:
            self._logger.debug("Event loop closed before disconnect could be reported", exc_info=True)

    def _mark_closed(self, reason: BusDisconnectedError) -> None:
        if self._closed_reason is not None:
            return
        self._closed_reason = reason
        self._logger.error("%s", reason)
        subscriptions = list(self._subscriptions.values())
        self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.close(reason)

    # ------------------------------------------------------------------
    # Bus operations
    # ------------------------------------------------------------------

    def _require_bus(self) -> dbus.bus.BusConnection:
        if self._bus is None:
            raise BusError("D-Bus runtime not started. Use 'async with DbusRuntime(...) as bus:'")
        return self._bus

    async def _on_bus_thread(self, fn: Callable[..., T], *args: Any) -> T:
        future: concurrent.futures.Future[T] = concurrent.futures.Future()

        def invoke() -> bool:
            if future.set_running_or_notify_cancel():
                try:
                    future.set_result(fn(*args))
                except Exception as exc:
                    future.set_exception(exc)
            return GLib.SOURCE_REMOVE

        GLib.idle_add(invoke)
        return await asyncio.wrap_future(future)

    async def add_match(self, rule: MatchRule) -> Subscription:
        """Register a signal receiver for *rule* and return its subscription."""
        if self._closed_reason is not None:
            raise SubscriptionError(f"Cannot add match {rule}: bus is disconnected") from self._closed_reason
        try:
            bus = self._require_bus()
        except BusError as exc:
            raise SubscriptionError(str(exc)) from exc

        subscription = Subscription(rule)

        def handler(
            *args: Any,
            sender: str | None = None,
            path: str | None = None,
            interface: str | None = None,
            member: str | None = None,
        ) -> None:
            message = BusMessage(
                sender=str(sender) if sender is not None else None,
                path=str(path) if path is not None else None,
                interface=str(interface or rule.interface),
                member=str(member or rule.member),
                args=tuple(args),
            )
            self._loop.call_soon_threadsafe(subscription.deliver, message)

        keywords: dict[str, Any] = {
            "signal_name": rule.member,
            "dbus_interface": rule.interface,
            "sender_keyword": "sender",
            "path_keyword": "path",
            "interface_keyword": "interface",
            "member_keyword": "member",
        }
        if rule.sender is not None:
            keywords["bus_name"] = rule.sender
        if rule.path is not None:
            keywords["path"] = rule.path
        if rule.arg0 is not None:
            keywords["arg0"] = rule.arg0

        try:
            subscription.token = await self._on_bus_thread(
                lambda: bus.add_signal_receiver(handler, **keywords),
            )
        except dbus.exceptions.DBusException as exc:
            raise SubscriptionError(f"Bus rejected match {rule}: {exc}") from exc

        if self._closed_reason is not None:
            # Disconnected while registering; the match went away with the connection.
            subscription.token = None
            subscription.close(self._closed_reason)
            raise SubscriptionError(f"Cannot add match {rule}: bus is disconnected") from self._closed_reason

        self._subscriptions[subscription.id] = subscription
        self._logger.debug("Added match %s", rule)
        return subscription

    async def remove_match(self, subscription: Subscription) -> None:
        """Remove the receiver behind *subscription* and end its stream."""
        self._subscriptions.pop(subscription.id, None)
        subscription.close()
        if self._closed_reason is not None:
            raise SubscriptionError(
                f"Cannot remove match {subscription.rule}: bus is disconnected",
            ) from self._closed_reason

        match = subscription.token
        if match is None:
            return
        subscription.token = None
        try:
            await self._on_bus_thread(match.remove)
        except dbus.exceptions.DBusException as exc:
            raise SubscriptionError(f"Failed to remove match {subscription.rule}: {exc}") from exc
        self._logger.debug("Removed match %s", subscription.rule)

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
        """Call *method* asynchronously and wait at most *timeout* seconds for the reply."""
        if self._closed_reason is not None:
            raise BusCallError(f"Cannot call {interface}.{method}: bus is disconnected") from self._closed_reason
        try:
            bus = self._require_bus()
        except BusError as exc:
            raise BusCallError(str(exc)) from exc

        reply: asyncio.Future[tuple[Any, ...]] = self._loop.create_future()

        def on_reply(*result: Any) -> None:
            self._loop.call_soon_threadsafe(_settle, reply, tuple(result))

        def on_error(exc: BaseException) -> None:
            self._loop.call_soon_threadsafe(_settle, reply, None, exc)

        def invoke() -> None:
            proxy = bus.get_object(bus_name, path, introspect=False)
            proxy.get_dbus_method(method, interface)(
                *args,
                signature=signature,
                timeout=timeout,
                reply_handler=on_reply,
                error_handler=on_error,
            )

        self._logger.debug("Calling %s.%s on %s%s", interface, method, bus_name, path)
        try:
            await self._on_bus_thread(invoke)
            return await reply
        except dbus.exceptions.DBusException as exc:
            raise BusCallError(
                f"{interface}.{method} failed: {exc.get_dbus_message() or exc}",
                dbus_name=exc.get_dbus_name() or "",
            ) from exc
        except (TypeError, ValueError, OverflowError) as exc:
            # dbus-python marshalling failures
            raise BusCallError(f"{interface}.{method} failed: {exc}") from exc
