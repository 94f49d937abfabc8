from __future__ import annotations

import asyncio
import logging
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import partial
from typing import Callable, Optional

from .config import SessionConfig
from .events import DetectionEvent, ErrorEvent, ErrorKind, Event, Notification, StateChangeEvent
from .interfaces import AlreadyOpenError, DecodeCapability, LookupService, NotificationSink, VideoTarget
from .lookup import LookupFailure
from .notifications import camera_error, render_outcome

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    ACTIVE = "active"
    DETECTED = "detected"
    NOTIFYING = "notifying"
    CLOSING = "closing"


@dataclass
class SessionRuntime:
    config: SessionConfig
    target: VideoTarget
    on_decode: Callable[[str], None]
    on_close: Callable[[], None]
    resources: ExitStack = field(default_factory=ExitStack)
    close_requested: bool = False
    symbol: Optional[str] = None
    cycle: Optional[asyncio.Task] = None
    finished: asyncio.Event = field(default_factory=asyncio.Event)


class ScanSessionController:
    """State machine that owns the camera session and runs one lookup per decode.

    A session is opened with :meth:`open`. The first symbol decoded while the
    session is active is passed to ``on_decode``, looked up, rendered to the
    notification sink, and the session is then torn down. Teardown runs on every
    exit path through a per-session :class:`~contextlib.ExitStack`, so the
    capability is stopped and the target released at most once per session.
    """

    def __init__(
        self,
        capability: DecodeCapability,
        lookup: LookupService,
        notifier: NotificationSink,
        *,
        notification_duration_ms: int = 7000,
        event_callback: Optional[Callable[[Event], None]] = None,
    ) -> None:
        self.capability = capability
        self.lookup = lookup
        self.notifier = notifier
        self.notification_duration_ms = notification_duration_ms
        self.event_callback = event_callback
        self.state = SessionState.IDLE
        self.runtime: Optional[SessionRuntime] = None

    async def open(
        self,
        config: SessionConfig,
        target: VideoTarget,
        on_decode: Callable[[str], None],
        on_close: Callable[[], None],
    ) -> None:
        if self.state != SessionState.IDLE:
            raise AlreadyOpenError("Scan session already open")
        runtime = SessionRuntime(config=config, target=target, on_decode=on_decode, on_close=on_close)
        self.runtime = runtime
        runtime.resources.callback(target.release)
        self._set_state(SessionState.INITIALIZING)
        self.capability.on_detected(partial(self._handle_detected, runtime))

        try:
            await self.capability.start(config, target)
        except asyncio.CancelledError:
            runtime.resources.callback(self.capability.stop)
            self._abandon(runtime)
            raise
        except Exception as exc:  # noqa: BLE001 - every start failure is reported as a camera error
            logger.error("Scanner initialization failed: %s", exc)
            self._abandon(runtime)
            self._emit(ErrorEvent(timestamp=datetime.now(), message=str(exc), kind=ErrorKind.CAMERA))
            self._notify(camera_error(self.notification_duration_ms))
            return

        runtime.resources.callback(self.capability.stop)
        if runtime.close_requested:
            self._finish(runtime)
            return
        self._set_state(SessionState.ACTIVE)

    async def close(self) -> None:
        runtime = self.runtime
        if runtime is None or self.state == SessionState.IDLE:
            return
        if self.state == SessionState.INITIALIZING:
            runtime.close_requested = True
            await runtime.finished.wait()
            return
        if runtime.cycle is not None:
            # The lookup is left to settle; only the camera is released now.
            if self.state == SessionState.NOTIFYING:
                self._set_state(SessionState.CLOSING)
                self._release(runtime)
            await asyncio.shield(runtime.cycle)
            return
        self._finish(runtime)

    def _handle_detected(self, runtime: SessionRuntime, symbol: str) -> None:
        if runtime is not self.runtime or self.state != SessionState.ACTIVE:
            logger.debug("Ignoring symbol %r in state %s", symbol, self.state.value)
            return
        if not symbol:
            return

        runtime.symbol = symbol
        self._set_state(SessionState.DETECTED)
        self._emit(DetectionEvent(timestamp=datetime.now(), symbol=symbol))
        try:
            runtime.on_decode(symbol)
        except Exception:  # noqa: BLE001 - a caller fault must not skip the lookup or teardown
            logger.exception("on_decode callback failed for %r", symbol)

        self._set_state(SessionState.NOTIFYING)
        runtime.cycle = asyncio.get_running_loop().create_task(self._run_cycle(runtime, symbol))

    async def _run_cycle(self, runtime: SessionRuntime, symbol: str) -> None:
        try:
            try:
                outcome = await self.lookup.lookup(symbol)
            except Exception as exc:  # noqa: BLE001 - lookup faults become a failure outcome
                logger.exception("Lookup for %r raised", symbol)
                outcome = LookupFailure(message=str(exc), cause=ErrorKind.NETWORK)
            if isinstance(outcome, LookupFailure):
                self._emit(ErrorEvent(timestamp=datetime.now(), message=outcome.message, kind=outcome.cause))
            self._notify(render_outcome(outcome, self.notification_duration_ms))
        finally:
            self._finish(runtime)

    def _finish(self, runtime: SessionRuntime) -> None:
        if runtime.finished.is_set():
            return
        self._set_state(SessionState.CLOSING)
        self._release(runtime)
        if self.runtime is runtime:
            self.runtime = None
        self._set_state(SessionState.IDLE)
        runtime.finished.set()
        try:
            runtime.on_close()
        except Exception:  # noqa: BLE001 - session is already closed
            logger.exception("on_close callback failed")

    def _abandon(self, runtime: SessionRuntime) -> None:
        """Return to idle after a start that never completed; ``on_close`` is not called."""

        self._release(runtime)
        if self.runtime is runtime:
            self.runtime = None
        self._set_state(SessionState.IDLE)
        runtime.finished.set()

    def _release(self, runtime: SessionRuntime) -> None:
        try:
            runtime.resources.close()
        except Exception:  # noqa: BLE001 - teardown must still reach idle
            logger.exception("Releasing the camera session failed")

    def _notify(self, notification: Notification) -> None:
        try:
            self.notifier.notify(
                notification.title,
                notification.description,
                notification.severity,
                notification.duration_ms,
            )
        except Exception:  # noqa: BLE001 - the sink is fire-and-forget
            logger.exception("Notification sink failed to show %r", notification.title)

    def _set_state(self, state: SessionState) -> None:
        if self.state == state:
            return
        logger.debug("Scan session %s -> %s", self.state.value, state.value)
        self.state = state
        self._emit(StateChangeEvent(timestamp=datetime.now(), state=state.value))

    def _emit(self, event: Event) -> None:
        if self.event_callback is not None:
            self.event_callback(event)
