"""
Session clock for timed placement phases.

One countdown per ``start()``. Each tick removes one second; the tick that
reaches zero marks the handle expired and fires ``on_expired`` exactly once.
A cancelled handle never ticks or fires again.

Runs each countdown in a background daemon thread driven by an Event wait
loop. ``tick()`` is public so callers (and tests) can drive a countdown
deterministically with ``autostart=False``.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from typing import Callable

from loguru import logger

_handle_ids = itertools.count(1)


@dataclass(eq=False)
class ClockHandle:
    """One countdown started by a SessionClock."""

    duration_seconds: int
    remaining_seconds: int
    id: int = field(default_factory=lambda: next(_handle_ids))

    # Internal state
    _expired: bool = field(default=False, repr=False)
    _cancelled: bool = field(default=False, repr=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, repr=False)
    _thread: threading.Thread | None = field(default=None, repr=False)

    @property
    def expired(self) -> bool:
        return self._expired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        """Still counting down."""
        return not (self._expired or self._cancelled)


class SessionClock:
    """
    Cancellable countdown with a single terminal ``expired`` event.

    Usage:
        clock = SessionClock(on_expired=controller_callback)
        handle = clock.start(600)
        # ... phase runs ...
        clock.cancel(handle)
    """

    def __init__(
        self,
        on_expired: Callable[[ClockHandle], None] | None = None,
        on_tick: Callable[[ClockHandle], None] | None = None,
        tick_seconds: float = 1.0,
        autostart: bool = True,
    ):
        self.on_expired = on_expired
        self.on_tick = on_tick
        self.tick_seconds = tick_seconds
        self.autostart = autostart
        self._lock = threading.Lock()

    def start(self, duration_seconds: int) -> ClockHandle:
        """Begin a new countdown and return its handle."""
        duration = max(0, int(duration_seconds))
        handle = ClockHandle(duration_seconds=duration, remaining_seconds=duration)

        if self.autostart:
            handle._thread = threading.Thread(
                target=self._run,
                args=(handle,),
                name=f"session-clock-{handle.id}",
                daemon=True,
            )
            handle._thread.start()

        logger.debug("Clock {} started ({}s)", handle.id, duration)
        return handle

    def cancel(self, handle: ClockHandle | None) -> None:
        """Stop a countdown. No callback fires for it afterwards."""
        if handle is None:
            return
        with self._lock:
            if not handle.active:
                return
            handle._cancelled = True
        handle._stop_event.set()
        logger.debug("Clock {} cancelled with {}s left", handle.id, handle.remaining_seconds)

    def tick(self, handle: ClockHandle) -> bool:
        """
        Advance one second.

        Returns:
            True while the countdown keeps running, False once it has
            expired or been cancelled.
        """
        with self._lock:
            if not handle.active:
                return False
            if handle.remaining_seconds > 0:
                handle.remaining_seconds -= 1
            fire = handle.remaining_seconds == 0
            if fire:
                handle._expired = True
                handle._stop_event.set()

        # Callbacks run outside the lock so they may cancel or start clocks
        if self.on_tick is not None:
            self.on_tick(handle)
        if fire:
            logger.debug("Clock {} expired", handle.id)
            if self.on_expired is not None:
                self.on_expired(handle)
            return False
        return True

    def _run(self, handle: ClockHandle) -> None:
        """Background countdown loop."""
        while not handle._stop_event.wait(timeout=self.tick_seconds):
            try:
                running = self.tick(handle)
            except Exception:
                logger.exception("Clock {} callback failed", handle.id)
                break
            if not running:
                break
