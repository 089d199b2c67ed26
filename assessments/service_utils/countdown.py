"""Server-side countdown for timed assessment sessions.

A :class:`Countdown` decrements its remaining time by one second per tick and
invokes ``on_complete`` once when it reaches zero. Ticks are scheduled through
a pluggable scheduler (``threading.Timer`` by default) so callers and tests
can drive the clock explicitly. ``close_expired_sessions --watch`` arms one
countdown per open session through
:func:`assessments.service_utils.submissions.watch_open_sessions`; the API
reports the same figures via :func:`format_remaining` and :func:`urgency`.
"""
from __future__ import annotations

import functools
import logging
import math
import threading
from datetime import datetime
from typing import Callable, Optional, Protocol

from django.utils import timezone

logger = logging.getLogger(__name__)

TICK_MS = 1000
CRITICAL_THRESHOLD_MS = 5 * 60 * 1000
WARNING_THRESHOLD_MS = 15 * 60 * 1000


class ScheduledTick(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], ScheduledTick]


def thread_scheduler(interval: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(interval, callback)
    timer.daemon = True
    timer.start()
    return timer


class Countdown:
    def __init__(
        self,
        remaining_ms: int,
        on_complete: Optional[Callable[[], None]] = None,
        *,
        on_tick: Optional[Callable[[int], None]] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._remaining_ms = max(0, int(remaining_ms))
        self._on_complete = on_complete
        self._on_tick = on_tick
        self._scheduler = scheduler or thread_scheduler
        self._lock = threading.RLock()
        self._pending: ScheduledTick | None = None
        self._generation = 0
        self._running = False
        self._completed = False
        self.ticks = 0

    @property
    def remaining_ms(self) -> int:
        return self._remaining_ms

    @property
    def running(self) -> bool:
        return self._running

    @property
    def completed(self) -> bool:
        return self._completed

    def start(self) -> None:
        with self._lock:
            if self._running or self._completed:
                return
            self._running = True
            if self._remaining_ms > 0:
                self._schedule_next()
                return
            self._running = False
            self._completed = True
        self._fire_complete()

    def cancel(self) -> None:
        with self._lock:
            self._running = False
            self._cancel_pending()

    def rearm(self, remaining_ms: int) -> None:
        """Reset to ``remaining_ms``; restarts the schedule if it was running."""

        with self._lock:
            was_running = self._running
            self._cancel_pending()
            self._generation += 1
            self._remaining_ms = max(0, int(remaining_ms))
            self._completed = False
            self._running = False
            self.ticks = 0
        if was_running:
            self.start()

    def _schedule_next(self) -> None:
        callback = functools.partial(self._tick, self._generation)
        self._pending = self._scheduler(TICK_MS / 1000, callback)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _tick(self, generation: int) -> None:
        with self._lock:
            # Stale tick from before a rearm or cancel.
            if not self._running or generation != self._generation:
                return
            self._pending = None
            self._remaining_ms = max(0, self._remaining_ms - TICK_MS)
            self.ticks += 1
            remaining = self._remaining_ms
            finished = remaining == 0
            if finished:
                self._running = False
                self._completed = True
            else:
                self._schedule_next()

        if self._on_tick is not None:
            self._on_tick(remaining)
        if finished:
            self._fire_complete()

    def _fire_complete(self) -> None:
        if self._on_complete is None:
            return
        try:
            self._on_complete()
        except Exception:
            logger.exception("Countdown completion callback failed")
            raise


def format_remaining(ms: int, style: str = "minutes") -> str:
    """Format ``ms`` as ``MM:SS`` or ``HH:MM:SS``.

    ``style`` is ``minutes``, ``hours`` (always show hours) or ``full`` (show
    hours only when there are any). Seconds are rounded up so the display
    never reads 00:00 while time is left.
    """

    total_seconds = max(0, math.ceil(ms / 1000))
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)

    if style == "hours" or (style == "full" and hours > 0):
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    # Hours fold into minutes in the short form.
    return f"{hours * 60 + minutes:02d}:{seconds:02d}"


def urgency(ms: int) -> str:
    if ms < CRITICAL_THRESHOLD_MS:
        return "critical"
    if ms < WARNING_THRESHOLD_MS:
        return "warning"
    return "normal"


def remaining_ms_until(deadline: datetime, now: datetime | None = None) -> int:
    now = now or timezone.now()
    delta = deadline - now
    return max(0, int(delta.total_seconds() * 1000))


def countdown_for(
    submission,
    on_complete: Optional[Callable[[], None]] = None,
    *,
    now: datetime | None = None,
    scheduler: Optional[Scheduler] = None,
) -> Countdown | None:
    """Build a countdown from the submission's persisted deadline.

    Returns ``None`` when the submission has no deadline to count down to.
    """

    deadline = submission.deadline
    if deadline is None:
        return None
    return Countdown(
        remaining_ms_until(deadline, now),
        on_complete,
        scheduler=scheduler,
    )
