"""
Deferred Callbacks.

A small arm/cancel/fire abstraction for the speech rate limiter, so the
limiter does not depend on any particular event loop.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from loguru import logger


class TimerHandle(ABC):
    """A scheduled callback that can be cancelled before it fires."""

    @abstractmethod
    def cancel(self) -> None:
        pass


class Scheduler(ABC):
    """Runs callbacks after a delay."""

    @abstractmethod
    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """Schedule `callback` to run once after `delay_seconds`."""
        pass


class _ThreadingTimerHandle(TimerHandle):
    def __init__(self, timer: threading.Timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler(Scheduler):
    """Scheduler backed by daemon threading.Timer instances."""

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(max(0.0, delay_seconds), callback)
        timer.daemon = True
        timer.start()
        return _ThreadingTimerHandle(timer)


class OneShotTimer:
    """
    At most one outstanding deferred callback.

    Arming cancels whatever was armed before. A fire that lost a race with a
    cancel or re-arm is ignored.
    """

    def __init__(self, scheduler: Scheduler, callback: Callable[[], None]):
        self._scheduler = scheduler
        self._callback = callback
        self._handle: Optional[TimerHandle] = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def is_armed(self) -> bool:
        return self._handle is not None

    def arm(self, delay_seconds: float):
        """(Re)arm the timer to fire after `delay_seconds`."""
        if delay_seconds < 0:
            raise ValueError(f"delay must be non-negative, got {delay_seconds}")

        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._generation += 1
            generation = self._generation
            self._handle = self._scheduler.call_later(
                delay_seconds, lambda: self._fire(generation)
            )

    def cancel(self):
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
                self._handle = None
            self._generation += 1

    def _fire(self, generation: int):
        with self._lock:
            if generation != self._generation:
                logger.debug("Ignoring superseded timer fire")
                return
            self._handle = None
        self._callback()
