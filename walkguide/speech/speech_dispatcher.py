"""
Rate-Limited Speech Dispatcher.

Guarantees:
- At most one utterance per rate-limit window
- Newest request wins: superseded pending text is dropped, never queued
- Requests made before the synthesizer is ready are kept, not lost
- At most one pending utterance and one armed timer at any time
"""

from __future__ import annotations

import threading
import time
from enum import Enum, auto
from typing import Callable, Optional

from loguru import logger

from walkguide.core.contracts import SpeechRequest
from .scheduler import OneShotTimer, Scheduler, ThreadingScheduler
from .synthesizer import Synthesizer


DEFAULT_RATE_LIMIT_MS = 1200


class DispatcherState(Enum):
    UNINITIALIZED = auto()
    READY = auto()
    SHUT_DOWN = auto()


class SpeechDispatcher:
    """
    Queues instruction text for a synthesizer under a minimum interval.

    Readiness and timer callbacks may arrive from other threads; every state
    change happens under a single re-entrant lock.
    """

    def __init__(
        self,
        synthesizer: Synthesizer,
        scheduler: Optional[Scheduler] = None,
        rate_limit_ms: float = DEFAULT_RATE_LIMIT_MS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize speech dispatcher.

        Args:
            synthesizer: Downstream speech synthesizer
            scheduler: Source of deferred callbacks (threading timers if None)
            rate_limit_ms: Minimum interval between dispatched utterances
            clock: Monotonic clock in seconds
        """
        if rate_limit_ms < 0:
            raise ValueError(f"rate_limit_ms must be non-negative, got {rate_limit_ms}")

        self.synthesizer = synthesizer
        self.rate_limit_ms = rate_limit_ms
        self._clock = clock
        self._lock = threading.RLock()

        self._state = DispatcherState.UNINITIALIZED
        self._pending: Optional[SpeechRequest] = None
        self._last_dispatch: Optional[float] = None
        self._timer = OneShotTimer(scheduler or ThreadingScheduler(), self._on_timer)

        # Statistics
        self.dispatch_count: int = 0

        self.synthesizer.set_ready_callback(self.on_synthesizer_ready)

    @property
    def state(self) -> DispatcherState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state == DispatcherState.READY

    @property
    def pending_text(self) -> Optional[str]:
        pending = self._pending
        return pending.text if pending else None

    @property
    def has_armed_timer(self) -> bool:
        return self._timer.is_armed

    @property
    def last_dispatch_time(self) -> Optional[float]:
        return self._last_dispatch

    def start(self):
        """Start the synthesizer; it reports readiness asynchronously."""
        self.synthesizer.start()

    def on_synthesizer_ready(self, success: bool):
        """Readiness callback from the synthesizer."""
        with self._lock:
            if self._state != DispatcherState.UNINITIALIZED:
                return
            if not success:
                logger.error("Speech synthesizer failed to initialize")
                return

            self._state = DispatcherState.READY
            logger.info("Speech dispatcher ready")

            pending = self._pending
            if pending is not None and pending.text.strip():
                self._pending = None
                self._dispatch(pending.text)

    def speak(self, text: str) -> bool:
        """
        Request an utterance subject to readiness and rate limiting.

        Returns:
            False when the text was discarded (blank, or after shutdown)
        """
        if not text or not text.strip():
            return False

        with self._lock:
            if self._state == DispatcherState.SHUT_DOWN:
                logger.debug(f"Ignoring speech after shutdown: \"{text}\"")
                return False

            now = self._clock()

            if self._state != DispatcherState.READY:
                self._pending = SpeechRequest(text=text, requested_at=now)
                logger.debug(f"Synthesizer not ready, holding \"{text}\"")
                return True

            if self._last_dispatch is not None:
                elapsed_ms = (now - self._last_dispatch) * 1000.0
                if elapsed_ms < self.rate_limit_ms:
                    self._pending = SpeechRequest(text=text, requested_at=now)
                    self._timer.arm((self.rate_limit_ms - elapsed_ms) / 1000.0)
                    return True

            self._pending = None
            self._timer.cancel()
            self._dispatch(text)
            return True

    def _on_timer(self):
        with self._lock:
            if self._state != DispatcherState.READY:
                return
            pending = self._pending
            if pending is None:
                return
            self._pending = None
            self._dispatch(pending.text)

    def _dispatch(self, text: str):
        self._last_dispatch = self._clock()
        self.dispatch_count += 1
        try:
            self.synthesizer.speak(text, flush=True)
        except Exception as e:
            logger.error(f"Speech synthesizer failed on \"{text}\": {e}")

    def shutdown(self):
        """Cancel pending speech and release the synthesizer. Terminal."""
        with self._lock:
            if self._state == DispatcherState.SHUT_DOWN:
                return
            self._state = DispatcherState.SHUT_DOWN
            self._timer.cancel()
            self._pending = None

        try:
            self.synthesizer.stop()
            self.synthesizer.shutdown()
        except Exception as e:
            logger.warning(f"Speech synthesizer shutdown failed: {e}")
        logger.info("Speech dispatcher shutdown complete")
