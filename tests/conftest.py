"""Shared fixtures: deterministic time, timers and speech."""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

import numpy as np
import pytest

from walkguide.core.contracts import Obstacle, RawDepthPlane, Sector
from walkguide.speech.scheduler import Scheduler, TimerHandle
from walkguide.speech.synthesizer import Synthesizer


class FakeClock:
    """Monotonic clock in seconds, advanced by hand."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class _ManualHandle(TimerHandle):
    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """Scheduler driven by FakeClock; callbacks run inside advance()."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.tasks: List[Tuple[float, _ManualHandle, Callable[[], None]]] = []

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        handle = _ManualHandle()
        self.tasks.append((self.clock.now + delay_seconds, handle, callback))
        return handle

    @property
    def live_tasks(self) -> int:
        return sum(1 for _, handle, _ in self.tasks if not handle.cancelled)

    def advance(self, seconds: float):
        target = self.clock.now + seconds
        while True:
            due = [t for t in self.tasks if not t[1].cancelled and t[0] <= target]
            if not due:
                break
            task = min(due, key=lambda t: t[0])
            self.tasks.remove(task)
            self.clock.now = task[0]
            task[2]()
        self.clock.now = target


class RecordingSynthesizer(Synthesizer):
    """Records what would have been spoken, and when."""

    def __init__(self, clock: Optional[FakeClock] = None):
        super().__init__()
        self.clock = clock
        self.spoken: List[Tuple[Optional[float], str, bool]] = []
        self.started = False
        self.stopped = 0
        self.is_shut_down = False

    @property
    def texts(self) -> List[str]:
        return [text for _, text, _ in self.spoken]

    def start(self) -> None:
        self.started = True

    def become_ready(self, success: bool = True):
        self._notify_ready(success)

    def speak(self, text: str, flush: bool = True) -> None:
        self.spoken.append((self.clock() if self.clock else None, text, flush))

    def stop(self) -> None:
        self.stopped += 1

    def shutdown(self) -> None:
        self.is_shut_down = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def synthesizer(clock):
    return RecordingSynthesizer(clock)


def make_plane(samples_mm, timestamp: int = 42, tracking: bool = True) -> RawDepthPlane:
    """Pack a 2-D millimeter array into a tightly strided little-endian plane."""
    array = np.asarray(samples_mm, dtype="<u2")
    height, width = array.shape
    return RawDepthPlane(
        timestamp=timestamp,
        width=width,
        height=height,
        row_stride=width * 2,
        pixel_stride=2,
        data=array.tobytes(),
        tracking=tracking,
    )


def obstacle(label: str, sector: Sector, distance=None, approximate: bool = False) -> Obstacle:
    return Obstacle(
        label=label,
        sector=sector,
        distance_meters=distance,
        is_approximate=approximate,
    )
