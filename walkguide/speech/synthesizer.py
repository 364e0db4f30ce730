"""
Speech Synthesizers.

Downstream text-to-speech backends for the speech dispatcher. Backends
initialise asynchronously and report readiness through a callback.
"""

from __future__ import annotations

import queue
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

import pyttsx3
from loguru import logger


ReadyCallback = Callable[[bool], None]


class Synthesizer(ABC):
    """Abstract base class for speech synthesizers."""

    def __init__(self):
        self._ready_callback: Optional[ReadyCallback] = None

    def set_ready_callback(self, callback: Optional[ReadyCallback]):
        """Register the callback invoked once initialisation finishes."""
        self._ready_callback = callback

    def _notify_ready(self, success: bool):
        if self._ready_callback is not None:
            self._ready_callback(success)

    @abstractmethod
    def start(self) -> None:
        """Begin initialisation. Readiness is reported via the callback."""
        pass

    @abstractmethod
    def speak(self, text: str, flush: bool = True) -> None:
        """Speak `text`, replacing anything queued or playing when `flush`."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop the current utterance."""
        pass

    @abstractmethod
    def shutdown(self) -> None:
        """Release the backend. No calls are valid afterwards."""
        pass


class LoggingSynthesizer(Synthesizer):
    """Writes utterances to the log instead of speaking. Ready immediately."""

    def __init__(self):
        super().__init__()
        self.history: List[str] = []

    def start(self) -> None:
        self._notify_ready(True)

    def speak(self, text: str, flush: bool = True) -> None:
        self.history.append(text)
        logger.info(f"🔊 {text}")

    def stop(self) -> None:
        pass

    def shutdown(self) -> None:
        logger.debug("Logging synthesizer shutdown")


class Pyttsx3Synthesizer(Synthesizer):
    """
    Offline text-to-speech using pyttsx3.

    The engine is created and driven on a daemon worker thread; runAndWait()
    blocks, so it must never run on the control thread.
    """

    def __init__(
        self,
        rate: int = 160,
        volume: float = 0.9,
        voice_id: Optional[str] = None,
    ):
        """
        Initialize pyttsx3 synthesizer.

        Args:
            rate: Speech rate in words per minute
            volume: Volume in [0, 1]
            voice_id: Optional pyttsx3 voice id
        """
        super().__init__()
        self.rate = rate
        self.volume = volume
        self.voice_id = voice_id

        self._engine = None
        self._queue: queue.Queue = queue.Queue()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._worker, daemon=True)
        self._thread.start()

    def _worker(self):
        try:
            engine = pyttsx3.init()
            engine.setProperty("rate", self.rate)
            engine.setProperty("volume", self.volume)
            if self.voice_id:
                engine.setProperty("voice", self.voice_id)
        except Exception as e:
            logger.error(f"Failed to initialize pyttsx3: {e}")
            self._notify_ready(False)
            return

        self._engine = engine
        logger.info("pyttsx3 synthesizer ready")
        self._notify_ready(True)

        while not self._stop_event.is_set():
            try:
                text = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue

            try:
                engine.say(text)
                engine.runAndWait()
            except Exception as e:
                logger.error(f"TTS error: {e}")

    def _drain(self):
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    def speak(self, text: str, flush: bool = True) -> None:
        if flush:
            self._drain()
            self.stop()
        self._queue.put(text)

    def stop(self) -> None:
        if self._engine is None:
            return
        try:
            self._engine.stop()
        except Exception as e:
            logger.warning(f"Failed to stop pyttsx3 engine: {e}")

    def shutdown(self) -> None:
        self._stop_event.set()
        self._drain()
        self.stop()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        self._engine = None
        logger.info("pyttsx3 synthesizer shutdown complete")
