"""
Speech Module.

Responsibilities:
- Rate-limited, newest-wins dispatch of instruction text
- Holding speech until the synthesizer reports readiness
- Text-to-speech backends
"""

from .speech_dispatcher import SpeechDispatcher, DispatcherState
from .scheduler import OneShotTimer, Scheduler, ThreadingScheduler, TimerHandle
from .synthesizer import Synthesizer, Pyttsx3Synthesizer, LoggingSynthesizer
