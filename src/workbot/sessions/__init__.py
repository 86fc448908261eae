"""Session reconciliation for tracked identities."""

from .engine import SessionEndHandler, SessionEngine, SignalReader
from .models import CompletedSession, SessionState, Signal
from .signals import is_playing, signal_from_presence

__all__ = [
    "CompletedSession",
    "SessionEndHandler",
    "SessionEngine",
    "SessionState",
    "Signal",
    "SignalReader",
    "is_playing",
    "signal_from_presence",
]
