"""Session state records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

EndReason = Literal["signal", "removed", "shutdown"]


@dataclass(slots=True)
class SessionState:
    """Live session record for one tracked identity.

    ``is_active`` is True exactly when ``start_time`` is set.
    """

    start_time: datetime | None = None
    is_active: bool = False
    last_signal_time: datetime | None = None


@dataclass(slots=True, frozen=True)
class Signal:
    user_id: str
    is_active: bool


@dataclass(slots=True, frozen=True)
class CompletedSession:
    """A finished active period, handed to the notifier and then discarded."""

    user_id: str
    start_time: datetime
    end_time: datetime
    reason: EndReason = "signal"

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def duration_ms(self) -> int:
        return self.duration // timedelta(milliseconds=1)


__all__ = ["CompletedSession", "EndReason", "SessionState", "Signal"]
