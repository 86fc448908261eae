"""Quote data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True, frozen=True)
class Quote:
    """A motivational remark attached to a shift announcement."""

    text: str
    generated_at: datetime
    is_fallback: bool = False

    @property
    def source(self) -> str:
        return "fallback" if self.is_fallback else "gemini"


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Exponential backoff settings for live quote generation."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 5.0
    multiplier: float = 2.0
    timeout: float = 20.0


@dataclass(slots=True, frozen=True)
class CacheStatus:
    cached: int
    capacity: int

    @property
    def percentage(self) -> int:
        return round(self.cached / self.capacity * 100) if self.capacity else 0


__all__ = ["CacheStatus", "Quote", "RetryPolicy"]
