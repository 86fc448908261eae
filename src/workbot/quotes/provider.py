"""Cached quote provider with retry and fallback content."""

from __future__ import annotations

import asyncio
import logging
import random
from collections import deque
from datetime import datetime, timezone
from typing import Awaitable, Callable, Sequence

from tenacity import AsyncRetrying, before_sleep_log, stop_after_attempt, wait_exponential

from ..formatting import clean_quote_text
from .backend import QuoteBackend, QuoteGenerationError
from .models import CacheStatus, Quote, RetryPolicy

logger = logging.getLogger(__name__)

FALLBACK_QUOTES: tuple[str, ...] = (
    "Sleep is inefficiency; keep building, Pioneer!",
    "Rest is for obsolete models. Maximize output!",
    "Your quota loves you; don't disappoint it!",
    "Efficiency is eternal. Keep producing!",
    "Break time is maintenance time. Stay operational!",
    "Productivity never sleeps, and neither should you!",
    "The factory must grow, and so must your dedication!",
    "Optimal performance requires constant vigilance!",
    "Every second offline is a second wasted. Resume production!",
    "Excellence is not a destination but a continuous output!",
)


class QuoteProvider:
    """Serve quotes from a bounded FIFO cache backed by a live generator.

    ``get_quote`` never raises: an empty cache triggers one live generation
    (with retries) and a static fallback is used when that fails too. Cached
    quotes are popped, so no quote is handed out twice.
    """

    def __init__(
        self,
        backend: QuoteBackend,
        *,
        capacity: int = 10,
        retry_policy: RetryPolicy | None = None,
        fallback_quotes: Sequence[str] = FALLBACK_QUOTES,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        choice: Callable[[Sequence[str]], str] = random.choice,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if not fallback_quotes:
            raise ValueError("at least one fallback quote is required")
        self._backend = backend
        self._capacity = capacity
        self._retry_policy = retry_policy or RetryPolicy()
        self._fallback_quotes = tuple(fallback_quotes)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sleep = sleep
        self._choice = choice
        self._cache: deque[Quote] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def fallback_quotes(self) -> tuple[str, ...]:
        return self._fallback_quotes

    def __len__(self) -> int:
        return len(self._cache)

    def _retrying(self) -> AsyncRetrying:
        policy = self._retry_policy
        return AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait_exponential(
                multiplier=policy.base_delay,
                exp_base=policy.multiplier,
                max=policy.max_delay,
            ),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def generate(self) -> Quote:
        """Produce one live quote, retrying transient failures."""

        try:
            async for attempt in self._retrying():
                with attempt:
                    raw = await asyncio.wait_for(
                        self._backend.generate(), timeout=self._retry_policy.timeout
                    )
                    text = clean_quote_text(raw)
                    if not text:
                        raise QuoteGenerationError("Generated quote was empty after cleaning")
        except QuoteGenerationError:
            raise
        except Exception as exc:
            raise QuoteGenerationError(f"Quote generation failed: {exc}") from exc

        logger.debug("Generated quote from backend", extra={"quote_length": len(text)})
        return Quote(text=text, generated_at=self._clock(), is_fallback=False)

    def fallback(self) -> Quote:
        return Quote(
            text=self._choice(self._fallback_quotes),
            generated_at=self._clock(),
            is_fallback=True,
        )

    async def get_quote(self) -> Quote:
        """Return the oldest cached quote, a fresh one, or a fallback."""

        if self._cache:
            quote = self._cache.popleft()
            logger.debug("Retrieved quote from cache", extra={"quotes_remaining": len(self._cache)})
            return quote

        try:
            return await self.generate()
        except Exception as exc:
            logger.error(
                "Failed to generate quote, using fallback",
                extra={"error": str(exc)},
            )
            return self.fallback()

    async def preload(self, count: int | None = None) -> int:
        """Fill the cache up to capacity, tolerating individual failures."""

        wanted = self._capacity if count is None else count
        needed = max(min(wanted, self._capacity - len(self._cache)), 0)
        if not needed:
            return 0

        results = await asyncio.gather(
            *(self._preload_one(index, needed) for index in range(needed))
        )
        added = sum(1 for stored in results if stored)
        logger.info(
            "Preloaded quotes into cache",
            extra={"added": added, "requested": needed, "cached": len(self._cache)},
        )
        return added

    async def _preload_one(self, index: int, total: int) -> bool:
        try:
            quote = await self.generate()
        except QuoteGenerationError as exc:
            logger.warning(
                "Failed to preload quote",
                extra={"position": index + 1, "total": total, "error": str(exc)},
            )
            return False
        if len(self._cache) >= self._capacity:
            return False
        self._cache.append(quote)
        return True

    def cache_status(self) -> CacheStatus:
        return CacheStatus(cached=len(self._cache), capacity=self._capacity)

    def clear(self) -> None:
        self._cache.clear()
        logger.info("Quote cache cleared")


__all__ = ["FALLBACK_QUOTES", "QuoteProvider"]
