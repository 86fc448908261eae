"""Motivational quote generation and caching."""

from .backend import FakeQuoteBackend, GeminiQuoteBackend, QuoteBackend, QuoteGenerationError
from .models import CacheStatus, Quote, RetryPolicy
from .provider import FALLBACK_QUOTES, QuoteProvider

__all__ = [
    "CacheStatus",
    "FALLBACK_QUOTES",
    "FakeQuoteBackend",
    "GeminiQuoteBackend",
    "Quote",
    "QuoteBackend",
    "QuoteGenerationError",
    "QuoteProvider",
    "RetryPolicy",
]
