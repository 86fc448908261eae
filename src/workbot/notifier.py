"""Shift announcements for completed sessions."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from .formatting import format_duration, render_shift_message
from .membership import TrackedIdentity
from .quotes import Quote, QuoteProvider
from .sessions import CompletedSession

logger = logging.getLogger(__name__)

UNKNOWN_USER = "Unknown User"


class MessageSink(Protocol):
    """Outbound delivery for rendered announcements."""

    async def send(self, content: str) -> None:
        ...


class IdentityDirectory(Protocol):
    def get(self, user_id: str) -> TrackedIdentity | None:
        ...


class Notifier:
    """Render and deliver the "shift ended" message.

    Delivery problems are logged and swallowed: by the time a notification is
    attempted the session has already ended.
    """

    def __init__(
        self,
        directory: IdentityDirectory,
        sink: MessageSink,
        quotes: QuoteProvider,
        *,
        delivery_timeout: float = 30.0,
    ) -> None:
        self._directory = directory
        self._sink = sink
        self._quotes = quotes
        self._delivery_timeout = delivery_timeout
        self.sent_count = 0
        self.failed_count = 0

    async def notify(self, completed: CompletedSession) -> bool:
        logger.debug(
            "Fetching quote for session end message",
            extra={"user_id": completed.user_id},
        )
        quote = await self._quotes.get_quote()
        return await self.announce(completed.user_id, completed.duration_ms, quote)

    async def announce(self, user_id: str, duration_ms: int, quote: Quote) -> bool:
        identity = self._directory.get(user_id)
        display_name = identity.display_name if identity else UNKNOWN_USER
        role_label = identity.role_label if identity else None

        message = render_shift_message(display_name, duration_ms, quote.text, role_label)

        try:
            await asyncio.wait_for(self._sink.send(message), timeout=self._delivery_timeout)
        except Exception as exc:
            self.failed_count += 1
            logger.error(
                "Failed to send session end message",
                extra={"user_id": user_id, "error": str(exc) or type(exc).__name__},
            )
            return False

        self.sent_count += 1
        logger.info(
            "Session end message sent",
            extra={
                "user_id": user_id,
                "duration": format_duration(duration_ms),
                "has_role_label": role_label is not None,
                "quote_source": quote.source,
            },
        )
        return True


__all__ = ["IdentityDirectory", "MessageSink", "Notifier", "UNKNOWN_USER"]
