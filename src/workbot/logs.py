"""Log formatting for WorkBot."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"

_RECORD_ATTRIBUTES = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}


class ContextFormatter(logging.Formatter):
    """Render ``[timestamp] [LEVEL] message {context}``.

    The context is whatever was passed through ``extra=``, serialized as JSON.
    """

    def __init__(self) -> None:
        super().__init__(LOG_FORMAT)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        stamp = datetime.fromtimestamp(record.created, timezone.utc)
        return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    @staticmethod
    def context_of(record: logging.LogRecord) -> dict[str, Any]:
        return {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        }

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = self.context_of(record)
        if not context:
            return line
        return f"{line} {json.dumps(context, default=str, sort_keys=True)}"


def configure_logging(level: str) -> None:
    """Configure root logging for the bot."""

    numeric = getattr(logging, level, logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter())
    logging.basicConfig(level=numeric, handlers=[handler], force=True)
    # discord.py is chatty at DEBUG (gateway payloads)
    logging.getLogger("discord").setLevel(max(numeric, logging.INFO))


__all__ = ["ContextFormatter", "LOG_FORMAT", "configure_logging"]
