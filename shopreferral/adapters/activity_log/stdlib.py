"""Activity log adapter backed by the standard logging module.

Each channel maps to a `shopreferral.activity.<channel>` logger. Recent
entries are also kept in a bounded in-process buffer so `get_recent`
works without a database.
"""

import logging
from collections import deque
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from shopreferral.core.models import ActivityLogEntry
from shopreferral.core.ports import ActivityLogPort

LOGGER_PREFIX = "shopreferral.activity"


class LoggingActivityLog(ActivityLogPort):
    """Forwards activity entries to stdlib logging."""

    def __init__(self, buffer_size: int = 500):
        self._buffer: deque[ActivityLogEntry] = deque(maxlen=buffer_size)

    async def log(
        self,
        level: str,
        message: str,
        context: Mapping[str, Any] | None = None,
        channel: str = "general",
    ) -> None:
        level = level.upper()
        context = dict(context or {})
        logging.getLogger(f"{LOGGER_PREFIX}.{channel}").log(
            getattr(logging, level, logging.INFO),
            message,
            extra={"channel": channel, "context": context},
        )
        self._buffer.append(
            ActivityLogEntry(
                logged_at=datetime.now(timezone.utc),
                level=level,
                channel=channel,
                message=message,
                context=context,
            )
        )

    async def get_recent(
        self,
        limit: int = 50,
        level: str | None = None,
        channel: str | None = None,
    ) -> list[ActivityLogEntry]:
        entries = [
            entry
            for entry in reversed(self._buffer)
            if (level is None or entry.level == level.upper())
            and (channel is None or entry.channel == channel)
        ]
        return entries[:limit]

    async def count_by_channel(self, channel: str, days: int = 30) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        return sum(
            1 for entry in self._buffer if entry.channel == channel and entry.logged_at >= cutoff
        )
