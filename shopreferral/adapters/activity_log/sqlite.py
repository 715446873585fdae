"""SQLite activity log adapter.

Persists channelled activity entries to an `activity_logs` table so they
can be queried after the request that produced them. Entries are also
echoed to stdlib logging at DEBUG.
"""

import json
import logging
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from shopreferral.adapters.store.sqlite import SQLiteConnectionPool
from shopreferral.core.models import ActivityLogEntry
from shopreferral.core.ports import ActivityLogPort

logger = logging.getLogger(__name__)


class SQLiteActivityLog(SQLiteConnectionPool, ActivityLogPort):
    """Activity log rows in SQLite, newest first on read."""

    SCHEMA = (
        """
        CREATE TABLE IF NOT EXISTS activity_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            logged_at TEXT NOT NULL,
            level TEXT NOT NULL,
            channel TEXT NOT NULL DEFAULT 'general',
            message TEXT NOT NULL,
            context TEXT
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_activity_logged_at ON activity_logs(logged_at)",
        "CREATE INDEX IF NOT EXISTS idx_activity_level ON activity_logs(level)",
        "CREATE INDEX IF NOT EXISTS idx_activity_channel ON activity_logs(channel)",
    )

    async def log(
        self,
        level: str,
        message: str,
        context: Mapping[str, Any] | None = None,
        channel: str = "general",
    ) -> None:
        await self._init_schema()

        level = level.upper()
        context_json = json.dumps(dict(context or {}), default=str)
        conn = await self._get_connection()
        try:
            await conn.execute(
                """
                INSERT INTO activity_logs (logged_at, level, channel, message, context)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    datetime.now(timezone.utc).isoformat(),
                    level,
                    channel,
                    message,
                    context_json,
                ),
            )
            await conn.commit()
        finally:
            await self._return_connection(conn)

        logger.debug(f"[{level}] [{channel}] {message}")

    async def get_recent(
        self,
        limit: int = 50,
        level: str | None = None,
        channel: str | None = None,
    ) -> list[ActivityLogEntry]:
        await self._init_schema()

        conditions: list[str] = []
        params: list[Any] = []
        if level:
            conditions.append("level = ?")
            params.append(level.upper())
        if channel:
            conditions.append("channel = ?")
            params.append(channel)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        params.append(limit)

        conn = await self._get_connection()
        try:
            cursor = await conn.execute(
                f"""
                SELECT logged_at, level, channel, message, context FROM activity_logs
                {where_clause}
                ORDER BY logged_at DESC, id DESC
                LIMIT ?
                """,
                params,
            )
            rows = await cursor.fetchall()
        finally:
            await self._return_connection(conn)

        return [self._row_to_entry(row) for row in rows]

    async def count_by_channel(self, channel: str, days: int = 30) -> int:
        await self._init_schema()

        cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
        conn = await self._get_connection()
        try:
            cursor = await conn.execute(
                "SELECT COUNT(*) FROM activity_logs WHERE channel = ? AND logged_at >= ?",
                (channel, cutoff),
            )
            row = await cursor.fetchone()
            return row[0] if row else 0
        finally:
            await self._return_connection(conn)

    @staticmethod
    def _row_to_entry(row: tuple[Any, ...]) -> ActivityLogEntry:
        logged_at, level, channel, message, context_json = row
        context: dict[str, Any] = {}
        if context_json:
            try:
                decoded = json.loads(context_json)
            except json.JSONDecodeError:
                logger.warning(f"Undecodable activity log context: {context_json!r}")
                decoded = {"raw": context_json}
            context = decoded if isinstance(decoded, dict) else {"raw": decoded}
        return ActivityLogEntry(
            logged_at=datetime.fromisoformat(logged_at),
            level=level,
            channel=channel,
            message=message,
            context=context,
        )
