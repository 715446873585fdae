"""SQLite store adapters.

Implements OptionStorePort and OrderMetaStorePort using SQLite with
aiosqlite for async access. Both stores may share one database file.
"""

import asyncio
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import aiosqlite

from shopreferral.core.ports import OptionStorePort, OrderMetaStorePort

logger = logging.getLogger(__name__)


class SQLiteConnectionPool:
    """Small connection pool with lazy, once-only schema creation.

    Subclasses provide `SCHEMA`, a sequence of DDL statements.
    """

    SCHEMA: tuple[str, ...] = ()

    def __init__(self, db_path: str, pool_size: int = 5):
        """Initialize the pool.

        Args:
            db_path: Path to SQLite database file.
            pool_size: Number of connections to keep open between calls.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._pool: list[aiosqlite.Connection] = []
        self._pool_lock = asyncio.Lock()
        self._schema_lock = asyncio.Lock()
        self._pool_size = pool_size
        self._schema_initialized = False

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get a connection from the pool or create a new one."""
        async with self._pool_lock:
            if self._pool:
                return self._pool.pop()
        conn = await aiosqlite.connect(str(self.db_path))
        # Concurrent writers wait instead of failing with "database is locked"
        await conn.execute("PRAGMA busy_timeout = 5000")
        return conn

    async def _return_connection(self, conn: aiosqlite.Connection) -> None:
        """Return a connection to the pool."""
        async with self._pool_lock:
            if len(self._pool) < self._pool_size:
                self._pool.append(conn)
                return
        await conn.close()

    async def close(self) -> None:
        """Close all pooled connections."""
        async with self._pool_lock:
            for conn in self._pool:
                await conn.close()
            self._pool.clear()

    async def _init_schema(self) -> None:
        """Create tables on first use. Subsequent calls are no-ops."""
        if self._schema_initialized:
            return
        async with self._schema_lock:
            if self._schema_initialized:
                return

            conn = await self._get_connection()
            try:
                for statement in self.SCHEMA:
                    await conn.execute(statement)
                await conn.commit()
                self._schema_initialized = True
            finally:
                await self._return_connection(conn)


class SQLiteOptionStore(SQLiteConnectionPool, OptionStorePort):
    """Named options stored as JSON documents."""

    SCHEMA = (
        """
        CREATE TABLE IF NOT EXISTS options (
            option_name TEXT PRIMARY KEY,
            option_value TEXT NOT NULL
        )
        """,
    )

    async def get_option(self, name: str, default: Any = None) -> Any:
        await self._init_schema()

        conn = await self._get_connection()
        try:
            cursor = await conn.execute(
                "SELECT option_value FROM options WHERE option_name = ?", (name,)
            )
            row = await cursor.fetchone()
        finally:
            await self._return_connection(conn)

        if row is None:
            return default
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            raise ValueError(f"Option {name} holds invalid JSON: {e}") from e

    async def update_option(self, name: str, value: Any) -> None:
        await self._init_schema()

        conn = await self._get_connection()
        try:
            await conn.execute(
                """
                INSERT INTO options (option_name, option_value) VALUES (?, ?)
                ON CONFLICT(option_name) DO UPDATE SET option_value = excluded.option_value
                """,
                (name, json.dumps(value)),
            )
            await conn.commit()
        finally:
            await self._return_connection(conn)


class SQLiteOrderMetaStore(SQLiteConnectionPool, OrderMetaStorePort):
    """Per-order string metadata keyed by (order_id, meta_key)."""

    SCHEMA = (
        """
        CREATE TABLE IF NOT EXISTS order_meta (
            order_id INTEGER NOT NULL,
            meta_key TEXT NOT NULL,
            meta_value TEXT NOT NULL,
            PRIMARY KEY (order_id, meta_key)
        )
        """,
    )

    async def get_meta(self, order_id: int, key: str) -> str | None:
        await self._init_schema()

        conn = await self._get_connection()
        try:
            cursor = await conn.execute(
                "SELECT meta_value FROM order_meta WHERE order_id = ? AND meta_key = ?",
                (order_id, key),
            )
            row = await cursor.fetchone()
            return None if row is None else row[0]
        finally:
            await self._return_connection(conn)

    async def update_meta(self, order_id: int, key: str, value: str) -> None:
        await self._init_schema()

        conn = await self._get_connection()
        try:
            await conn.execute(
                """
                INSERT INTO order_meta (order_id, meta_key, meta_value) VALUES (?, ?, ?)
                ON CONFLICT(order_id, meta_key) DO UPDATE SET meta_value = excluded.meta_value
                """,
                (order_id, key, value),
            )
            await conn.commit()
        finally:
            await self._return_connection(conn)

    async def add_meta_many_if_absent(
        self, order_id: int, claim_key: str, values: Mapping[str, str]
    ) -> bool:
        if claim_key not in values:
            raise ValueError(f"Claim key {claim_key} missing from values")
        await self._init_schema()

        conn = await self._get_connection()
        try:
            # Take the write lock up front so the claim and the other values
            # commit together
            await conn.execute("BEGIN IMMEDIATE")
            try:
                cursor = await conn.execute(
                    "INSERT OR IGNORE INTO order_meta (order_id, meta_key, meta_value) "
                    "VALUES (?, ?, ?)",
                    (order_id, claim_key, values[claim_key]),
                )
                written = cursor.rowcount == 1
                if written:
                    await conn.executemany(
                        """
                        INSERT INTO order_meta (order_id, meta_key, meta_value) VALUES (?, ?, ?)
                        ON CONFLICT(order_id, meta_key) DO UPDATE SET meta_value = excluded.meta_value
                        """,
                        [
                            (order_id, key, value)
                            for key, value in values.items()
                            if key != claim_key
                        ],
                    )
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise
        finally:
            await self._return_connection(conn)

        if not written:
            logger.debug(f"Meta {claim_key} already set for order {order_id}")
        return written

    async def delete_meta(self, order_id: int, key: str) -> None:
        await self._init_schema()

        conn = await self._get_connection()
        try:
            await conn.execute(
                "DELETE FROM order_meta WHERE order_id = ? AND meta_key = ?",
                (order_id, key),
            )
            await conn.commit()
        finally:
            await self._return_connection(conn)
