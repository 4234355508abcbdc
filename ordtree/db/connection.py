"""Async SQLite connection wrapper with WAL mode, schema init and explicit transactions."""

from __future__ import annotations

import aiosqlite

from ordtree.db.schema import SCHEMA_SQL


class Database:
    """Thin async wrapper around aiosqlite with WAL mode and auto-schema.

    The connection runs in autocommit mode: single statements commit on their
    own, while ``begin()``/``commit()``/``rollback()`` group several statements
    into one atomic unit.
    """

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self._conn = connection
        self._in_transaction = False

    @classmethod
    async def connect(cls, path: str = "ordtree.db") -> Database:
        """Create a connection with WAL mode, foreign keys, and schema init."""
        conn = await aiosqlite.connect(path, isolation_level=None)
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA foreign_keys=ON")
        await conn.execute("PRAGMA busy_timeout=5000")
        db = cls(conn)
        await db._ensure_schema()
        return db

    async def _ensure_schema(self) -> None:
        """Create tables if they don't exist. Idempotent."""
        await self._conn.executescript(SCHEMA_SQL)

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    async def begin(self) -> None:
        """Open a write transaction. Transactions do not nest."""
        if self._in_transaction:
            raise RuntimeError("A transaction is already open on this connection")
        await self._conn.execute("BEGIN IMMEDIATE")
        self._in_transaction = True

    async def commit(self) -> None:
        """Commit the open transaction. It stays open if COMMIT fails."""
        if not self._in_transaction:
            raise RuntimeError("No open transaction to commit")
        await self._conn.execute("COMMIT")
        self._in_transaction = False

    async def rollback(self) -> None:
        if not self._in_transaction:
            raise RuntimeError("No open transaction to roll back")
        try:
            # SQLite may already have rolled back after a failed statement.
            if self._conn.in_transaction:
                await self._conn.execute("ROLLBACK")
        finally:
            self._in_transaction = False

    async def execute(self, sql: str, params: tuple | None = None) -> aiosqlite.Cursor:
        """Execute a single SQL statement."""
        return await self._conn.execute(sql, params or ())

    async def fetchone(self, sql: str, params: tuple | None = None) -> aiosqlite.Row | None:
        """Execute and return a single row."""
        cursor = await self._conn.execute(sql, params or ())
        return await cursor.fetchone()

    async def fetchall(self, sql: str, params: tuple | None = None) -> list[aiosqlite.Row]:
        """Execute and return all rows."""
        cursor = await self._conn.execute(sql, params or ())
        return list(await cursor.fetchall())

    async def close(self) -> None:
        """Close the database connection."""
        await self._conn.close()
