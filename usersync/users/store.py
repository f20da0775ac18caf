"""User store: Postgres-backed user table plus an in-memory equivalent.

Write contract (all operations are idempotent):
- create(record): insert-or-replace keyed by id (duplicate delivery is safe)
- replace_by_id(id, record): full replace of every field, creates if absent
- delete_by_id(id): removes the row if present, absence is not an error
- Each write is a single statement on an autocommit connection, so a
  failure can never leave a half-updated record
- Driver errors are re-raised as StorageError (never retried here)
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import psycopg
from psycopg.rows import dict_row

from usersync.users.models import UserRecord
from usersync.webhooks.errors import StorageError

logger = logging.getLogger(__name__)


@runtime_checkable
class UserStore(Protocol):
    """Protocol for user record stores."""

    async def create(self, record: UserRecord) -> None:
        ...

    async def replace_by_id(self, user_id: str, record: UserRecord) -> None:
        ...

    async def delete_by_id(self, user_id: str) -> bool:
        """Delete the record. Returns False if there was nothing to delete."""
        ...

    async def get(self, user_id: str) -> UserRecord | None:
        ...


# ── Postgres ──────────────────────────────────────────────────────────────

_UPSERT_SQL = """
    INSERT INTO users (id, email, name, image, updated_at)
    VALUES (%s, %s, %s, %s, now())
    ON CONFLICT (id) DO UPDATE SET
        email = EXCLUDED.email,
        name = EXCLUDED.name,
        image = EXCLUDED.image,
        updated_at = now()
"""


class PostgresUserStore:
    """psycopg 3 async store over the ``users`` table.

    Connections are opened per operation; pooling is left to the
    deployment (pgbouncer or similar).
    """

    def __init__(self, database_url: str):
        self._database_url = database_url

    async def _connect(self) -> psycopg.AsyncConnection:
        return await psycopg.AsyncConnection.connect(
            self._database_url, autocommit=True, row_factory=dict_row
        )

    async def init_schema(self) -> None:
        """Create the users table if it doesn't exist.  Idempotent."""
        try:
            async with await self._connect() as conn:
                await conn.execute("""
                    CREATE TABLE IF NOT EXISTS users (
                        id          TEXT PRIMARY KEY,
                        email       TEXT,
                        name        TEXT NOT NULL DEFAULT '',
                        image       TEXT,
                        created_at  TIMESTAMPTZ DEFAULT now(),
                        updated_at  TIMESTAMPTZ DEFAULT now()
                    )
                """)
        except psycopg.Error as exc:
            raise StorageError(f"Failed to initialize users table: {exc}") from exc
        logger.info("Users table initialized")

    async def _upsert(self, user_id: str, record: UserRecord) -> None:
        try:
            async with await self._connect() as conn:
                await conn.execute(
                    _UPSERT_SQL, (user_id, record.email, record.name, record.image)
                )
        except psycopg.Error as exc:
            raise StorageError(f"Failed to write user {user_id}: {exc}") from exc

    async def create(self, record: UserRecord) -> None:
        await self._upsert(record.id, record)

    async def replace_by_id(self, user_id: str, record: UserRecord) -> None:
        await self._upsert(user_id, record)

    async def delete_by_id(self, user_id: str) -> bool:
        try:
            async with await self._connect() as conn:
                cur = await conn.execute("DELETE FROM users WHERE id = %s", (user_id,))
                return cur.rowcount > 0
        except psycopg.Error as exc:
            raise StorageError(f"Failed to delete user {user_id}: {exc}") from exc

    async def get(self, user_id: str) -> UserRecord | None:
        try:
            async with await self._connect() as conn:
                cur = await conn.execute(
                    "SELECT id, email, name, image FROM users WHERE id = %s",
                    (user_id,),
                )
                row = await cur.fetchone()
        except psycopg.Error as exc:
            raise StorageError(f"Failed to read user {user_id}: {exc}") from exc
        if row is None:
            return None
        return UserRecord(
            id=row["id"],
            email=row["email"],
            name=row["name"] or "",
            image=row["image"],
        )


# ── In-memory ─────────────────────────────────────────────────────────────


class InMemoryUserStore:
    """Dict-backed store with the same write semantics as PostgresUserStore.

    Used by tests and by local runs without a database.
    """

    def __init__(self):
        self._records: dict[str, UserRecord] = {}
        self.mutations = 0

    async def create(self, record: UserRecord) -> None:
        self._records[record.id] = record
        self.mutations += 1

    async def replace_by_id(self, user_id: str, record: UserRecord) -> None:
        if record.id != user_id:
            # The key is immutable; the stored record always carries it
            record = UserRecord(
                id=user_id, email=record.email, name=record.name, image=record.image
            )
        self._records[user_id] = record
        self.mutations += 1

    async def delete_by_id(self, user_id: str) -> bool:
        self.mutations += 1
        return self._records.pop(user_id, None) is not None

    async def get(self, user_id: str) -> UserRecord | None:
        return self._records.get(user_id)

    def __len__(self) -> int:
        return len(self._records)
