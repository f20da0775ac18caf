"""Webhook event dispatcher — applies typed events to the user store.

Every accepted event maps to exactly one store call:
- user.created -> create (insert-or-replace, safe under redelivery)
- user.updated -> replace_by_id (full replace, creates if absent)
- user.deleted -> delete_by_id (missing key is a no-op)
- anything else -> no store call

Ordering between concurrent events for the same id is left to the
store's per-key write ordering (last write wins).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import assert_never

from usersync.users.models import redact_email
from usersync.users.store import UserStore
from usersync.webhooks.errors import StorageError
from usersync.webhooks.events import (
    Event,
    UnknownEvent,
    UserCreated,
    UserDeleted,
    UserUpdated,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncOutcome:
    """What a dispatched event did to the store."""

    action: str  # created, updated, deleted, delete_missing, ignored
    user_id: str = ""


async def apply_event(event: Event, store: UserStore) -> SyncOutcome:
    """Apply one event to the store.

    Raises:
        StorageError: if the store call fails (chained from the driver error)
    """
    try:
        match event:
            case UserCreated(user_id=user_id, record=record):
                await store.create(record)
                logger.info(
                    "User created: %s (email=%s)", user_id, redact_email(record.email)
                )
                return SyncOutcome("created", user_id)

            case UserUpdated(user_id=user_id, record=record):
                await store.replace_by_id(user_id, record)
                logger.info(
                    "User updated: %s (email=%s)", user_id, redact_email(record.email)
                )
                return SyncOutcome("updated", user_id)

            case UserDeleted(user_id=user_id):
                if await store.delete_by_id(user_id):
                    logger.info("User deleted: %s", user_id)
                    return SyncOutcome("deleted", user_id)
                logger.info("User delete for unknown id: %s (nothing to do)", user_id)
                return SyncOutcome("delete_missing", user_id)

            case UnknownEvent():
                return SyncOutcome("ignored")

            case _:
                assert_never(event)
    except StorageError:
        raise
    except Exception as exc:
        raise StorageError(f"User store write failed: {exc}") from exc
