"""Typed Clerk webhook events.

A verified body decodes into exactly one of UserCreated, UserUpdated,
UserDeleted or UnknownEvent. New upstream event types land in
UnknownEvent instead of failing, so the endpoint stays forward-compatible.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Union

from pydantic import BaseModel, Field, ValidationError

from usersync.users.models import UserRecord
from usersync.webhooks.errors import DecodeError, Err, Ok, Result

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    """Clerk user lifecycle event tags."""

    USER_CREATED = "user.created"
    USER_UPDATED = "user.updated"
    USER_DELETED = "user.deleted"


# ── Wire models ───────────────────────────────────────────────────────────


class ClerkEmailAddress(BaseModel):
    email_address: str | None = None


class ClerkUserData(BaseModel):
    """The ``data`` object of a user.* event. Unknown fields are ignored."""

    id: str = Field(min_length=1)
    email_addresses: list[ClerkEmailAddress] = Field(default_factory=list)
    first_name: str | None = None
    last_name: str | None = None
    image_url: str | None = None


class ClerkPayload(BaseModel):
    """Outer webhook envelope: ``{"type": ..., "data": {...}}``."""

    type: str
    data: dict[str, Any] = Field(default_factory=dict)


# ── Events ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class UserCreated:
    user_id: str
    record: UserRecord


@dataclass(frozen=True)
class UserUpdated:
    user_id: str
    record: UserRecord


@dataclass(frozen=True)
class UserDeleted:
    user_id: str


@dataclass(frozen=True)
class UnknownEvent:
    event_type: str


Event = Union[UserCreated, UserUpdated, UserDeleted, UnknownEvent]


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0] if exc.errors() else {}
    loc = ".".join(str(part) for part in first.get("loc", ())) or "body"
    return f"{loc}: {first.get('msg', 'invalid')}"


def parse_event(body: bytes) -> Result[Event]:
    """Decode a verified webhook body into a typed event.

    Args:
        body: Raw JSON body (already signature-verified)

    Returns:
        Ok(event), or Err(DecodeError) if the body is not JSON, lacks
        ``type``/``data``, or a known event lacks ``data.id``
    """
    try:
        payload = ClerkPayload.model_validate_json(body)
    except ValidationError as exc:
        return Err(DecodeError(f"Invalid webhook payload ({_describe(exc)})"))

    try:
        event_type = EventType(payload.type)
    except ValueError:
        logger.info("Unrecognized webhook event: clerk/%s — skipping", payload.type)
        return Ok(UnknownEvent(event_type=payload.type))

    try:
        data = ClerkUserData.model_validate(payload.data)
    except ValidationError as exc:
        return Err(DecodeError(f"Invalid {event_type} payload (data.{_describe(exc)})"))

    if event_type is EventType.USER_DELETED:
        return Ok(UserDeleted(user_id=data.id))

    record = UserRecord.from_clerk(data.model_dump())
    if event_type is EventType.USER_CREATED:
        return Ok(UserCreated(user_id=data.id, record=record))
    return Ok(UserUpdated(user_id=data.id, record=record))
