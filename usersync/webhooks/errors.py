"""Webhook error taxonomy and step results.

Each validation step (configuration, signature, decode) returns a Result
instead of raising, so the handler can enumerate every failure path.
Storage failures are raised as StorageError and caught at the handler.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class WebhookError(Exception):
    """Base class for every failure that turns into a 400 response."""

    kind = "webhook_error"


class ConfigurationError(WebhookError):
    """Required configuration (the webhook secret) is missing."""

    kind = "configuration_error"


class AuthenticationError(WebhookError):
    """Svix headers missing, timestamp out of tolerance, or signature mismatch."""

    kind = "signature_failed"


class DecodeError(WebhookError):
    """Payload is not JSON or is missing required fields."""

    kind = "decode_failed"


class StorageError(WebhookError):
    """The user store was unreachable or the write failed."""

    kind = "storage_failed"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: WebhookError


Result = Union[Ok[T], Err]
