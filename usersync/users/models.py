"""UserRecord: one end-user account as known to the application.

The record is keyed by the identity provider's user id and is always
written whole. There is no merge of individual fields, no soft delete
and no versioning.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class UserRecord:
    """A mirrored user account."""

    id: str
    email: str | None = None
    name: str = ""
    image: str | None = None

    @classmethod
    def from_clerk(cls, data: dict[str, Any]) -> UserRecord:
        """Derive a record from a Clerk user payload (the event's ``data``).

        Args:
            data: Clerk user object with id, email_addresses, first_name,
                last_name and image_url

        Returns:
            UserRecord with name = "first last" trimmed and email taken
            from the first listed address
        """
        addresses = data.get("email_addresses") or []
        email = None
        if addresses and isinstance(addresses[0], dict):
            email = addresses[0].get("email_address")

        first = data.get("first_name") or ""
        last = data.get("last_name") or ""

        return cls(
            id=str(data["id"]),
            email=email,
            name=f"{first} {last}".strip(),
            image=data.get("image_url"),
        )


def redact_email(email: str | None) -> str:
    """Show only the domain of an email address, for logs."""
    if not email:
        return ""
    if "@" in email:
        return "***@" + email.split("@", 1)[1]
    return "***"
