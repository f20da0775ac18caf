"""Webhook signature verification — Svix scheme, constant-time HMAC.

Clerk delivers webhooks through Svix, which sends three headers:
svix-id, svix-timestamp and svix-signature.

Security contract:
- All comparisons use hmac.compare_digest() (constant-time, no timing attacks)
- Any missing header -> reject (fail-closed)
- Timestamp tolerance: 300s by default, in both directions, to prevent replay
- Signed content is "{svix_id}.{svix_timestamp}.{raw body}"
- svix-signature may carry several "v1,<base64>" entries (secret rotation)
- Never raises; every failure is returned as Err(AuthenticationError)
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import time
from collections.abc import Mapping

from usersync.webhooks.errors import AuthenticationError, Err, Ok, Result

logger = logging.getLogger(__name__)

SVIX_ID_HEADER = "svix-id"
SVIX_TIMESTAMP_HEADER = "svix-timestamp"
SVIX_SIGNATURE_HEADER = "svix-signature"

_SECRET_PREFIX = "whsec_"
_DEFAULT_TOLERANCE_SECONDS = 300


def decode_secret(secret: str) -> bytes:
    """Decode a Svix signing secret (``whsec_<base64>``) into key bytes.

    Raises:
        ValueError: if the secret is not valid base64
    """
    secret = secret.strip()
    if secret.startswith(_SECRET_PREFIX):
        secret = secret[len(_SECRET_PREFIX):]
    try:
        return base64.b64decode(secret, validate=True)
    except binascii.Error as exc:
        raise ValueError("webhook secret is not valid base64") from exc


def _compute_signature(key: bytes, svix_id: str, timestamp: str, body: bytes) -> str:
    signed_content = f"{svix_id}.{timestamp}.".encode("utf-8", "surrogatepass") + body
    digest = hmac.new(key, signed_content, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def sign_svix(secret: str, svix_id: str, timestamp: int | str, body: bytes) -> str:
    """Produce a svix-signature header value for a body.

    Used by tests and by local tooling that replays captured events.
    """
    sig = _compute_signature(decode_secret(secret), svix_id, str(timestamp), body)
    return f"v1,{sig}"


def _parse_signatures(header: str) -> list[str]:
    """Extract v1 signatures from "v1,<sig> v1,<sig2> ..."."""
    signatures = []
    for entry in header.split():
        version, _, sig = entry.partition(",")
        if version == "v1" and sig:
            signatures.append(sig)
    return signatures


def verify_svix(
    secret: str,
    body: bytes,
    headers: Mapping[str, str],
    *,
    tolerance: int = _DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> Result[bytes]:
    """Verify a Svix-signed webhook body.

    Args:
        secret: Signing secret (``whsec_...``)
        body: Raw request body bytes, exactly as received
        headers: Request headers (lookup is case-insensitive)
        tolerance: Allowed clock skew in seconds
        now: Current unix time (defaults to time.time())

    Returns:
        Ok(body) if the signature is valid, Err(AuthenticationError) otherwise
    """
    lowered = {k.lower(): v for k, v in headers.items()}
    svix_id = lowered.get(SVIX_ID_HEADER)
    timestamp_str = lowered.get(SVIX_TIMESTAMP_HEADER)
    signature_header = lowered.get(SVIX_SIGNATURE_HEADER)

    if not svix_id or not timestamp_str or not signature_header:
        return Err(AuthenticationError("Missing svix headers"))

    try:
        timestamp = int(timestamp_str)
    except (ValueError, TypeError):
        return Err(AuthenticationError("Invalid svix-timestamp header"))

    current = time.time() if now is None else now
    if abs(current - timestamp) > tolerance:
        logger.warning("Svix webhook timestamp too old/future: %s", timestamp)
        return Err(AuthenticationError("Message timestamp outside tolerance"))

    try:
        key = decode_secret(secret)
    except ValueError:
        logger.warning("CLERK_WEBHOOK_SECRET is not a valid svix secret — rejecting webhook")
        return Err(AuthenticationError("Webhook secret is malformed"))

    signatures = _parse_signatures(signature_header)
    if not signatures:
        return Err(AuthenticationError("No v1 signature in svix-signature header"))

    # Header values arrive latin-1 decoded; compare bytes so non-ASCII input fails cleanly
    expected = _compute_signature(key, svix_id, timestamp_str, body).encode("utf-8")
    if any(
        hmac.compare_digest(expected, sig.encode("utf-8", "surrogatepass"))
        for sig in signatures
    ):
        return Ok(body)

    return Err(AuthenticationError("No matching signature found"))
