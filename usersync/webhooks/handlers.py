"""Webhook HTTP handler — FastAPI route handler for Clerk user sync.

The handler:
1. Checks that the webhook secret is configured
2. Reads the raw body and verifies the Svix signature
3. Decodes the body into a typed event
4. Applies the event to the user store (one write, or none)
5. Returns 200 {"success": true}, or 400 {"error": ...}

Security contract:
- Signature is verified before decoding; a rejected request never
  touches the store
- Unrecognized event types still get 200 (forward-compatible)
- Stack traces are only returned in development builds
- Every request is audit-logged
"""

from __future__ import annotations

import logging
import time
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from usersync.config import Settings
from usersync.users.store import UserStore
from usersync.webhooks.dispatcher import apply_event
from usersync.webhooks.errors import (
    ConfigurationError,
    Err,
    Ok,
    Result,
    StorageError,
    WebhookError,
)
from usersync.webhooks.events import Event, UnknownEvent, parse_event
from usersync.webhooks.verification import SVIX_ID_HEADER, verify_svix

logger = logging.getLogger(__name__)

_PROVIDER = "clerk"


def _event_name(event: Event) -> str:
    if isinstance(event, UnknownEvent):
        return event.event_type
    return type(event).__name__


class ClerkWebhookHandler:
    """Ingests Clerk user lifecycle webhooks into a UserStore."""

    def __init__(self, settings: Settings, store: UserStore):
        self._settings = settings
        self._store = store
        # Receive counters per status, for monitoring
        self.counts: dict[str, int] = {}

    def _log_webhook(self, event_type: str, webhook_id: str, status: str) -> None:
        """Audit log for webhook activity."""
        self.counts[status] = self.counts.get(status, 0) + 1
        logger.info(
            "WEBHOOK_AUDIT provider=%s event=%s id=%s status=%s count=%d",
            _PROVIDER,
            event_type,
            webhook_id,
            status,
            self.counts[status],
        )

    def _check_configuration(self) -> Result[str]:
        # Read at request time so a rotated secret takes effect without restart
        if not self._settings.has_webhook_secret:
            return Err(
                ConfigurationError("CLERK_WEBHOOK_SECRET is missing in environment variables")
            )
        return Ok(self._settings.clerk_webhook_secret)

    def _failure(self, error: WebhookError) -> JSONResponse:
        content: dict[str, str] = {"error": str(error)}
        if self._settings.is_development:
            # Only raised errors (storage) carry frames; step results give the error line alone
            content["stack"] = "".join(traceback.format_exception(error))
        return JSONResponse(content, status_code=400)

    async def handle(self, request: Request) -> JSONResponse:
        """Handle one inbound webhook request."""
        start = time.time()

        # Raw body is needed for signature verification
        body = await request.body()
        headers = {k.lower(): v for k, v in request.headers.items()}
        webhook_id = headers.get(SVIX_ID_HEADER) or "unknown"

        # 1. Configuration
        config = self._check_configuration()
        if isinstance(config, Err):
            logger.error("Webhook rejected: %s", config.error)
            self._log_webhook("unknown", webhook_id, config.error.kind)
            return self._failure(config.error)

        # 2. Signature
        verified = verify_svix(
            config.value,
            body,
            headers,
            tolerance=self._settings.webhook_tolerance_seconds,
        )
        if isinstance(verified, Err):
            logger.warning("Webhook signature rejected: %s", verified.error)
            self._log_webhook("unknown", webhook_id, verified.error.kind)
            return self._failure(verified.error)

        # 3. Decode
        parsed = parse_event(verified.value)
        if isinstance(parsed, Err):
            logger.warning("Webhook payload rejected: %s", parsed.error)
            self._log_webhook("unknown", webhook_id, parsed.error.kind)
            return self._failure(parsed.error)

        event = parsed.value

        # 4. Dispatch
        try:
            outcome = await apply_event(event, self._store)
        except StorageError as exc:
            logger.exception("Failed to apply webhook event: %s/%s", _PROVIDER, _event_name(event))
            self._log_webhook(_event_name(event), webhook_id, exc.kind)
            return self._failure(exc)

        self._log_webhook(_event_name(event), webhook_id, outcome.action)

        elapsed_ms = (time.time() - start) * 1000
        logger.debug("Webhook processed in %.1fms: %s/%s", elapsed_ms, _PROVIDER, _event_name(event))

        # 5. Response
        return JSONResponse({"success": True}, status_code=200)


def register_webhook_routes(app: FastAPI, handler: ClerkWebhookHandler) -> None:
    """Register webhook endpoint routes on the FastAPI app."""

    @app.post("/api/clerk")
    async def clerk_webhook(request: Request):
        """Receive Clerk webhooks (svix-signature verified)."""
        return await handler.handle(request)

    @app.post("/webhooks/clerk")
    async def clerk_webhook_alias(request: Request):
        """Alias of /api/clerk for providers configured with the /webhooks prefix."""
        return await handler.handle(request)

    @app.get("/webhooks/status")
    async def webhook_status():
        """Webhook receive counts per status."""
        return {"counts": dict(handler.counts)}

    logger.info("Webhook routes registered: /api/clerk, /webhooks/clerk")
