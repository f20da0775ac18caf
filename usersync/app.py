"""FastAPI application for the user sync service.

Routes:
- POST /api/clerk, POST /webhooks/clerk: Clerk user lifecycle webhooks
- GET /webhooks/status: webhook receive counts
- GET /health: liveness
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from usersync.config import Settings, get_settings
from usersync.users.store import PostgresUserStore, UserStore
from usersync.webhooks.handlers import ClerkWebhookHandler, register_webhook_routes

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single root handler. Safe to call more than once."""
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level.upper())


def create_app(settings: Settings | None = None, store: UserStore | None = None) -> FastAPI:
    """Build the app. Settings and store are injectable for tests."""
    settings = settings or get_settings()
    store = store if store is not None else PostgresUserStore(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        if not settings.has_webhook_secret:
            # Not fatal: each webhook is rejected with a 400 until the secret is set
            logger.warning("CLERK_WEBHOOK_SECRET not set — every webhook will be rejected")
        init_schema = getattr(store, "init_schema", None)
        if init_schema is not None:
            await init_schema()
        yield

    app = FastAPI(title="usersync", lifespan=lifespan)
    handler = ClerkWebhookHandler(settings, store)
    register_webhook_routes(app, handler)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.state.settings = settings
    app.state.store = store
    app.state.webhook_handler = handler
    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
