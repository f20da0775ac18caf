"""Shared fixtures for the user sync test suite."""

from __future__ import annotations

import base64
import json
import time
from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient

from usersync.app import create_app
from usersync.config import Settings
from usersync.users.store import InMemoryUserStore
from usersync.webhooks.verification import sign_svix

WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"usersync-test-signing-key-32byte").decode()


@pytest.fixture()
def secret() -> str:
    return WEBHOOK_SECRET


@pytest.fixture()
def settings(secret: str) -> Settings:
    return Settings(
        clerk_webhook_secret=secret,
        database_url="postgresql://unused",
        environment="production",
        _env_file=None,
    )


@pytest.fixture()
def store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture()
def app(settings: Settings, store: InMemoryUserStore):
    return create_app(settings=settings, store=store)


@pytest.fixture()
def client(app):
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture()
def sign(secret: str) -> Callable[..., dict[str, str]]:
    """Factory for svix headers over a body."""

    def _sign(body: bytes, svix_id: str = "msg_test", timestamp: int | None = None) -> dict[str, str]:
        ts = int(time.time()) if timestamp is None else timestamp
        return {
            "svix-id": svix_id,
            "svix-timestamp": str(ts),
            "svix-signature": sign_svix(secret, svix_id, ts, body),
            "Content-Type": "application/json",
        }

    return _sign


@pytest.fixture()
def make_body() -> Callable[..., bytes]:
    """Factory for Clerk webhook bodies."""

    def _make(event_type: str, user_id: str = "u1", **data) -> bytes:
        payload = {"type": event_type, "data": {"id": user_id, **data}}
        return json.dumps(payload).encode()

    return _make
