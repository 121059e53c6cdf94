"""Test configuration — isolates settings from any local .env and fakes the upstreams."""

import os

# Point at an env file that doesn't exist — must be set before any streamgate imports
os.environ["STREAMGATE_ENV_FILE"] = "tests/.env.missing"

from contextlib import asynccontextmanager  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from streamgate.config import Settings  # noqa: E402
from streamgate.main import create_app  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


class Upstream:
    """MockTransport handler that records every outbound request."""

    def __init__(self, handler):
        self._handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)


def _settings(**overrides) -> Settings:
    values = {
        "webdav_url": "https://dav.example",
        "webdav_user": "alice",
        "webdav_pass": "secret",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def make_settings():
    """Settings with test credentials; keyword overrides win."""
    return _settings


@pytest.fixture
def gateway():
    """Factory: ``async with gateway(settings, handler) as (client, upstream)``."""

    @asynccontextmanager
    async def _gateway(config: Settings, handler):
        upstream = Upstream(handler)
        app = create_app(config, transport=httpx.MockTransport(upstream))
        async with app.router.lifespan_context(app):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                yield client, upstream

    return _gateway
