"""FastAPI application entrypoint — lifespan, routes, and error handlers."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from streamgate.api.middleware import ConfigurationGate
from streamgate.api.routes import router
from streamgate.backend.base import build_resolver
from streamgate.config import Settings, settings
from streamgate.errors import GatewayError
from streamgate.relay import RelayEngine

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("main")


def create_app(
    config: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None
) -> FastAPI:
    """Build the gateway.  ``transport`` replaces the network for the upstream client."""
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        from streamgate.config import _resolve_env_file
        env_path = _resolve_env_file()
        logger.info(
            "Starting stream gateway (backend=%s, env_file=%s, exists=%s)",
            config.backend, env_path, env_path.exists(),
        )
        config.log_startup_notes()

        # One pooled client for every upstream call; closed at shutdown.
        timeout = httpx.Timeout(
            connect=config.upstream_connect_timeout_s,
            read=config.upstream_read_timeout_s,
            write=config.upstream_write_timeout_s,
            pool=config.upstream_pool_timeout_s,
        )
        client = httpx.AsyncClient(timeout=timeout, follow_redirects=True, transport=transport)
        app.state.settings = config
        app.state.http = client
        app.state.resolver = build_resolver(config, client)
        app.state.relay = RelayEngine(
            client,
            media_type=config.media_type,
            default_filename=config.default_filename,
            error_body_limit=config.error_body_limit,
        )
        logger.info("Server ready")
        yield

        logger.info("Shutting down")
        await client.aclose()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Stream Gateway",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )

    # Added first so it sits inside CORS: refusals still carry CORS headers.
    app.add_middleware(ConfigurationGate)

    # Preflight for players hosted on another origin. Any origin is allowed,
    # matching the headers the relay puts on every stream response.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "HEAD", "OPTIONS"],
        allow_headers=["Range"],
        expose_headers=["Content-Range", "Content-Length"],
    )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
        return PlainTextResponse(str(exc), status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)

    app.include_router(router)
    return app


app = create_app()
