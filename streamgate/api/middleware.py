"""ASGI middleware that refuses every request while the backend is unconfigured."""

import logging

from fastapi.responses import PlainTextResponse

from streamgate.errors import ConfigurationMissing

logger = logging.getLogger("api.middleware")


class ConfigurationGate:
    """Answer any HTTP request with the configuration error, before routing.

    Runs ahead of the router so unknown paths get the same 500 as real
    routes instead of a 404 that hides the missing secrets.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            resolver = getattr(scope["app"].state, "resolver", None)
            if resolver is not None:
                try:
                    resolver.ensure_configured()
                except ConfigurationMissing as exc:
                    logger.error("%s %s refused: %s", scope["method"], scope["path"], exc)
                    response = PlainTextResponse(str(exc), status_code=exc.status_code)
                    await response(scope, receive, send)
                    return
        await self.app(scope, receive, send)
