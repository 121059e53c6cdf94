"""Public routes: the index page and the /stream/ relay."""

import logging
from urllib.parse import unquote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, StreamingResponse

from streamgate.api.ui import render_form, render_listing
from streamgate.backend.base import Resolver
from streamgate.backend.direct import DirectResolver
from streamgate.backend.listing import fetch_listing
from streamgate.relay import RelayOutcome

router = APIRouter()
logger = logging.getLogger("api.routes")

_STREAM_PREFIX = "/stream/"


async def get_resolver(request: Request) -> Resolver:
    # ConfigurationGate has already rejected requests to an unconfigured backend.
    return request.app.state.resolver


class RelayResponse(StreamingResponse):
    """Streams a RelayOutcome and always releases its upstream connection.

    The body generator only closes the upstream once it has started; a
    client that drops before the first byte would otherwise leave the
    pooled connection checked out.
    """

    def __init__(self, outcome: RelayOutcome):
        super().__init__(outcome.body, status_code=outcome.status, headers=outcome.headers)
        self.outcome = outcome

    async def __call__(self, scope, receive, send):
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.outcome.aclose()


def stream_identifier(request: Request, include_query: bool = False) -> str:
    """Undecoded remainder of the path after /stream/, percent-decoded exactly once.

    The path parameter can't be used as-is: by the time routing sees it,
    ``%2F`` has already become a separator and ``%25`` has been decoded.
    """
    raw_path = request.scope.get("raw_path") or request.url.path.encode("utf-8")
    raw = raw_path.split(b"?", 1)[0].decode("utf-8", errors="replace")
    remainder = raw[len(_STREAM_PREFIX):] if raw.startswith(_STREAM_PREFIX) else ""
    identifier = unquote(remainder)
    query = request.scope.get("query_string", b"")
    if include_query and query:
        identifier += "?" + unquote(query.decode("utf-8", errors="replace"))
    return identifier


@router.get("/", response_class=HTMLResponse)
async def index(request: Request, resolver: Resolver = Depends(get_resolver)):
    config = request.app.state.settings
    if config.listing_enabled and isinstance(resolver, DirectResolver):
        entries = await fetch_listing(
            request.app.state.http, resolver.listing_target(), config.error_body_limit
        )
        logger.info("Listed %d entries from the store root", len(entries))
        return HTMLResponse(render_listing(entries))
    return HTMLResponse(render_form(resolver.name))


@router.api_route("/stream/{identifier:path}", methods=["GET", "HEAD"])
async def stream(request: Request, resolver: Resolver = Depends(get_resolver)):
    """Resolve the identifier and relay the upstream file, Range included."""
    identifier = stream_identifier(request, include_query=resolver.name == "link")
    range_header = request.headers.get("range")
    logger.info("Streaming %s via %s (range=%s)", identifier, resolver.name, range_header or "none")

    target = await resolver.resolve(identifier)
    outcome = await request.app.state.relay.relay(target, range_header, method=request.method)
    return RelayResponse(outcome)
