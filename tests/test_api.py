"""API integration tests — routes, resolver selection, and error mapping end to end."""

import json
from urllib.parse import quote

import httpx
import pytest

from streamgate.backend.direct import MISSING_CREDENTIALS_MESSAGE

API_URL = "https://api.example/file/resolve"

MULTISTATUS = """<?xml version="1.0" encoding="utf-8"?>
<d:multistatus xmlns:d="DAV:">
  <d:response><d:href>/</d:href></d:response>
  <d:response><d:href>/Extras/</d:href></d:response>
  <d:response><d:href>/My%20Clip.mp4</d:href></d:response>
</d:multistatus>
"""


class _ChunkStream(httpx.AsyncByteStream):
    """Unread upstream body handed out in chunks, like a socket."""

    def __init__(self, data: bytes, chunk_size: int = 256):
        self._data = data
        self._chunk_size = chunk_size

    async def __aiter__(self):
        for i in range(0, len(self._data), self._chunk_size):
            yield self._data[i:i + self._chunk_size]


def _streamed(status: int, data: bytes = b"", headers: dict | None = None) -> httpx.Response:
    headers = {"Content-Length": str(len(data)), **(headers or {})}
    return httpx.Response(status, headers=headers, stream=_ChunkStream(data))


def _video(request: httpx.Request) -> httpx.Response:
    if "range" in request.headers:
        return _streamed(
            206,
            b"v" * 100,
            headers={"Content-Type": "text/plain", "Content-Range": "bytes 0-99/1000"},
        )
    return _streamed(200, b"v" * 1000, headers={"Content-Type": "text/plain"})


@pytest.mark.anyio
async def test_index_renders_form(gateway, make_settings):
    async with gateway(make_settings(), _video) as (client, upstream):
        res = await client.get("/")
    assert res.status_code == 200
    assert "text/html" in res.headers["content-type"]
    assert "encodeURIComponent" in res.text
    assert upstream.requests == []


@pytest.mark.anyio
async def test_stream_without_range_returns_inline_video(gateway, make_settings):
    async with gateway(make_settings(), _video) as (client, upstream):
        res = await client.get("/stream/movie.txt")

    assert res.status_code == 200
    assert res.headers["content-type"] == "video/mp4"
    assert res.headers["content-disposition"] == 'inline; filename="movie.txt"'
    assert res.headers["access-control-allow-origin"] == "*"
    assert len(res.content) == 1000
    assert str(upstream.requests[0].url) == "https://dav.example/movie.txt"


@pytest.mark.anyio
async def test_stream_with_range_returns_partial_content(gateway, make_settings):
    async with gateway(make_settings(), _video) as (client, upstream):
        res = await client.get("/stream/movie.txt", headers={"Range": "bytes=0-99"})

    assert res.status_code == 206
    assert res.headers["content-range"] == "bytes 0-99/1000"
    assert res.content == b"v" * 100
    assert upstream.requests[0].headers["range"] == "bytes=0-99"


@pytest.mark.anyio
@pytest.mark.parametrize("path", ["/stream/Movies%2FMy%20Clip.mp4", "/stream/Movies/My%20Clip.mp4"])
async def test_path_with_space_and_slash_round_trips(gateway, make_settings, path):
    async with gateway(make_settings(), _video) as (client, upstream):
        res = await client.get(path)

    assert res.status_code == 200
    assert upstream.requests[0].url.raw_path == b"/Movies/My%20Clip.mp4"
    assert res.headers["content-disposition"] == 'inline; filename="My Clip.mp4"'


@pytest.mark.anyio
async def test_upstream_404_is_propagated(gateway, make_settings):
    async with gateway(make_settings(), lambda r: httpx.Response(404, text="no such file")) as (client, _):
        res = await client.get("/stream/missing.mp4")

    assert res.status_code == 404
    assert "Upstream error: 404" in res.text
    assert "no such file" in res.text
    assert "content-disposition" not in res.headers


@pytest.mark.anyio
async def test_head_is_relayed_as_head(gateway, make_settings):
    async with gateway(make_settings(), lambda r: _streamed(200)) as (client, upstream):
        res = await client.head("/stream/movie.txt")

    assert res.status_code == 200
    assert upstream.requests[0].method == "HEAD"


@pytest.mark.anyio
async def test_transport_failure_returns_500(gateway, make_settings):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    async with gateway(make_settings(), handler) as (client, _):
        res = await client.get("/stream/movie.txt")

    assert res.status_code == 500
    assert res.text.startswith("Transport Error:")


@pytest.mark.anyio
@pytest.mark.parametrize("path", ["/", "/stream/movie.txt", "/favicon.ico"])
async def test_missing_credentials_is_500_without_network(gateway, make_settings, path):
    async with gateway(make_settings(webdav_user="", webdav_pass=""), _video) as (client, upstream):
        res = await client.get(path)

    assert res.status_code == 500
    assert res.text == MISSING_CREDENTIALS_MESSAGE
    assert upstream.requests == []


@pytest.mark.anyio
async def test_unknown_path_is_404(gateway, make_settings):
    async with gateway(make_settings(), _video) as (client, upstream):
        res = await client.get("/nope")
    assert res.status_code == 404
    assert res.text == "Not Found"
    assert upstream.requests == []


@pytest.mark.anyio
async def test_empty_identifier_is_400(gateway, make_settings):
    async with gateway(make_settings(), _video) as (client, upstream):
        res = await client.get("/stream/")
    assert res.status_code == 400
    assert upstream.requests == []


# -- Listing -----------------------------------------------------------------


@pytest.mark.anyio
async def test_index_lists_store_root(gateway, make_settings):
    def handler(request):
        assert request.method == "PROPFIND"
        assert request.headers["depth"] == "1"
        return httpx.Response(207, headers={"Content-Type": "application/xml"}, text=MULTISTATUS)

    async with gateway(make_settings(listing_enabled=True), handler) as (client, upstream):
        res = await client.get("/")

    assert res.status_code == 200
    assert 'href="/stream/My%20Clip.mp4"' in res.text
    assert "Extras/" in res.text
    assert str(upstream.requests[0].url) == "https://dav.example/"


@pytest.mark.anyio
async def test_listing_auth_failure_is_reported(gateway, make_settings):
    async with gateway(make_settings(listing_enabled=True), lambda r: httpx.Response(401, text="nope")) as (client, _):
        res = await client.get("/")
    assert res.status_code == 401
    assert "Listing failed with HTTP 401" in res.text


# -- Share links -------------------------------------------------------------


def _link_upstream(api_response: httpx.Response):
    def handler(request):
        if request.url.host == "api.example":
            return api_response
        return _video(request)

    return handler


@pytest.mark.anyio
async def test_share_link_is_resolved_and_relayed(gateway, make_settings):
    config = make_settings(backend="link", link_api_url=API_URL, webdav_user="", webdav_pass="")
    api = httpx.Response(200, json={"url": "https://cdn.example/dl/abc123"})
    async with gateway(config, _link_upstream(api)) as (client, upstream):
        res = await client.get("/stream/" + quote("https://share.example/s/abc123", safe=""))

    assert res.status_code == 200
    assert res.headers["content-disposition"] == 'inline; filename="video.mp4"'
    assert [r.url.host for r in upstream.requests] == ["api.example", "cdn.example"]


@pytest.mark.anyio
async def test_share_link_query_string_is_part_of_identifier(gateway, make_settings):
    config = make_settings(backend="link", link_api_url=API_URL)
    api = httpx.Response(200, json={"url": "https://cdn.example/dl/abc"})
    async with gateway(config, _link_upstream(api)) as (client, upstream):
        res = await client.get("/stream/https://share.example/s/abc?pwd=1")

    assert res.status_code == 200
    assert json.loads(upstream.requests[0].content) == {"id": "abc?pwd=1"}


@pytest.mark.anyio
async def test_share_link_without_marker_is_400_without_network(gateway, make_settings):
    config = make_settings(backend="link", link_api_url=API_URL)
    async with gateway(config, _video) as (client, upstream):
        res = await client.get("/stream/" + quote("https://share.example/file/abc", safe=""))

    assert res.status_code == 400
    assert res.text.startswith("Invalid Identifier:")
    assert upstream.requests == []


@pytest.mark.anyio
async def test_challenge_page_is_403(gateway, make_settings):
    config = make_settings(backend="link", link_api_url=API_URL)
    api = httpx.Response(200, headers={"Content-Type": "text/html"}, text="<html>Checking your browser</html>")
    async with gateway(config, _link_upstream(api)) as (client, upstream):
        res = await client.get("/stream/" + quote("https://share.example/s/abc", safe=""))

    assert res.status_code == 403
    assert res.text.startswith("Upstream Blocked:")
    assert len(upstream.requests) == 1


@pytest.mark.anyio
async def test_link_api_error_is_404_with_message(gateway, make_settings):
    config = make_settings(backend="link", link_api_url=API_URL)
    api = httpx.Response(200, json={"error": {"message": "File not found"}})
    async with gateway(config, _link_upstream(api)) as (client, _):
        res = await client.get("/stream/" + quote("https://share.example/s/abc", safe=""))

    assert res.status_code == 404
    assert res.text == "Not Found: File not found"


@pytest.mark.anyio
async def test_link_backend_without_api_url_is_500(gateway, make_settings):
    config = make_settings(backend="link", link_api_url="")
    async with gateway(config, _video) as (client, upstream):
        res = await client.get("/")
    assert res.status_code == 500
    assert "LINK_API_URL" in res.text
    assert upstream.requests == []


@pytest.mark.anyio
async def test_link_backend_without_api_url_refuses_unknown_paths(gateway, make_settings):
    config = make_settings(backend="link", link_api_url="")
    async with gateway(config, _video) as (client, upstream):
        res = await client.get("/favicon.ico")
    assert res.status_code == 500
    assert "LINK_API_URL" in res.text
    assert upstream.requests == []


# -- CORS --------------------------------------------------------------------


@pytest.mark.anyio
async def test_preflight_allows_any_origin_to_send_range(gateway, make_settings):
    async with gateway(make_settings(), _video) as (client, upstream):
        res = await client.options(
            "/stream/movie.txt",
            headers={
                "Origin": "https://player.example",
                "Access-Control-Request-Method": "GET",
                "Access-Control-Request-Headers": "range",
            },
        )

    assert res.status_code == 200
    assert res.headers["access-control-allow-origin"] == "*"
    assert "range" in res.headers["access-control-allow-headers"].lower()
    assert upstream.requests == []


@pytest.mark.anyio
async def test_cross_origin_stream_keeps_wildcard_origin(gateway, make_settings):
    async with gateway(make_settings(), _video) as (client, _):
        res = await client.get("/stream/movie.txt", headers={"Origin": "https://player.example"})

    assert res.status_code == 200
    assert res.headers["access-control-allow-origin"] == "*"
    assert "Content-Range" in res.headers["access-control-expose-headers"]
