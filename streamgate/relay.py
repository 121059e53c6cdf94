"""Range-aware relay from an upstream file URL to the player.

The inbound Range header goes upstream untouched and the upstream status
(200 or 206) comes back untouched, so seeking works exactly as well as the
upstream supports it.  The body is piped through chunk by chunk: nothing is
buffered beyond the chunk in flight, and the upstream connection is closed as
soon as the client goes away.
"""

import logging
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass
from urllib.parse import quote, unquote

import httpx

from streamgate.backend.base import UpstreamTarget
from streamgate.errors import TransportError

logger = logging.getLogger("relay")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Range",
    "Access-Control-Expose-Headers": "Content-Range, Content-Length",
}

# Connection-level headers that describe the upstream hop, not the payload.
_HOP_BY_HOP = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "proxy-connection",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})

# Headers the relay always rewrites.
_OVERRIDDEN = frozenset({
    "content-disposition",
    *(name.lower() for name in CORS_HEADERS),
})

_FILENAME_STAR = re.compile(r"filename\*\s*=\s*([^']*)'[^']*'([^;]+)", re.IGNORECASE)
_FILENAME = re.compile(r'filename\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^;]+))', re.IGNORECASE)
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


@dataclass
class RelayOutcome:
    """Status, headers and a single-pass body to hand back to the client.

    ``aclose()`` releases the upstream connection whether or not the body
    was ever iterated; calling it more than once is harmless.
    """

    status: int
    headers: dict[str, str]
    body: AsyncIterator[bytes]
    upstream: httpx.Response | None = None

    async def aclose(self):
        if self.upstream is not None:
            await self.upstream.aclose()


def filename_from_disposition(value: str | None) -> str | None:
    """Pull a file name out of an upstream Content-Disposition header."""
    if not value:
        return None
    m = _FILENAME_STAR.search(value)
    if m:
        charset = m.group(1).strip() or "utf-8"
        try:
            name = unquote(m.group(2).strip(), encoding=charset)
        except LookupError:
            name = unquote(m.group(2).strip())
        if name:
            return name
    m = _FILENAME.search(value)
    if m:
        if m.group(1) is not None:
            name = re.sub(r"\\(.)", r"\1", m.group(1))
        else:
            name = m.group(2).strip()
        return name or None
    return None


def inline_disposition(filename: str) -> str:
    """Build ``inline; filename="..."``, adding RFC 5987 ``filename*`` for non-ASCII names."""
    filename = _CONTROL_CHARS.sub("", filename)
    escaped = filename.replace("\\", "\\\\").replace('"', '\\"')
    if escaped.isascii():
        return f'inline; filename="{escaped}"'
    fallback = escaped.encode("ascii", "replace").decode("ascii")
    return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


async def _once(data: bytes) -> AsyncIterator[bytes]:
    yield data


async def _stream_body(resp: httpx.Response) -> AsyncIterator[bytes]:
    # Raw bytes: Content-Encoding/Content-Length are passed through as sent.
    try:
        async for chunk in resp.aiter_raw():
            yield chunk
    finally:
        await resp.aclose()


async def _read_bounded(resp: httpx.Response, limit: int) -> str:
    buf = bytearray()
    try:
        async for chunk in resp.aiter_bytes():
            buf.extend(chunk)
            if len(buf) >= limit:
                break
    except httpx.HTTPError:
        logger.debug("Could not read upstream error body", exc_info=True)
    finally:
        await resp.aclose()
    return bytes(buf[:limit]).decode(resp.encoding or "utf-8", errors="replace")


class RelayEngine:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        media_type: str = "video/mp4",
        default_filename: str = "video.mp4",
        error_body_limit: int = 2048,
    ):
        self._client = client
        self._media_type = media_type
        self._default_filename = default_filename
        self._error_body_limit = error_body_limit

    async def relay(
        self, target: UpstreamTarget, range_header: str | None = None, method: str = "GET"
    ) -> RelayOutcome:
        headers = dict(target.headers)
        if range_header:
            headers["Range"] = range_header

        request = self._client.build_request(method, target.url, headers=headers)
        try:
            resp = await self._client.send(request, stream=True)
        except httpx.TransportError as exc:
            logger.exception("Upstream request failed (%s)", request.url.host)
            raise TransportError(f"Could not reach upstream: {exc}") from exc

        if not resp.is_success:
            detail = await _read_bounded(resp, self._error_body_limit)
            logger.warning("Upstream returned %s for %s", resp.status_code, request.url.path)
            text = f"Upstream error: {resp.status_code} (check the file name or credentials)"
            if detail.strip():
                text += "\n" + detail
            return RelayOutcome(
                status=resp.status_code,
                headers={"Content-Type": "text/plain; charset=utf-8", **CORS_HEADERS},
                body=_once(text.encode("utf-8")),
            )

        return RelayOutcome(
            status=resp.status_code,
            headers=self._response_headers(resp, target),
            body=_stream_body(resp),
            upstream=resp,
        )

    def _response_headers(self, resp: httpx.Response, target: UpstreamTarget) -> dict[str, str]:
        out = {
            key: value
            for key, value in resp.headers.items()
            if key.lower() not in _HOP_BY_HOP and key.lower() not in _OVERRIDDEN
        }
        if self._media_type:
            out = {k: v for k, v in out.items() if k.lower() != "content-type"}
            out["Content-Type"] = self._media_type

        filename = (
            target.filename
            or filename_from_disposition(resp.headers.get("content-disposition"))
            or self._default_filename
        )
        out["Content-Disposition"] = inline_disposition(filename)
        out.update(CORS_HEADERS)
        return out
