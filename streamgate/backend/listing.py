"""WebDAV directory listing: PROPFIND the store root and pull out entry names."""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from urllib.parse import unquote

import httpx

from streamgate.backend.base import UpstreamTarget
from streamgate.errors import TransportError, UpstreamError

logger = logging.getLogger("backend.listing")

_PROPFIND_BODY = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<d:propfind xmlns:d="DAV:"><d:prop><d:resourcetype/></d:prop></d:propfind>'
)


@dataclass(frozen=True)
class ListingEntry:
    name: str
    is_collection: bool = False


def _local_name(tag) -> str:
    # Comments and processing instructions have a callable tag.
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1].lower()


def parse_listing(xml_body: str) -> list[ListingEntry]:
    """Return one entry per ``href`` in a multistatus document, in document order.

    The collection's own entry (whose last segment decodes to nothing) is
    dropped; everything else is kept as-is, duplicates included.  Malformed
    XML gives an empty list.
    """
    try:
        root = ET.fromstring(xml_body)
    except ET.ParseError:
        logger.warning("Unparseable directory listing (%d chars)", len(xml_body))
        return []

    entries = []
    for elem in root.iter():
        if _local_name(elem.tag) != "href":
            continue
        href = (elem.text or "").strip()
        is_collection = href.endswith("/")
        href = href.rstrip("/")
        name = unquote(href.rsplit("/", 1)[-1])
        if not name.strip():
            continue
        entries.append(ListingEntry(name=name, is_collection=is_collection))
    return entries


async def fetch_listing(
    client: httpx.AsyncClient, target: UpstreamTarget, error_body_limit: int = 2048
) -> list[ListingEntry]:
    headers = {"Content-Type": "application/xml; charset=utf-8", **target.headers}
    try:
        resp = await client.request("PROPFIND", target.url, headers=headers, content=_PROPFIND_BODY)
    except httpx.TransportError as exc:
        logger.exception("PROPFIND %s failed", target.url)
        raise TransportError(f"Could not reach file store: {exc}") from exc

    if not resp.is_success:
        raise UpstreamError(
            f"Listing failed with HTTP {resp.status_code} (check credentials)\n"
            f"{resp.text[:error_body_limit]}",
            status_code=resp.status_code,
        )
    return parse_listing(resp.text)
