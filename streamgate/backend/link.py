"""Share-link resolver.

A pasted share link is exchanged for a short-lived direct download URL by
POSTing the link's file id to the resolution API.  The API may be fronted by
an anti-bot layer that answers with an HTML challenge page; that case is told
apart from a genuine "not found" by the response Content-Type alone, without
trying to decode the body.
"""

import logging

import httpx

from streamgate.backend.base import Resolver, UpstreamTarget
from streamgate.errors import (
    ConfigurationMissing,
    InvalidIdentifier,
    NotFound,
    TransportError,
    UpstreamBlocked,
    UpstreamError,
)
from streamgate.profiles import BROWSER_PROFILES, browser_headers

logger = logging.getLogger("backend.link")


def _is_json(content_type: str) -> bool:
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def extract_file_id(identifier: str, marker: str) -> str:
    """Return everything after the first ``marker`` in ``identifier``."""
    if not marker or marker not in identifier:
        raise InvalidIdentifier(f"Not a share link (expected '{marker}' in the link)")
    file_id = identifier.split(marker, 1)[1].strip()
    if not file_id:
        raise InvalidIdentifier("Share link has no file id")
    return file_id


def _error_message(error) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or "Link API reported an error")
    return str(error) or "Link API reported an error"


class LinkResolver(Resolver):
    name = "link"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_url: str,
        marker: str,
        profile: str = "none",
        forward_user_agent: bool = True,
    ):
        self._client = client
        self._api_url = api_url
        self._marker = marker
        self._profile = profile
        self._forward_user_agent = forward_user_agent

    def ensure_configured(self) -> None:
        if not self._api_url:
            raise ConfigurationMissing("Error: Missing LINK_API_URL in settings")
        if self._profile not in BROWSER_PROFILES:
            raise ConfigurationMissing(
                f"Error: Unknown BROWSER_PROFILE '{self._profile}' "
                f"(choose from {', '.join(sorted(BROWSER_PROFILES))})"
            )

    async def resolve(self, identifier: str) -> UpstreamTarget:
        self.ensure_configured()
        file_id = extract_file_id(identifier, self._marker)
        identity = browser_headers(self._profile, self._api_url)

        try:
            resp = await self._client.post(self._api_url, json={"id": file_id}, headers=identity)
        except httpx.TransportError as exc:
            logger.exception("Link API unreachable (%s)", self._api_url)
            raise TransportError(f"Could not reach link API: {exc}") from exc

        content_type = resp.headers.get("content-type", "")
        if not _is_json(content_type):
            logger.warning(
                "Link API answered %s with %r instead of JSON; treating as a bot block",
                resp.status_code, content_type,
            )
            raise UpstreamBlocked(
                f"Link API returned {content_type or 'no content type'} "
                f"(HTTP {resp.status_code}) instead of JSON"
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamError("Link API returned malformed JSON") from exc
        if not isinstance(data, dict):
            raise UpstreamError("Link API returned an unexpected JSON document")

        if data.get("error"):
            message = _error_message(data["error"])
            logger.warning("Link API error for id %s: %s", file_id, message)
            raise NotFound(message)

        url = data.get("url")
        if not isinstance(url, str) or not url.startswith(("http://", "https://")):
            raise NotFound(f"Link API returned no download URL for id {file_id}")

        headers = {}
        if self._forward_user_agent and "User-Agent" in identity:
            headers["User-Agent"] = identity["User-Agent"]
        filename = data.get("name") or data.get("filename")
        return UpstreamTarget(
            url=url,
            headers=headers,
            filename=filename if isinstance(filename, str) and filename else None,
        )
