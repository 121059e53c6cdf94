"""Direct resolver: a relative path inside the WebDAV store, fetched with Basic-Auth."""

import base64
import logging
from urllib.parse import quote

from streamgate.backend.base import Resolver, UpstreamTarget
from streamgate.config import Credentials
from streamgate.errors import ConfigurationMissing, InvalidIdentifier

logger = logging.getLogger("backend.direct")

MISSING_CREDENTIALS_MESSAGE = "Error: Missing WEBDAV_USER/WEBDAV_PASS in settings"


def encode_path(path: str) -> str:
    """Percent-encode each ``/``-separated segment on its own and rejoin with ``/``."""
    return "/".join(quote(segment, safe="") for segment in path.split("/"))


def basic_auth_header(credentials: Credentials) -> str:
    raw = f"{credentials.user}:{credentials.password}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


class DirectResolver(Resolver):
    name = "direct"

    def __init__(self, base_url: str, credentials: Credentials | None):
        self._base_url = base_url.rstrip("/")
        self._auth = basic_auth_header(credentials) if credentials else None

    def ensure_configured(self) -> None:
        if self._auth is None:
            raise ConfigurationMissing(MISSING_CREDENTIALS_MESSAGE)

    async def resolve(self, identifier: str) -> UpstreamTarget:
        self.ensure_configured()
        path = identifier.strip("/")
        if not path.strip():
            raise InvalidIdentifier("Empty file path")

        # No request is made here: a bad path only shows up as the
        # upstream's 404 once the relay fetches it.
        url = f"{self._base_url}/{encode_path(path)}"
        logger.debug("Resolved %r -> %s", path, url)
        return UpstreamTarget(
            url=url,
            headers={"Authorization": self._auth},
            filename=path.rsplit("/", 1)[-1],
        )

    def listing_target(self) -> UpstreamTarget:
        """Target for a Depth-1 PROPFIND against the store root."""
        self.ensure_configured()
        return UpstreamTarget(
            url=self._base_url + "/",
            headers={"Authorization": self._auth, "Depth": "1"},
        )
