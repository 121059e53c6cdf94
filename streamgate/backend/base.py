"""Resolver interface shared by the direct (WebDAV) and share-link backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import httpx

from streamgate.config import Settings


@dataclass(frozen=True)
class UpstreamTarget:
    """Where to fetch a file from, and with which headers.

    Built fresh for every request; ``filename`` is the display name the
    relay puts in Content-Disposition when known.
    """

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    filename: str | None = None


class Resolver(ABC):
    """Turns a client-supplied identifier into an ``UpstreamTarget``."""

    name = "resolver"

    @abstractmethod
    def ensure_configured(self) -> None:
        """Raise ConfigurationMissing if the backend cannot serve any request."""

    @abstractmethod
    async def resolve(self, identifier: str) -> UpstreamTarget:
        ...


def build_resolver(config: Settings, client: httpx.AsyncClient) -> Resolver:
    """Pick the resolver strategy named by ``config.backend``."""
    # Imported here so each backend module can import UpstreamTarget from us.
    from streamgate.backend.direct import DirectResolver
    from streamgate.backend.link import LinkResolver

    if config.backend == "link":
        return LinkResolver(
            client,
            api_url=config.link_api_url,
            marker=config.link_marker,
            profile=config.browser_profile,
            forward_user_agent=config.forward_user_agent,
        )
    return DirectResolver(config.webdav_url, config.credentials)
