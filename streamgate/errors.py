"""Failure categories raised by resolvers and the relay.

Each carries the HTTP status it maps to; the application turns them into
plain-text responses (see ``streamgate.main``), so none of them reach the
server as an unhandled exception.
"""


class GatewayError(Exception):
    status_code = 500
    category = "Server Error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        return f"{self.category}: {self.message}"


class ConfigurationMissing(GatewayError):
    status_code = 500
    category = "Configuration Error"

    def __str__(self) -> str:
        # Surfaced verbatim; the message is already operator-facing.
        return self.message


class InvalidIdentifier(GatewayError):
    status_code = 400
    category = "Invalid Identifier"


class NotFound(GatewayError):
    status_code = 404
    category = "Not Found"


class UpstreamBlocked(GatewayError):
    status_code = 403
    category = "Upstream Blocked"


class UpstreamError(GatewayError):
    """Upstream answered with a failure; ``status_code`` mirrors it."""

    status_code = 502
    category = "Upstream Error"


class TransportError(GatewayError):
    status_code = 500
    category = "Transport Error"
