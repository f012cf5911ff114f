"""Reconciliation error types."""


class ParleyError(Exception):
    """Base error for transcript reconciliation failures."""


class ParseError(ParleyError):
    """Raised when a line or frame is not valid structured data."""


class ProtocolError(ParleyError):
    """Raised when the remote side signals an explicit error."""


class TransportError(ParleyError):
    """Raised when a connection or stream fails."""

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.detail = detail


class ConfigError(ParleyError):
    """Raised when a required startup parameter is missing or invalid."""
