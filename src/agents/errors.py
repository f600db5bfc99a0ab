"""Domain-specific exceptions for bridge operations.

These exceptions are safe to import from API layers without pulling in the
websocket or calendar client libraries.
"""

from __future__ import annotations


class BridgeError(Exception):
    status_code: int = 500
    default_detail: str = "Bridge error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class ConfigurationError(BridgeError):
    default_detail = "Required configuration is missing."


class AdapterUnavailableError(BridgeError):
    status_code = 503
    default_detail = "Speech-AI session could not be established."


class MessageParseError(BridgeError):
    status_code = 400
    default_detail = "Malformed message."


class BookingError(BridgeError):
    status_code = 502
    default_detail = "Booking could not be created."
