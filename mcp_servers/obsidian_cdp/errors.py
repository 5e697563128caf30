"""Error taxonomy for the Obsidian CDP bridge.

Every failure on the request path surfaces as a subclass of `CdpError` with a
human-readable message; callers (the tool layer) report `str(exc)` as-is.
"""

from __future__ import annotations


class CdpError(Exception):
    """Base class for all bridge errors."""


class TransportError(CdpError):
    """Generic socket/HTTP level failure."""


class DiscoveryTimeoutError(CdpError):
    def __init__(self, port: int, timeout: float) -> None:
        self.port = int(port)
        self.timeout = float(timeout)
        super().__init__(f"Connection to Obsidian debug port {self.port} timed out after {self.timeout:g}s")


class TargetNotFoundError(CdpError):
    def __init__(self, port: int) -> None:
        self.port = int(port)
        super().__init__(
            f"Obsidian not found. Make sure Obsidian is running with --remote-debugging-port={self.port}"
        )


class ConnectTimeoutError(CdpError):
    def __init__(self, ws_url: str, timeout: float) -> None:
        self.ws_url = ws_url
        self.timeout = float(timeout)
        super().__init__(f"WebSocket connection to Obsidian timed out after {self.timeout:g}s ({ws_url})")


class NotConnectedError(CdpError):
    def __init__(self, message: str = "CDP transport is not connected") -> None:
        super().__init__(message)


class ConnectionClosedError(CdpError):
    def __init__(self, reason: str = "WebSocket connection closed") -> None:
        self.reason = reason
        super().__init__(reason)


class RequestTimeoutError(CdpError):
    def __init__(self, method: str, timeout: float) -> None:
        self.method = method
        self.timeout = float(timeout)
        super().__init__(f"Request {method} timed out after {self.timeout:g}s")


class CommandError(CdpError):
    """The endpoint answered a command with an `error` object."""

    def __init__(self, method: str, message: str, code: int | None = None) -> None:
        self.method = method
        self.code = code
        super().__init__(message)


class EvaluationError(CdpError):
    """A remote expression threw; carries the remote description."""

    def __init__(self, description: str) -> None:
        self.description = description
        super().__init__(description)


__all__ = [
    "CdpError",
    "CommandError",
    "ConnectTimeoutError",
    "ConnectionClosedError",
    "DiscoveryTimeoutError",
    "EvaluationError",
    "NotConnectedError",
    "RequestTimeoutError",
    "TargetNotFoundError",
    "TransportError",
]
