"""Obsidian remote-debugging bridge core.

Stable import surface (re-exports):
- CdpSession: public facade (connect / call / evaluate / capture_image / console events)
- CdpConfig: options record
- CdpTransport, TargetResolver, ConsoleEventLog: building blocks
- errors: CdpError and its subclasses
"""

from __future__ import annotations

from .config import CdpConfig
from .errors import (
    CdpError,
    CommandError,
    ConnectionClosedError,
    ConnectTimeoutError,
    DiscoveryTimeoutError,
    EvaluationError,
    NotConnectedError,
    RequestTimeoutError,
    TargetNotFoundError,
    TransportError,
)
from .event_log import ConsoleEvent, ConsoleEventLog
from .session import CdpSession, SessionState
from .targets import CdpTarget, TargetResolver
from .transport import CdpTransport, TransportState

__all__ = [
    "CdpConfig",
    "CdpError",
    "CdpSession",
    "CdpTarget",
    "CdpTransport",
    "CommandError",
    "ConnectTimeoutError",
    "ConnectionClosedError",
    "ConsoleEvent",
    "ConsoleEventLog",
    "DiscoveryTimeoutError",
    "EvaluationError",
    "NotConnectedError",
    "RequestTimeoutError",
    "SessionState",
    "TargetNotFoundError",
    "TargetResolver",
    "TransportError",
    "TransportState",
]
