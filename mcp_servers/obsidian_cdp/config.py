from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_MAX_PAYLOAD = 100 * 1024 * 1024


def _env_float(name: str, default: float, *, min_v: float, max_v: float) -> float:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return max(min_v, min(value, max_v))


def _env_int(name: str, default: int, *, min_v: int, max_v: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(min_v, min(value, max_v))


@dataclass
class CdpConfig:
    """Options for one bridge session. Timeouts are in seconds."""

    host: str = "localhost"
    debug_port: int = 9222
    # Bounds the whole handshake including Runtime.enable. A hung subscription only
    # degrades to "console disabled" when request_timeout < connect_timeout; with the
    # defaults it surfaces as ConnectTimeoutError.
    connect_timeout: float = 10.0
    request_timeout: float = 30.0
    fetch_timeout: float = 5.0
    console_buffer_size: int = 1000
    target_marker: str = "obsidian"
    max_payload: int = DEFAULT_MAX_PAYLOAD

    @property
    def discovery_url(self) -> str:
        return f"http://{self.host}:{int(self.debug_port)}/json"

    @classmethod
    def from_env(cls) -> CdpConfig:
        host = (os.environ.get("OBSIDIAN_DEBUG_HOST") or "").strip() or "localhost"
        marker = (os.environ.get("OBSIDIAN_CDP_TARGET_MARKER") or "").strip() or "obsidian"
        return cls(
            host=host,
            debug_port=_env_int("OBSIDIAN_DEBUG_PORT", 9222, min_v=1, max_v=65535),
            connect_timeout=_env_float("OBSIDIAN_CDP_CONNECT_TIMEOUT", 10.0, min_v=0.1, max_v=300.0),
            request_timeout=_env_float("OBSIDIAN_CDP_REQUEST_TIMEOUT", 30.0, min_v=0.1, max_v=600.0),
            fetch_timeout=_env_float("OBSIDIAN_CDP_FETCH_TIMEOUT", 5.0, min_v=0.1, max_v=60.0),
            console_buffer_size=_env_int("OBSIDIAN_CDP_CONSOLE_BUFFER", 1000, min_v=1, max_v=100_000),
            target_marker=marker,
        )
