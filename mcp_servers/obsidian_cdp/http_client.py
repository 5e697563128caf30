from __future__ import annotations

import json
from typing import Any
from urllib.error import URLError
from urllib.request import Request, urlopen

from .errors import TransportError


class HttpTimeout(Exception):
    """Raised by `http_get_json` when the socket timeout expires."""


def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, TimeoutError):
        return True
    reason = getattr(exc, "reason", None)
    return isinstance(reason, TimeoutError) or "timed out" in str(reason or "").lower()


def http_get_json(url: str, *, timeout: float) -> Any:
    """Fetch and decode a JSON document with an explicit socket timeout (blocking)."""
    req = Request(url, headers={"User-Agent": "obsidian-cdp-mcp/1.0", "Cache-Control": "no-store"})
    try:
        with urlopen(req, timeout=max(0.05, float(timeout))) as resp:  # noqa: S310
            raw = resp.read()
    except (TimeoutError, URLError) as exc:
        if _is_timeout(exc):
            raise HttpTimeout(str(exc)) from exc
        raise TransportError(f"GET {url} failed: {exc}") from exc
    except OSError as exc:
        raise TransportError(f"GET {url} failed: {exc}") from exc

    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise TransportError(f"GET {url} returned invalid JSON: {exc}") from exc


__all__ = ["HttpTimeout", "http_get_json"]
