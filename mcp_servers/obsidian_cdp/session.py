"""Session facade: the public entry point used by the tool layer.

`CdpSession` owns the target resolver, the console event log and (at most) one
live `CdpTransport`. Connection establishment is a shared resource: the first
caller starts it, concurrent callers await the same attempt, and every
`call`/`evaluate` connects lazily when needed.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any

from .config import CdpConfig
from .errors import (
    CdpError,
    ConnectionClosedError,
    EvaluationError,
    TargetNotFoundError,
    TransportError,
)
from .event_log import ConsoleEvent, ConsoleEventLog
from .js_helpers import HELPERS_SCRIPT
from .targets import CdpTarget, TargetResolver
from .transport import CdpTransport, TransportState

logger = logging.getLogger("mcp.obsidian.session")

EVALUATE_METHOD = "Runtime.evaluate"
CAPTURE_METHOD = "Page.captureScreenshot"
IMAGE_FORMATS = ("png", "jpeg", "webp")


class SessionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def _exception_description(details: Any) -> str:
    if not isinstance(details, dict):
        return str(details)
    exc = details.get("exception")
    if isinstance(exc, dict):
        for key in ("description", "value"):
            val = exc.get(key)
            if isinstance(val, str) and val:
                return val
    text = details.get("text")
    if isinstance(text, str) and text:
        return text
    return "Remote evaluation failed"


def _cancel_requested() -> bool:
    """True when the running task itself has a pending cancel (3.11+; False on 3.10)."""
    task = asyncio.current_task()
    cancelling = getattr(task, "cancelling", None)
    return bool(cancelling is not None and cancelling())


class CdpSession:
    def __init__(self, config: CdpConfig | None = None, *, resolver: TargetResolver | None = None) -> None:
        self.config = config or CdpConfig()
        self.resolver = resolver or TargetResolver(self.config)
        self.events = ConsoleEventLog(self.config.console_buffer_size)
        self._transport: CdpTransport | None = None
        self._connecting: asyncio.Task | None = None
        self._helpers_injected = False

    async def __aenter__(self) -> CdpSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ─────────────────────────────────────────────────────────────────────────
    # Connection
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        if self.is_connected():
            return SessionState.CONNECTED
        if self._connecting is not None and not self._connecting.done():
            return SessionState.CONNECTING
        return SessionState.DISCONNECTED

    def is_connected(self) -> bool:
        transport = self._transport
        return transport is not None and transport.state is TransportState.READY

    async def connect(self, ws_url: str | None = None) -> None:
        """Ensure a ready transport; joins an attempt already in flight."""
        if self.is_connected():
            return
        task = self._connecting
        if task is None or task.done():
            task = asyncio.create_task(self._establish(ws_url), name="obsidian-cdp-connect")
            self._connecting = task
            task.add_done_callback(self._connect_finished)
        try:
            # Shielded: one caller giving up must not abort the shared attempt.
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled() and not _cancel_requested():
                raise ConnectionClosedError("Connection attempt aborted by close()") from None
            raise

    def _connect_finished(self, task: asyncio.Task) -> None:
        if self._connecting is task:
            self._connecting = None
        if not task.cancelled():
            # Mark retrieved; waiters already got it via shield().
            task.exception()

    async def _establish(self, ws_url: str | None) -> None:
        url = ws_url
        if not url:
            target = await self.resolver.find_application_target()
            if target is None:
                raise TargetNotFoundError(self.config.debug_port)
            if not target.websocket_debugger_url:
                raise TransportError(
                    f"Target {target.id} has no webSocketDebuggerUrl (is another debugger attached?)"
                )
            url = target.websocket_debugger_url

        transport = CdpTransport(self.config, self.events, on_close=self._transport_closed)
        self._transport = transport
        try:
            await transport.open(url)
        except BaseException:
            if self._transport is transport:
                self._transport = None
            raise
        logger.info("session_connected url=%s", url)

    def _transport_closed(self, transport: CdpTransport) -> None:
        if self._transport is not transport:
            return
        self._transport = None
        self._helpers_injected = False
        logger.info("session_disconnected url=%s", transport.ws_url)

    async def close(self) -> None:
        task = self._connecting
        self._connecting = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                if not task.cancelled() or _cancel_requested():
                    raise
            except CdpError as exc:
                logger.debug("session_connect_aborted %s", exc)

        transport = self._transport
        self._transport = None
        self._helpers_injected = False
        if transport is not None:
            await transport.close()

    async def list_targets(self) -> list[CdpTarget]:
        return await self.resolver.list_targets()

    # ─────────────────────────────────────────────────────────────────────────
    # Requests
    # ─────────────────────────────────────────────────────────────────────────

    async def call(self, method: str, params: dict[str, Any] | None = None, *, timeout: float | None = None) -> Any:
        await self.connect()
        transport = self._transport
        if transport is None:
            raise ConnectionClosedError()
        return await transport.send(method, params, timeout=timeout)

    async def evaluate(self, expression: str, await_promise: bool = False) -> Any:
        """Evaluate `expression` in the page and return its value by value."""
        result = await self.call(
            EVALUATE_METHOD,
            {"expression": expression, "returnByValue": True, "awaitPromise": bool(await_promise)},
        )
        if not isinstance(result, dict):
            raise TransportError(f"Malformed {EVALUATE_METHOD} response")
        details = result.get("exceptionDetails")
        if details:
            raise EvaluationError(_exception_description(details))
        remote = result.get("result")
        if not isinstance(remote, dict):
            return None
        return remote.get("value")

    async def capture_image(self, fmt: str = "png", quality: int | None = None) -> str:
        """Screenshot of the page as a base64 string."""
        if fmt not in IMAGE_FORMATS:
            raise ValueError(f"Unsupported image format: {fmt} (allowed: {', '.join(IMAGE_FORMATS)})")
        params: dict[str, Any] = {"format": fmt}
        if quality is not None:
            params["quality"] = int(quality)
        result = await self.call(CAPTURE_METHOD, params)
        data = result.get("data") if isinstance(result, dict) else None
        if not isinstance(data, str):
            raise TransportError(f"Malformed {CAPTURE_METHOD} response")
        return data

    async def ensure_helpers(self) -> None:
        """Install `window.__mcpHelpers` once per connection."""
        if self._helpers_injected and self.is_connected():
            return
        await self.evaluate(HELPERS_SCRIPT)
        self._helpers_injected = True

    # ─────────────────────────────────────────────────────────────────────────
    # Console events
    # ─────────────────────────────────────────────────────────────────────────

    def recent_events(self, since: float | None = None) -> list[ConsoleEvent]:
        return self.events.snapshot(since)

    def clear_events(self) -> None:
        self.events.clear()


__all__ = ["CAPTURE_METHOD", "EVALUATE_METHOD", "CdpSession", "SessionState"]
