"""Single-socket CDP transport.

One `CdpTransport` owns one websocket for its whole life (IDLE -> CONNECTING ->
READY -> CLOSED, never back). Requests are multiplexed over it by correlation
id; a single reader task demultiplexes inbound frames into the pending request
table (responses) or the console event log (notifications).
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import itertools
import json
import logging
from collections.abc import Callable
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .config import CdpConfig
from .errors import (
    CdpError,
    CommandError,
    ConnectionClosedError,
    ConnectTimeoutError,
    NotConnectedError,
    RequestTimeoutError,
    TransportError,
)
from .event_log import CONSOLE_EVENT_METHOD, ConsoleEvent, ConsoleEventLog
from .pending import PendingRequest, PendingRequestTable

logger = logging.getLogger("mcp.obsidian.transport")

CONSOLE_ENABLE_METHOD = "Runtime.enable"


class TransportState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    READY = "ready"
    CLOSED = "closed"


class CdpTransport:
    def __init__(
        self,
        config: CdpConfig,
        events: ConsoleEventLog,
        *,
        on_close: Callable[[CdpTransport], None] | None = None,
    ) -> None:
        self.config = config
        self.events = events
        self.state = TransportState.IDLE
        self.ws_url: str | None = None
        self.console_enabled = False
        self._on_close = on_close
        self._ws: Any | None = None
        self._reader: asyncio.Task | None = None
        self._ids = itertools.count(1)
        self._pending = PendingRequestTable()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    async def open(self, ws_url: str) -> None:
        if self.state is not TransportState.IDLE:
            raise TransportError(f"CDP transport cannot be reopened (state={self.state.value})")
        self.state = TransportState.CONNECTING
        self.ws_url = ws_url
        timeout = float(self.config.connect_timeout)

        try:
            await asyncio.wait_for(self._handshake(ws_url), timeout=timeout)
        except asyncio.TimeoutError as exc:
            self.abort()
            self._mark_closed("connect timed out")
            raise ConnectTimeoutError(ws_url, timeout) from exc
        except CdpError:
            self.abort()
            self._mark_closed("connect failed")
            raise
        except (OSError, WebSocketException) as exc:
            self.abort()
            self._mark_closed(f"connect failed: {exc}")
            raise TransportError(f"WebSocket connection to {ws_url} failed: {exc}") from exc
        except asyncio.CancelledError:
            self.abort()
            self._mark_closed("connect cancelled")
            raise

        if self.state is not TransportState.CONNECTING:
            raise ConnectionClosedError("WebSocket connection closed during connect")
        self.state = TransportState.READY
        logger.info("cdp_connected url=%s console=%s", ws_url, self.console_enabled)

    async def _handshake(self, ws_url: str) -> None:
        self._ws = await websockets.connect(
            ws_url,
            max_size=int(self.config.max_payload),
            ping_interval=None,
            open_timeout=None,
        )
        self._reader = asyncio.create_task(self._read_loop(self._ws), name="obsidian-cdp-reader")

        # Console capture is best-effort: a failed subscription must not block calls.
        try:
            await self.send(CONSOLE_ENABLE_METHOD)
            self.console_enabled = True
        except (CommandError, RequestTimeoutError) as exc:
            logger.warning("console_capture_disabled reason=%s", exc)

    async def close(self) -> None:
        """Graceful close; pending requests fail with ConnectionClosedError."""
        ws = self._ws
        self._mark_closed("Client disconnected")
        if ws is not None:
            try:
                await ws.close()
            except (OSError, WebSocketException) as exc:
                logger.debug("cdp_close_error %s", exc)
                self.abort()
        reader = self._reader
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

    def abort(self) -> None:
        """Hard break of the underlying socket (no close handshake)."""
        ws = self._ws
        if ws is None:
            return
        transport = getattr(ws, "transport", None)
        if transport is not None:
            transport.abort()

    # ─────────────────────────────────────────────────────────────────────────
    # Requests
    # ─────────────────────────────────────────────────────────────────────────

    async def send(self, method: str, params: dict[str, Any] | None = None, *, timeout: float | None = None) -> Any:
        if self.state is TransportState.IDLE:
            raise NotConnectedError()
        if self.state is TransportState.CLOSED or self._ws is None:
            raise ConnectionClosedError()
        if not isinstance(method, str) or not method.strip():
            raise ValueError("CDP method is required")

        ws = self._ws
        loop = asyncio.get_running_loop()
        request_timeout = float(self.config.request_timeout if timeout is None else timeout)
        request_id = next(self._ids)
        future = loop.create_future()
        timer = loop.call_later(request_timeout, self._expire, request_id, method, request_timeout)
        self._pending.register(PendingRequest(request_id, method, future, timer))

        frame: dict[str, Any] = {"id": request_id, "method": method}
        if params:
            frame["params"] = params

        failure: CdpError | None = None
        try:
            await ws.send(json.dumps(frame, ensure_ascii=False))
        except ConnectionClosed as exc:
            failure = ConnectionClosedError(f"WebSocket connection closed while sending {method}")
            failure.__cause__ = exc
        except OSError as exc:
            failure = TransportError(f"CDP send failed for {method}: {exc}")
            failure.__cause__ = exc
        if failure is not None:
            # Closure may already have settled the future; the first failure wins.
            self._pending.reject(request_id, failure)

        try:
            return await future
        finally:
            # No-op when already settled; drops the entry if this caller was cancelled.
            self._pending.discard(request_id)

    def _expire(self, request_id: int, method: str, timeout: float) -> None:
        if self._pending.reject(request_id, RequestTimeoutError(method, timeout)):
            logger.info("cdp_request_timeout id=%d method=%s", request_id, method)

    # ─────────────────────────────────────────────────────────────────────────
    # Inbound
    # ─────────────────────────────────────────────────────────────────────────

    async def _read_loop(self, ws: Any) -> None:
        reason = "WebSocket connection closed"
        try:
            async for raw in ws:
                self._dispatch(raw)
        except ConnectionClosed as exc:
            reason = f"WebSocket connection closed ({exc})"
        except OSError as exc:
            reason = f"WebSocket error: {exc}"
            logger.warning("cdp_socket_error %s", exc)
        except Exception as exc:
            reason = f"CDP reader failed: {exc}"
            logger.exception("cdp_reader_failed")
        finally:
            self._mark_closed(reason)

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            msg = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("cdp_frame_dropped invalid json")
            return
        if not isinstance(msg, dict):
            return

        method = msg.get("method")
        if "id" not in msg:
            if method == CONSOLE_EVENT_METHOD:
                self._ingest_console(msg.get("params"))
            return

        request_id = msg.get("id")
        if isinstance(request_id, bool) or not isinstance(request_id, int):
            return
        err = msg.get("error")
        if err is not None:
            self._pending.reject(request_id, self._command_error(request_id, err))
            return
        # Late or unknown ids (timed out, already settled) are ignored.
        self._pending.resolve(request_id, msg.get("result", {}))

    def _command_error(self, request_id: int, err: Any) -> CommandError:
        entry = self._pending.get(request_id)
        method = entry.method if entry is not None else ""
        if isinstance(err, dict):
            message = str(err.get("message") or "CDP command failed")
            code = err.get("code") if isinstance(err.get("code"), int) else None
            return CommandError(method, message, code)
        return CommandError(method, str(err))

    def _ingest_console(self, params: Any) -> None:
        try:
            event = ConsoleEvent.from_params(params)
        except ValueError as exc:
            logger.debug("console_event_dropped %s", exc)
            return
        self.events.push(event)

    def _mark_closed(self, reason: str) -> None:
        if self.state is TransportState.CLOSED:
            return
        previous = self.state
        self.state = TransportState.CLOSED
        failed = self._pending.reject_all(lambda _entry: ConnectionClosedError(reason))
        if previous is TransportState.READY:
            logger.info("cdp_disconnected reason=%s failed_pending=%d", reason, failed)
        cb = self._on_close
        self._on_close = None
        if cb is not None:
            cb(self)


__all__ = ["CONSOLE_ENABLE_METHOD", "CdpTransport", "TransportState"]
