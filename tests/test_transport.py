from __future__ import annotations

import asyncio
from typing import Any

import pytest

from mcp_servers.obsidian_cdp.config import CdpConfig
from mcp_servers.obsidian_cdp.errors import (
    CommandError,
    ConnectionClosedError,
    ConnectTimeoutError,
    NotConnectedError,
    RequestTimeoutError,
    TransportError,
)
from mcp_servers.obsidian_cdp.event_log import ConsoleEventLog
from mcp_servers.obsidian_cdp.transport import CdpTransport, TransportState
from tests._fake_cdp import FakeCdpPage, console_frame, fail, free_port, ok


def _transport(**overrides: Any) -> CdpTransport:
    return CdpTransport(CdpConfig(**overrides), ConsoleEventLog(capacity=50))


def test_transport_open_subscribes_then_roundtrips() -> None:
    async def _main() -> None:
        async with FakeCdpPage() as page:
            t = _transport()
            await t.open(page.ws_url)
            assert t.state is TransportState.READY
            assert t.console_enabled is True

            res = await t.send("Runtime.evaluate", {"expression": "1+1", "returnByValue": True})
            assert res["result"]["value"] == 2
            await t.close()
            assert t.state is TransportState.CLOSED

        assert page.methods() == ["Runtime.enable", "Runtime.evaluate"]
        ids = [m["id"] for m in page.received]
        assert ids == sorted(ids) and len(set(ids)) == len(ids)
        assert "params" not in page.received[0]

    asyncio.run(_main())


def test_transport_send_before_open_is_not_connected() -> None:
    async def _main() -> None:
        t = _transport()
        with pytest.raises(NotConnectedError):
            await t.send("Runtime.evaluate", {"expression": "1"})

    asyncio.run(_main())


def test_transport_concurrent_requests_settle_out_of_order() -> None:
    async def responder(msg: dict[str, Any]) -> dict[str, Any] | None:
        if msg["method"] == "Echo":
            n = int(msg["params"]["n"])
            # Later requests answer first.
            await asyncio.sleep(0.01 * (20 - n))
            return ok(msg, {"n": n})
        return ok(msg)

    async def _main() -> None:
        async with FakeCdpPage(responder) as page:
            t = _transport()
            await t.open(page.ws_url)
            results = await asyncio.gather(*[t.send("Echo", {"n": n}) for n in range(20)])
            assert [r["n"] for r in results] == list(range(20))
            assert t.pending_count == 0
            await t.close()

    asyncio.run(_main())


def test_transport_request_timeout_then_late_response_is_discarded() -> None:
    async def responder(msg: dict[str, Any]) -> dict[str, Any] | None:
        if msg["method"] == "Slow":
            await asyncio.sleep(0.3)
            return ok(msg, {"late": True})
        return ok(msg, {"fast": True})

    async def _main() -> None:
        async with FakeCdpPage(responder) as page:
            t = _transport(request_timeout=0.1)
            await t.open(page.ws_url)

            with pytest.raises(RequestTimeoutError) as ei:
                await t.send("Slow")
            assert ei.value.method == "Slow"
            assert "Slow" in str(ei.value) and "0.1s" in str(ei.value)
            assert t.pending_count == 0

            # The late "Slow" reply arrives while this request is pending and must not settle it.
            fast = asyncio.create_task(t.send("Fast", timeout=2.0))
            await asyncio.sleep(0.35)
            assert await fast == {"fast": True}
            assert t.state is TransportState.READY
            await t.close()

    asyncio.run(_main())


def test_transport_error_response_rejects_with_message() -> None:
    async def responder(msg: dict[str, Any]) -> dict[str, Any] | None:
        if msg["method"] == "Nope.method":
            return fail(msg, "'Nope.method' wasn't found", code=-32601)
        return ok(msg)

    async def _main() -> None:
        async with FakeCdpPage(responder) as page:
            t = _transport()
            await t.open(page.ws_url)
            with pytest.raises(CommandError) as ei:
                await t.send("Nope.method")
            assert str(ei.value) == "'Nope.method' wasn't found"
            assert ei.value.code == -32601
            assert ei.value.method == "Nope.method"
            await t.close()

    asyncio.run(_main())


def test_transport_close_from_remote_rejects_all_pending() -> None:
    async def responder(msg: dict[str, Any]) -> dict[str, Any] | None:
        if msg["method"] == "Hang":
            return None
        return ok(msg)

    closed: list[CdpTransport] = []

    async def _main() -> None:
        async with FakeCdpPage(responder) as page:
            t = CdpTransport(CdpConfig(), ConsoleEventLog(), on_close=closed.append)
            await t.open(page.ws_url)
            tasks = [asyncio.create_task(t.send("Hang", {"i": i})) for i in range(5)]
            while len(page.received) < 6:
                await asyncio.sleep(0.01)
            assert t.pending_count == 5

            await page.drop_clients()
            results = await asyncio.gather(*tasks, return_exceptions=True)
            assert all(isinstance(r, ConnectionClosedError) for r in results)
            assert t.pending_count == 0
            assert t.state is TransportState.CLOSED

            with pytest.raises(ConnectionClosedError):
                await t.send("Hang")

    asyncio.run(_main())
    assert len(closed) == 1


def test_transport_local_close_rejects_pending() -> None:
    async def responder(msg: dict[str, Any]) -> dict[str, Any] | None:
        return ok(msg) if msg["method"] == "Runtime.enable" else None

    async def _main() -> None:
        async with FakeCdpPage(responder) as page:
            t = _transport()
            await t.open(page.ws_url)
            task = asyncio.create_task(t.send("Hang"))
            await asyncio.sleep(0.05)
            await t.close()
            with pytest.raises(ConnectionClosedError, match="Client disconnected"):
                await task

    asyncio.run(_main())


def test_transport_subscription_failure_still_ready() -> None:
    async def responder(msg: dict[str, Any]) -> dict[str, Any] | None:
        if msg["method"] == "Runtime.enable":
            return fail(msg, "Runtime domain unavailable")
        return ok(msg, {"result": {"type": "string", "value": "ok"}})

    async def _main() -> None:
        async with FakeCdpPage(responder) as page:
            t = _transport()
            await t.open(page.ws_url)
            assert t.state is TransportState.READY
            assert t.console_enabled is False
            res = await t.send("Runtime.evaluate", {"expression": "'ok'"})
            assert res["result"]["value"] == "ok"
            await t.close()

    asyncio.run(_main())


def test_transport_subscription_timeout_still_ready() -> None:
    async def responder(msg: dict[str, Any]) -> dict[str, Any] | None:
        if msg["method"] == "Runtime.enable":
            return None
        return ok(msg, {"x": 1})

    async def _main() -> None:
        async with FakeCdpPage(responder) as page:
            t = _transport(connect_timeout=2.0, request_timeout=0.2)
            await t.open(page.ws_url)
            assert t.state is TransportState.READY
            assert t.console_enabled is False
            assert t.pending_count == 0
            assert await t.send("Echo") == {"x": 1}
            await t.close()

    asyncio.run(_main())


def test_transport_connect_timeout_aborts_socket() -> None:
    async def silent(msg: dict[str, Any]) -> dict[str, Any] | None:  # noqa: ARG001
        return None

    async def _main() -> None:
        async with FakeCdpPage(silent) as page:
            t = _transport(connect_timeout=0.2)
            with pytest.raises(ConnectTimeoutError) as ei:
                await t.open(page.ws_url)
            assert "0.2s" in str(ei.value)
            assert t.state is TransportState.CLOSED
            assert t.pending_count == 0

            with pytest.raises(TransportError):
                await t.open(page.ws_url)

    asyncio.run(_main())


def test_transport_connect_refused_is_transport_error() -> None:
    async def _main() -> None:
        t = _transport(connect_timeout=2.0)
        with pytest.raises(TransportError):
            await t.open(f"ws://127.0.0.1:{free_port()}/devtools/page/1")
        assert t.state is TransportState.CLOSED

    asyncio.run(_main())


def test_transport_collects_console_events_and_drops_garbage() -> None:
    async def _main() -> None:
        async with FakeCdpPage() as page:
            t = _transport()
            await t.open(page.ws_url)

            await page.push(console_frame("log", "hello", "world", timestamp=10.0))
            await page.push("{not json")
            await page.push({"method": "Runtime.consoleAPICalled", "params": {"type": "log"}})
            await page.push({"method": "Network.requestWillBeSent", "params": {}})
            await page.push(console_frame("error", "boom", timestamp=20.0))
            await page.push({"id": 99999, "result": {}})

            # Frames are processed in order, so this reply arrives after all events above.
            await t.send("Runtime.evaluate", {"expression": "1"})

            events = t.events.snapshot()
            assert [(e.type, e.text, e.timestamp) for e in events] == [
                ("log", "hello world", 10.0),
                ("error", "boom", 20.0),
            ]
            assert t.state is TransportState.READY
            await t.close()

    asyncio.run(_main())
