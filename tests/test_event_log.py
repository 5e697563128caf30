from __future__ import annotations

import pytest

from mcp_servers.obsidian_cdp.event_log import ConsoleEvent, ConsoleEventLog


def _ev(n: int, kind: str = "log") -> ConsoleEvent:
    return ConsoleEvent(type=kind, text=f"msg {n}", timestamp=float(n))


def test_event_log_overwrites_oldest_when_full() -> None:
    log = ConsoleEventLog(capacity=3)
    for n in range(1, 5):
        log.push(_ev(n))

    assert len(log) == 3
    texts = [e.text for e in log.snapshot()]
    assert texts == ["msg 2", "msg 3", "msg 4"]


def test_event_log_keeps_arrival_order_across_many_wraps() -> None:
    log = ConsoleEventLog(capacity=4)
    for n in range(1, 12):
        log.push(_ev(n))
    assert [e.timestamp for e in log.snapshot()] == [8.0, 9.0, 10.0, 11.0]


def test_event_log_since_filter_is_inclusive() -> None:
    log = ConsoleEventLog(capacity=10)
    for n in (10, 20, 30):
        log.push(_ev(n))

    assert [e.timestamp for e in log.snapshot(since=20)] == [20.0, 30.0]
    assert len(log.snapshot(since=0)) == 3
    assert len(log.snapshot(since=-5)) == 3
    assert log.snapshot(since=31) == []


def test_event_log_snapshot_is_a_copy() -> None:
    log = ConsoleEventLog(capacity=2)
    log.push(_ev(1))
    snap = log.snapshot()
    log.push(_ev(2))
    assert len(snap) == 1


def test_event_log_clear() -> None:
    log = ConsoleEventLog(capacity=2)
    log.push(_ev(1))
    log.push(_ev(2))
    log.clear()
    assert len(log) == 0
    assert log.snapshot() == []
    log.push(_ev(3))
    assert [e.text for e in log.snapshot()] == ["msg 3"]


def test_event_log_rejects_zero_capacity() -> None:
    with pytest.raises(ValueError):
        ConsoleEventLog(capacity=0)


def test_console_event_flattens_args() -> None:
    ev = ConsoleEvent.from_params(
        {
            "type": "warn",
            "args": [
                {"type": "string", "value": "count:"},
                {"type": "number", "value": 3},
                {"type": "object", "description": "Array(2)"},
                {"type": "undefined"},
            ],
            "timestamp": 1700000000123.5,
        }
    )
    assert ev.type == "warn"
    assert ev.text == "count: 3 Array(2) "
    assert ev.timestamp == 1700000000123.5
    assert ev.to_dict() == {"type": "warn", "text": "count: 3 Array(2) ", "timestamp": 1700000000123.5}


@pytest.mark.parametrize(
    "params",
    [
        None,
        "log",
        {"type": "log", "timestamp": 1.0},
        {"type": "log", "args": "nope", "timestamp": 1.0},
        {"type": "log", "args": []},
        {"args": [], "timestamp": 1.0},
    ],
)
def test_console_event_rejects_malformed_params(params: object) -> None:
    with pytest.raises(ValueError):
        ConsoleEvent.from_params(params)
