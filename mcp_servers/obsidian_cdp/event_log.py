"""Bounded console event storage.

`ConsoleEventLog` is a fixed-capacity ring buffer: once full, each push
overwrites the oldest record. Reads return copies in arrival order.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

CONSOLE_EVENT_METHOD = "Runtime.consoleAPICalled"


def _arg_text(arg: Any) -> str:
    """Flatten one CDP RemoteObject argument to text."""
    if not isinstance(arg, dict):
        return ""
    value = arg.get("value")
    if isinstance(value, str):
        return value
    if value is not None:
        return json.dumps(value, ensure_ascii=False)
    desc = arg.get("description")
    if isinstance(desc, str):
        return desc
    return ""


@dataclass(frozen=True, slots=True)
class ConsoleEvent:
    type: str
    text: str
    timestamp: float

    @classmethod
    def from_params(cls, params: Any) -> ConsoleEvent:
        """Build from `Runtime.consoleAPICalled` params; raises ValueError when malformed."""
        if not isinstance(params, dict):
            raise ValueError("console event params must be an object")
        kind = params.get("type")
        args = params.get("args")
        ts = params.get("timestamp")
        if not isinstance(kind, str) or not isinstance(args, list):
            raise ValueError("console event is missing type/args")
        if isinstance(ts, bool) or not isinstance(ts, (int, float)):
            raise ValueError("console event is missing timestamp")
        return cls(type=kind, text=" ".join(_arg_text(a) for a in args), timestamp=float(ts))

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text, "timestamp": self.timestamp}


class ConsoleEventLog:
    def __init__(self, capacity: int = 1000) -> None:
        if int(capacity) < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = int(capacity)
        self._buffer: list[ConsoleEvent | None] = [None] * self.capacity
        self._head = 0  # next write position
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def push(self, event: ConsoleEvent) -> None:
        self._buffer[self._head] = event
        self._head = (self._head + 1) % self.capacity
        if self._size < self.capacity:
            self._size += 1

    def snapshot(self, since: float | None = None) -> list[ConsoleEvent]:
        """Point-in-time copy, oldest first; `since` keeps records with timestamp >= since."""
        start = 0 if self._size < self.capacity else self._head
        out: list[ConsoleEvent] = []
        for i in range(self._size):
            ev = self._buffer[(start + i) % self.capacity]
            if ev is None:
                continue
            if since is not None and ev.timestamp < since:
                continue
            out.append(ev)
        return out

    def clear(self) -> None:
        self._buffer = [None] * self.capacity
        self._head = 0
        self._size = 0


__all__ = ["CONSOLE_EVENT_METHOD", "ConsoleEvent", "ConsoleEventLog"]
