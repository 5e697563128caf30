from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class PendingRequest:
    request_id: int
    method: str
    future: asyncio.Future
    timer: asyncio.TimerHandle | None = None


class PendingRequestTable:
    """Outstanding requests keyed by correlation id.

    Every entry leaves the table exactly once: `resolve`, `reject`, `discard` and
    `reject_all` pop before touching the future, so whichever path runs first
    wins and the later ones see an unknown id and return False.
    """

    def __init__(self) -> None:
        self._entries: dict[int, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._entries

    def get(self, request_id: int) -> PendingRequest | None:
        return self._entries.get(request_id)

    def register(self, entry: PendingRequest) -> None:
        if entry.request_id in self._entries:
            raise ValueError(f"duplicate correlation id {entry.request_id}")
        self._entries[entry.request_id] = entry

    def _pop(self, request_id: int) -> PendingRequest | None:
        entry = self._entries.pop(request_id, None)
        if entry is not None and entry.timer is not None:
            entry.timer.cancel()
        return entry

    def resolve(self, request_id: int, result: Any) -> bool:
        entry = self._pop(request_id)
        if entry is None:
            return False
        if not entry.future.done():
            entry.future.set_result(result)
        return True

    def reject(self, request_id: int, exc: BaseException) -> bool:
        entry = self._pop(request_id)
        if entry is None:
            return False
        if not entry.future.done():
            entry.future.set_exception(exc)
        return True

    def discard(self, request_id: int) -> bool:
        """Drop an entry without settling it (caller gave up or never sent)."""
        return self._pop(request_id) is not None

    def reject_all(self, make_exc: Callable[[PendingRequest], BaseException]) -> int:
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            if entry.timer is not None:
                entry.timer.cancel()
            if not entry.future.done():
                entry.future.set_exception(make_exc(entry))
        return len(entries)


__all__ = ["PendingRequest", "PendingRequestTable"]
