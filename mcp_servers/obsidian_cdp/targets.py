from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from .config import CdpConfig
from .errors import DiscoveryTimeoutError, TransportError
from .http_client import HttpTimeout, http_get_json

logger = logging.getLogger("mcp.obsidian.targets")


@dataclass(frozen=True, slots=True)
class CdpTarget:
    id: str
    title: str
    type: str
    url: str
    websocket_debugger_url: str

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> CdpTarget:
        return cls(
            id=str(data.get("id") or ""),
            title=str(data.get("title") or ""),
            type=str(data.get("type") or ""),
            url=str(data.get("url") or ""),
            websocket_debugger_url=str(data.get("webSocketDebuggerUrl") or ""),
        )

    def matches(self, marker: str) -> bool:
        """Page targets whose URL or title mentions `marker` (case-insensitive)."""
        if self.type != "page":
            return False
        needle = (marker or "").strip().lower()
        if not needle:
            return False
        return needle in self.url.lower() or needle in self.title.lower()


class TargetResolver:
    """Finds the application page among the targets of a DevTools endpoint."""

    def __init__(self, config: CdpConfig) -> None:
        self.config = config

    async def list_targets(self) -> list[CdpTarget]:
        url = self.config.discovery_url
        timeout = float(self.config.fetch_timeout)
        try:
            data = await asyncio.to_thread(http_get_json, url, timeout=timeout)
        except HttpTimeout as exc:
            raise DiscoveryTimeoutError(self.config.debug_port, timeout) from exc

        if not isinstance(data, list):
            raise TransportError(f"Unexpected discovery payload from {url}: expected a JSON array")
        return [CdpTarget.from_json(item) for item in data if isinstance(item, dict)]

    async def find_application_target(self) -> CdpTarget | None:
        targets = await self.list_targets()
        # First match wins; several windows with the same marker are not disambiguated.
        for target in targets:
            if target.matches(self.config.target_marker):
                logger.debug("target_selected id=%s title=%r", target.id, target.title)
                return target
        logger.debug("target_not_found marker=%r candidates=%d", self.config.target_marker, len(targets))
        return None


__all__ = ["CdpTarget", "TargetResolver"]
