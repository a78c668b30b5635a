"""Degraded storage tier: a flat JSON catalog of package metadata.

Used only when the primary database cannot be written or read. Entries hold
the same fields as the package table but never file payloads, so packages
recorded here can be listed and inspected but not played.

Writers are serialized by a per-instance lock and each save replaces the file
atomically, so readers only ever see a complete catalog. One instance should
own a given catalog path.
"""
from __future__ import annotations
import asyncio
import json
import logging
from pathlib import Path
from typing import Callable, List, Optional

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)


class FallbackCatalog:
    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def load(self) -> List[dict]:
        if not self.path.exists():
            return []
        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            raw = await f.read()
        if not raw.strip():
            return []
        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Fallback catalog {self.path} is corrupt: {e}")
            return []
        return entries if isinstance(entries, list) else []

    async def save(self, entries: List[dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(entries, indent=2))
        await aiofiles.os.replace(tmp_path, self.path)

    async def _update(self, change: Callable[[List[dict]], List[dict]]) -> int:
        """Apply ``change`` under the write lock; returns entries removed."""
        async with self._lock:
            entries = await self.load()
            updated = change(entries)
            if updated != entries:
                await self.save(updated)
            return len(entries) - len(updated)

    async def add(self, entry: dict) -> None:
        def replace_entry(entries: List[dict]) -> List[dict]:
            kept = [e for e in entries if e.get("id") != entry["id"]]
            kept.append(entry)
            return kept

        await self._update(replace_entry)

    async def get(self, package_id: str) -> Optional[dict]:
        for entry in await self.load():
            if entry.get("id") == package_id:
                return entry
        return None

    async def remove(self, package_id: str) -> bool:
        removed = await self._update(
            lambda entries: [e for e in entries if e.get("id") != package_id]
        )
        return removed > 0
