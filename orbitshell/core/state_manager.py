"""Recently opened directories, persisted as JSON"""

import json
import time
import asyncio
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List

import aiofiles

from orbitshell.core.debug_logger import debug_error, debug_log

MAX_RECENT = 20


@dataclass
class RecentEntry:
    path: str
    last_opened: int  # epoch seconds


def _entries_from_json(content) -> List[RecentEntry]:
    data = json.loads(content)
    if not isinstance(data, list):
        raise ValueError("recent list must be an array")
    entries = []
    for item in data:
        if not isinstance(item, dict):
            raise ValueError("recent entry must be an object")
        entries.append(RecentEntry(path=str(item['path']), last_opened=int(item['last_opened'])))
    return entries


class RecentStore:
    """Most-recent-first list of opened directories, capped at 20"""

    def __init__(self, recent_file, clock=time.time):
        self.recent_file = Path(recent_file) if recent_file else None
        self._clock = clock
        self._save_lock = asyncio.Lock()
        self.entries: List[RecentEntry] = []

    def load(self) -> List[RecentEntry]:
        """Load synchronously; a missing or malformed file yields an empty list"""
        self.entries = []
        if self.recent_file is None or not self.recent_file.exists():
            return self.entries
        try:
            with open(self.recent_file, 'r', encoding='utf-8') as f:
                self.entries = _entries_from_json(f.read())
        except (OSError, ValueError, KeyError, TypeError) as e:
            debug_error('state', 'Unreadable recent list, starting empty', exception=e,
                        path=str(self.recent_file))
            self.entries = []
        return self.entries

    async def load_async(self) -> List[RecentEntry]:
        self.entries = []
        if self.recent_file is None or not self.recent_file.exists():
            return self.entries
        try:
            async with aiofiles.open(self.recent_file, 'r', encoding='utf-8') as f:
                content = await f.read()
                self.entries = _entries_from_json(content)
        except (OSError, ValueError, KeyError, TypeError) as e:
            debug_error('state', 'Unreadable recent list, starting empty', exception=e,
                        path=str(self.recent_file))
            self.entries = []
        return self.entries

    def _touch(self, path):
        path = str(path)
        now = int(self._clock())
        remaining = [entry for entry in self.entries if entry.path != path]
        # newest first; stable sort keeps the touched entry ahead of ties
        entries = [RecentEntry(path=path, last_opened=now)] + remaining
        entries.sort(key=lambda entry: entry.last_opened, reverse=True)
        self.entries = entries[:MAX_RECENT]
        debug_log('state', 'Recent entry touched', path=path, count=len(self.entries))
        return self.entries

    def add_recent(self, path) -> List[RecentEntry]:
        """Record ``path`` as opened now and persist the list"""
        self.load()
        entries = self._touch(path)
        self.save()
        return entries

    async def add_recent_async(self, path) -> List[RecentEntry]:
        await self.load_async()
        entries = self._touch(path)
        await self.save_async()
        return entries

    def _serialize(self):
        return json.dumps([asdict(entry) for entry in self.entries], indent=2)

    def save(self):
        if self.recent_file is None:
            return True
        try:
            self.recent_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.recent_file, 'w', encoding='utf-8') as f:
                f.write(self._serialize())
            return True
        except OSError as e:
            debug_error('state', 'Failed to save recent list', exception=e, path=str(self.recent_file))
            return False

    async def save_async(self):
        if self.recent_file is None:
            return True
        async with self._save_lock:
            try:
                await asyncio.to_thread(self.recent_file.parent.mkdir, parents=True, exist_ok=True)
                async with aiofiles.open(self.recent_file, 'w', encoding='utf-8') as f:
                    await f.write(self._serialize())
                return True
            except OSError as e:
                debug_error('state', 'Failed to save recent list', exception=e, path=str(self.recent_file))
                return False
