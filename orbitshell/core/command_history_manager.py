"""Command history merged from shell history files plus the application's own log"""

import asyncio
import subprocess
from collections import deque
from pathlib import Path
from typing import Callable, List, NamedTuple

import aiofiles

from orbitshell.core.debug_logger import debug_error, debug_log

MAX_HISTORY = 2000


def parse_plain_lines(contents: str) -> List[str]:
    """One command per line (bash, PSReadLine, our own log); newest first"""
    return [line for line in reversed(contents.splitlines()) if line.strip()]


def parse_zsh_history(contents: str) -> List[str]:
    """Extended zsh format ``: <ts>:<dur>;<command>``; newest first"""
    commands = []
    for line in reversed(contents.splitlines()):
        line = line.strip()
        if not line:
            continue
        if ';' in line:
            line = line.split(';', 1)[1]
        command = line.strip()
        if command:
            commands.append(command)
    return commands


def parse_fish_history(contents: str) -> List[str]:
    """fish's YAML-ish history (``- cmd: <command>``); newest first"""
    commands = []
    for line in reversed(contents.splitlines()):
        line = line.strip()
        if line.startswith('- cmd:'):
            command = line[len('- cmd:'):].strip()
        elif line.startswith('cmd:'):
            command = line[len('cmd:'):].strip()
        else:
            continue
        if command:
            commands.append(command)
    return commands


class HistorySource(NamedTuple):
    """A history file and the parser for its format"""

    path: object
    parser: Callable[[str], List[str]]


def merge_histories(sources, max_history=MAX_HISTORY):
    """Merge newest-first command lists in precedence order, first occurrence wins"""
    merged = []
    seen = set()
    for commands in sources:
        for command in commands:
            if command in seen:
                continue
            seen.add(command)
            merged.append(command)
            if len(merged) >= max_history:
                return merged
    return merged


class CommandHistoryManager:
    """Bounded command history, newest first.

    On load, the application log comes first, followed by the user's shell
    history files (bash/zsh/fish on POSIX, PSReadLine and doskey on Windows).
    New commands are prepended and appended to the application log.
    """

    def __init__(self, environment, max_history=MAX_HISTORY, load=True):
        self.environment = environment
        self.history_file = environment.history_file
        self.max_history = max_history
        self.history = deque(maxlen=max_history)
        self._load_lock = asyncio.Lock()

        # Load synchronously on init for immediate availability
        if load:
            self.load_history_sync()

    def __len__(self):
        return len(self.history)

    def __iter__(self):
        return iter(self.history)

    @property
    def entries(self):
        return list(self.history)

    def history_sources(self) -> List[HistorySource]:
        """External history files for the current platform, in precedence order"""
        sources = []
        if self.history_file is not None:
            sources.append(HistorySource(self.history_file, parse_plain_lines))

        env = self.environment
        if env.is_windows:
            appdata = env.environ.get('APPDATA')
            if appdata:
                base = Path(appdata) / 'Microsoft'
                sources.append(HistorySource(
                    base / 'Windows' / 'PowerShell' / 'PSReadLine' / 'ConsoleHost_history.txt',
                    parse_plain_lines))
                sources.append(HistorySource(
                    base / 'PowerShell' / 'PSReadLine' / 'ConsoleHost_history.txt',
                    parse_plain_lines))
        elif env.home is not None:
            sources.append(HistorySource(env.home / '.bash_history', parse_plain_lines))
            sources.append(HistorySource(env.home / '.zsh_history', parse_zsh_history))
            sources.append(HistorySource(env.home / '.config' / 'fish' / 'fish_history', parse_fish_history))
        return sources

    def _read_source_sync(self, source):
        try:
            with open(source.path, 'r', encoding='utf-8', errors='replace') as f:
                return source.parser(f.read())
        except OSError:
            return []

    async def _read_source(self, source):
        try:
            async with aiofiles.open(source.path, 'r', encoding='utf-8', errors='replace') as f:
                content = await f.read()
                return source.parser(content)
        except OSError:
            return []

    def _read_doskey(self):
        """``doskey /history`` output of the current console (Windows only)"""
        try:
            result = subprocess.run(
                ['cmd', '/c', 'doskey', '/history'],
                capture_output=True, text=True, errors='replace',
            )
        except OSError as e:
            debug_log('history', 'doskey unavailable', error=str(e))
            return []
        if result.returncode != 0:
            return []
        return [line.strip() for line in reversed(result.stdout.splitlines()) if line.strip()]

    def _apply(self, lists):
        merged = merge_histories(lists, self.max_history)
        self.history = deque(merged, maxlen=self.max_history)
        debug_log('history', 'History loaded', entries=len(self.history), sources=len(lists))

    def load_history_sync(self):
        """Load and merge every history source synchronously"""
        lists = [self._read_source_sync(source) for source in self.history_sources()]
        if self.environment.is_windows:
            lists.append(self._read_doskey())
        self._apply(lists)

    async def load_history(self):
        """Load and merge every history source asynchronously"""
        async with self._load_lock:
            lists = [await self._read_source(source) for source in self.history_sources()]
            if self.environment.is_windows:
                lists.append(await asyncio.to_thread(self._read_doskey))
            self._apply(lists)

    def push(self, command: str):
        """Record a submitted command"""
        if not command or not command.strip():
            return
        # Don't add duplicate consecutive commands
        if self.history and self.history[0] == command:
            return
        # deque(maxlen) evicts the oldest entry from the right
        self.history.appendleft(command)
        self._append_to_log(command)

    def _append_to_log(self, command):
        if self.history_file is None:
            return
        try:
            self.history_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.history_file, 'a', encoding='utf-8') as f:
                f.write(command + '\n')
        except OSError as e:
            debug_error('history', 'Failed to append history line', exception=e, path=str(self.history_file))

    def prefix_matches(self, prefix: str, limit: int = 8) -> List[str]:
        """Entries that extend ``prefix`` (equal entries excluded), newest first"""
        matches = []
        for command in self.history:
            if command.startswith(prefix) and command != prefix:
                matches.append(command)
                if len(matches) >= limit:
                    break
        return matches

    def get_recent_commands(self, limit: int = 50) -> List[str]:
        """Get most recent commands"""
        return list(self.history)[:limit]

    def clear_history(self):
        """Clear in-memory history and truncate the application log"""
        self.history.clear()
        if self.history_file is None:
            return
        try:
            if self.history_file.exists():
                self.history_file.write_text('', encoding='utf-8')
        except OSError as e:
            debug_error('history', 'Failed to clear history log', exception=e, path=str(self.history_file))
