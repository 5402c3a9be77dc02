"""Completion candidates for the command input

Three sources feed the list, in this order: command history, filesystem
entries for path-like tokens, and executables found on the search path when
the caret is on the first word. The first candidate doubles as inline ghost
text.
"""

import os
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

from orbitshell.core.debug_logger import debug_log

PATH_SCAN_TTL = 60.0


class SuggestSource(Enum):
    HISTORY = 'history'
    PATH = 'path'
    COMMAND = 'command'


@dataclass
class SuggestionItem:
    display: str
    insert_text: str
    source: SuggestSource


def is_path_token(token: str) -> bool:
    if not token:
        return False
    return (
        token.startswith(('./', '../', '~', '.\\', '..\\', '\\\\'))
        or '/' in token
        or '\\' in token
        or (len(token) >= 3 and token[1] == ':' and token[2] in '\\/')
    )


def split_path_token(token: str):
    """Split into ``(base, partial, separator)``; base is None without a separator"""
    sep = '\\' if '\\' in token else '/'
    pos = token.rfind(sep)
    if pos < 0:
        return None, token, sep
    return token[:pos], token[pos + 1:], sep


def current_token(prefix: str) -> str:
    """Last whitespace-delimited token of ``prefix``; empty after trailing whitespace"""
    if not prefix or prefix[-1].isspace():
        return ''
    parts = prefix.split()
    return parts[-1] if parts else ''


def dedupe(*groups) -> List[SuggestionItem]:
    """Concatenate groups, dropping items whose insert text was already seen"""
    seen = set()
    out = []
    for group in groups:
        for item in group:
            if item.insert_text in seen:
                continue
            seen.add(item.insert_text)
            out.append(item)
    return out


def ghost_text(text: str, cursor: int, has_selection: bool, items, index: int = 0) -> Optional[str]:
    """Inline preview of the remainder of the selected candidate, or None"""
    if has_selection or not text or not items:
        return None
    candidate = items[min(index, len(items) - 1)].insert_text
    left, right = text[:cursor], text[cursor:]
    if not right:
        if candidate.startswith(text) and len(candidate) > len(text):
            return candidate[len(text):]
        return None
    if candidate.startswith(left) and candidate.endswith(right):
        end = len(candidate) - len(right)
        if end > len(left):
            return candidate[len(left):end]
    return None


def cycle(index: int, count: int) -> int:
    if count <= 0:
        return 0
    return (index + 1) % count


def accept(editor, items, index: int = 0) -> bool:
    """Apply the selected candidate to ``editor``; returns True if the text changed"""
    ghost = ghost_text(editor.text, editor.cursor, editor.has_selection(), items, index)
    if ghost:
        editor.insert_text(ghost)
        return True
    if not items:
        return False
    candidate = items[min(index, len(items) - 1)].insert_text
    if candidate == editor.text:
        return False
    editor.set_text(candidate)
    return True


class PathCommandCache:
    """Executable names found on the search path.

    Rescanned at most once per ``ttl`` seconds, and only when the search path
    value changed since the last scan.
    """

    def __init__(self, environment, clock=time.monotonic, ttl=PATH_SCAN_TTL):
        self.environment = environment
        self._clock = clock
        self.ttl = ttl
        self._last_check = None
        self._last_value = None
        self.commands: List[str] = []

    def refresh_if_stale(self):
        now = self._clock()
        if self._last_check is not None and now - self._last_check < self.ttl:
            return False
        self._last_check = now
        current = self.environment.search_path
        if current == self._last_value:
            return False
        self._last_value = current
        self.commands = self.scan(current)
        debug_log('suggestions', 'Search path rescanned', commands=len(self.commands))
        return True

    def scan(self, search_path) -> List[str]:
        env = self.environment
        extensions = env.executable_extensions
        found = set()
        for directory in search_path.split(env.path_separator):
            if not directory.strip():
                continue
            try:
                entries = list(os.scandir(directory))
            except OSError:
                continue
            for entry in entries:
                name = entry.name
                if env.is_windows:
                    stem, ext = os.path.splitext(name)
                    if ext.lower() in extensions:
                        found.add(stem)
                    continue
                try:
                    if entry.is_file() and os.access(entry.path, os.X_OK):
                        found.add(name)
                except OSError:
                    continue
        return sorted(found)


class SuggestionEngine:
    """Ranks completion candidates for a text/caret pair"""

    def __init__(self, history, environment, path_commands: Optional[PathCommandCache] = None):
        self.history = history
        self.environment = environment
        self.path_commands = path_commands or PathCommandCache(environment)

    def suggest(self, text: str, cursor: int, cwd=None) -> List[SuggestionItem]:
        prefix = text[:cursor]
        if not prefix:
            return []
        right = text[cursor:]

        history_items = [
            SuggestionItem(command, command, SuggestSource.HISTORY)
            for command in self.history
            if command.startswith(prefix) and command != prefix
        ]

        token = current_token(prefix)
        path_items = []
        command_items = []
        if is_path_token(token):
            path_items = self.path_items(prefix, right, token, cwd)
        elif token and prefix.lstrip() == token:
            command_items = self.command_items(prefix, right, token)

        return dedupe(history_items, path_items, command_items)

    def _resolve_base(self, base, sep, cwd):
        cwd = Path(cwd) if cwd else Path('.')
        if base is None:
            return cwd
        if base == '':
            return Path(sep)
        if len(base) == 2 and base[1] == ':':
            return Path(base + sep)
        if base.startswith('~'):
            return self.environment.expand_tilde(base)
        path = Path(base)
        if not path.is_absolute():
            path = cwd / path
        return path

    def path_items(self, prefix, right, token, cwd=None) -> List[SuggestionItem]:
        base, partial, sep = split_path_token(token)
        directory = self._resolve_base(base, sep, cwd)
        try:
            entries = list(os.scandir(directory))
        except OSError:
            return []

        left_prefix = prefix[:len(prefix) - len(token)]
        candidates = []
        for entry in entries:
            name = entry.name
            if not name.startswith(partial):
                continue
            try:
                is_dir = entry.is_dir()
            except OSError:
                is_dir = False
            completed = name if base is None else f"{base}{sep}{name}"
            if is_dir:
                completed += sep
            candidates.append((not is_dir, name.lower(), SuggestionItem(
                completed, f"{left_prefix}{completed}{right}", SuggestSource.PATH)))

        candidates.sort(key=lambda c: (c[0], c[1]))
        return [item for _, _, item in candidates]

    def command_items(self, prefix, right, token) -> List[SuggestionItem]:
        self.path_commands.refresh_if_stale()
        leading = prefix[:len(prefix) - len(token)]
        return [
            SuggestionItem(command, f"{leading}{command}{right}", SuggestSource.COMMAND)
            for command in self.path_commands.commands
            if command.startswith(token) and command != token
        ]
