"""User preferences and the search rules file"""

import copy
import json
import os
import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import aiofiles

from orbitshell.core.debug_logger import debug_error, debug_log

DEFAULT_RULES_FILE = 'orbitshell_rules.json'


def _overlay(base, update):
    """Copy ``update`` onto ``base`` recursively, keeping keys only ``base`` has"""
    for key, value in update.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _overlay(current, value)
        else:
            base[key] = value
    return base


class PreferencesManager:
    """Grouped settings stored as a JSON object in the user's home directory

    Values are addressed by ``(category, key)``. A stored file only needs the
    keys the user changed; everything else comes from DEFAULT_PREFERENCES.
    """

    DEFAULT_PREFERENCES = {
        'terminal': {
            'shell': None,  # None: $SHELL / powershell.exe
            'columns': 80,
            'rows': 24,
            'scrollback_lines': 10000,
        },
        'search': {
            'rules_file': DEFAULT_RULES_FILE,
        },
        'behavior': {
            'default_directory': None,  # None: home directory
        },
    }

    def __init__(self, preferences_file=None, load=True):
        if preferences_file is None:
            preferences_file = os.path.expanduser("~/.orbitshell_preferences.json")
        self.preferences_file = Path(preferences_file)
        self._preferences = self._defaults()
        self._load_lock = asyncio.Lock()
        self._save_lock = asyncio.Lock()
        # The window reads terminal geometry before the event loop runs
        if load:
            self.load_preferences_sync()

    def _defaults(self):
        return copy.deepcopy(self.DEFAULT_PREFERENCES)

    def _parse(self, content):
        stored = json.loads(content)
        if not isinstance(stored, dict):
            raise ValueError("preferences root must be an object")
        return _overlay(self._defaults(), stored)

    def _fall_back(self, error):
        debug_error('state', 'Malformed preferences, using defaults', exception=error,
                    path=str(self.preferences_file))
        self._preferences = self._defaults()

    async def load_preferences(self):
        async with self._load_lock:
            if not self.preferences_file.exists():
                self._preferences = self._defaults()
                return
            try:
                async with aiofiles.open(self.preferences_file, 'r') as f:
                    self._preferences = self._parse(await f.read())
            except (OSError, ValueError) as e:
                self._fall_back(e)

    def load_preferences_sync(self):
        if not self.preferences_file.exists():
            self._preferences = self._defaults()
            return
        try:
            self._preferences = self._parse(self.preferences_file.read_text())
        except (OSError, ValueError) as e:
            self._fall_back(e)

    async def save_preferences(self):
        """Write the whole object back; returns False when the file is not writable"""
        text = json.dumps(self._preferences, indent=2)
        async with self._save_lock:
            try:
                async with aiofiles.open(self.preferences_file, 'w') as f:
                    await f.write(text)
            except OSError as e:
                debug_error('state', 'Failed to save preferences', exception=e)
                return False
        return True

    def save_preferences_sync(self):
        try:
            self.preferences_file.write_text(json.dumps(self._preferences, indent=2))
        except OSError as e:
            debug_error('state', 'Failed to save preferences', exception=e)
            return False
        return True

    def get(self, category, key, default=None):
        """Stored value, or ``default`` when it is missing or null"""
        value = self._preferences.get(category, {}).get(key)
        return default if value is None else value

    def set(self, category, key, value):
        self._preferences.setdefault(category, {})[key] = value

    def get_all(self):
        return copy.deepcopy(self._preferences)

    def reset_to_defaults(self):
        self._preferences = self._defaults()
        self.save_preferences_sync()


def _default_skip_dirs():
    return ['.git', 'node_modules', 'target', 'dist', '.next']


@dataclass
class SearchRules:
    """Limits applied by the file content search"""

    skip_dirs: List[str] = field(default_factory=_default_skip_dirs)
    skip_files: List[str] = field(default_factory=list)
    max_file_kb: int = 512
    search_limit: int = 200

    def normalized(self):
        """Copy with every skip name lower-cased"""
        return SearchRules(
            skip_dirs=[name.lower() for name in self.skip_dirs],
            skip_files=[name.lower() for name in self.skip_files],
            max_file_kb=self.max_file_kb,
            search_limit=self.search_limit,
        )

    def should_skip_dir(self, name):
        return name.lower() in self.skip_dirs

    def should_skip_file(self, name):
        return name.lower() in self.skip_files

    @property
    def max_file_bytes(self):
        return self.max_file_kb * 1024


def _names(value, default):
    if not isinstance(value, list):
        return default
    return [str(item) for item in value]


def _count(value, default):
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return default
    return value


def rules_from_dict(data):
    """Build rules from parsed JSON; missing or mistyped keys keep their defaults"""
    defaults = SearchRules()
    return SearchRules(
        skip_dirs=_names(data.get('skip_dirs'), defaults.skip_dirs),
        skip_files=_names(data.get('skip_files'), defaults.skip_files),
        max_file_kb=_count(data.get('max_file_kb'), defaults.max_file_kb),
        search_limit=_count(data.get('search_limit'), defaults.search_limit),
    ).normalized()


def load_rules(path=DEFAULT_RULES_FILE):
    """Read the search rules file, falling back to defaults when absent or malformed"""
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        return SearchRules().normalized()
    except (OSError, ValueError) as e:
        debug_error('search', 'Malformed rules file, using defaults', exception=e, path=str(path))
        return SearchRules().normalized()
    if not isinstance(data, dict):
        debug_log('search', 'Rules file is not an object, using defaults', path=str(path))
        return SearchRules().normalized()
    return rules_from_dict(data)
