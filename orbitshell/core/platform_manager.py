"""Platform detection and the explicit shell environment passed to the core"""

import os
import sys
from enum import Enum
from pathlib import Path


class OSType(Enum):
    """Host families the shell launcher distinguishes"""
    MACOS = "macos"
    WINDOWS = "windows"
    LINUX = "linux"
    UNKNOWN = "unknown"


class PlatformManager:
    """Which operating system the process runs on, decided once from ``sys.platform``"""

    def __init__(self, system=None):
        self._os_type = self._classify(system or sys.platform)

    @staticmethod
    def _classify(system):
        system = system.lower()
        if system == 'darwin':
            return OSType.MACOS
        if system.startswith('win'):
            return OSType.WINDOWS
        if system.startswith('linux'):
            return OSType.LINUX
        return OSType.UNKNOWN

    @property
    def os_type(self):
        return self._os_type

    @property
    def is_windows(self):
        return self._os_type == OSType.WINDOWS

    def __repr__(self):
        return f"PlatformManager(os_type={self._os_type}, platform={sys.platform})"


_platform_manager = None


def get_platform_manager():
    """Shared instance, created on first use"""
    global _platform_manager
    if _platform_manager is None:
        _platform_manager = PlatformManager()
    return _platform_manager


class ShellEnvironment:
    """Environment-derived configuration threaded into the core.

    Holds everything the core would otherwise read from ``os.environ``: the
    shell to launch, the home directory, the executable search path and the
    application data directory. Tests build one directly; the application uses
    ``ShellEnvironment.from_os()``.

    ``environ`` is kept as a live mapping so that ``search_path`` reflects
    changes made after construction.
    """

    def __init__(self, os_type=OSType.LINUX, shell=None, shell_args=None, home=None,
                 environ=None, data_dir=None):
        self.os_type = os_type
        self.environ = environ if environ is not None else {}
        self.home = Path(home) if home else None
        self.shell = shell or self._default_shell()
        self.shell_args = list(shell_args) if shell_args is not None else self._default_shell_args()
        self.data_dir = Path(data_dir) if data_dir else self._default_data_dir()

    @classmethod
    def from_os(cls, shell=None, platform_manager=None):
        """Build the environment of the running process"""
        platform_manager = platform_manager or get_platform_manager()
        environ = os.environ
        if platform_manager.is_windows:
            home = environ.get('USERPROFILE') or environ.get('HOME')
        else:
            home = environ.get('HOME')
        return cls(
            os_type=platform_manager.os_type,
            shell=shell,
            home=home or str(Path.home()),
            environ=environ,
        )

    @property
    def is_windows(self):
        return self.os_type == OSType.WINDOWS

    @property
    def path_separator(self):
        """Separator between entries of the search-path variable"""
        return ';' if self.is_windows else ':'

    @property
    def search_path(self):
        """Current value of the executable search-path variable"""
        return self.environ.get('PATH', '')

    @property
    def executable_extensions(self):
        """Lower-cased executable extensions (Windows only, empty elsewhere)"""
        if not self.is_windows:
            return []
        exts = self.environ.get('PATHEXT') or '.EXE;.CMD;.BAT;.COM'
        return [ext.lower() for ext in exts.split(';') if ext]

    @property
    def history_file(self):
        """The application's own command history log"""
        if self.data_dir is None:
            return None
        return self.data_dir / 'orbitshell' / 'history.txt'

    @property
    def recent_file(self):
        """The recent-entries list"""
        if self.data_dir is None:
            return None
        return self.data_dir / 'orbitshell' / 'recent.json'

    def expand_tilde(self, path):
        """Expand a leading ``~`` against the configured home directory"""
        if not path.startswith('~'):
            return Path(path)
        home = self.home if self.home is not None else Path('~')
        rest = path[1:]
        if not rest:
            return home
        return home / rest.lstrip('\\/')

    def format_path(self, path):
        """Display form of a path: home-relative with ``~`` when possible"""
        path = Path(path)
        if self.home is not None:
            try:
                stripped = path.relative_to(self.home)
            except ValueError:
                stripped = None
            if stripped is not None:
                text = str(stripped)
                if text in ('', '.'):
                    return '~'
                sep = '\\' if self.is_windows else '/'
                return f"~{sep}{text}"
        out = str(path)
        if not self.is_windows:
            out = out.replace('\\', '/')
        return out

    def _default_shell(self):
        if self.is_windows:
            return 'powershell.exe'
        return self.environ.get('SHELL') or '/bin/bash'

    def _default_shell_args(self):
        if self.is_windows:
            # Disable profiles to avoid user init errors
            return ['-NoLogo', '-NoProfile']
        return []

    def _default_data_dir(self):
        if self.environ.get('APPDATA'):
            return Path(self.environ['APPDATA'])
        if self.environ.get('XDG_DATA_HOME'):
            return Path(self.environ['XDG_DATA_HOME'])
        if self.home is not None:
            return self.home / '.local' / 'share'
        return None

    def __repr__(self):
        return f"ShellEnvironment(os_type={self.os_type}, shell={self.shell!r}, home={self.home!r})"
