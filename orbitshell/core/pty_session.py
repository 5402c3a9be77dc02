"""Child shell attached to a pseudo-terminal, and the thread that drains it"""

import os
import sys
import select
import struct
import subprocess
from pathlib import Path

from PyQt5.QtCore import QThread, pyqtSignal

from orbitshell.core.debug_logger import debug_error, debug_log
from orbitshell.core.platform_manager import ShellEnvironment

if sys.platform != 'win32':
    import fcntl
    import pty
    import termios

READ_CHUNK_SIZE = 4096
POLL_INTERVAL = 0.1

# Emitted before every prompt: command finished (with status), cwd report, prompt start
BASH_PROMPT_COMMAND = (
    '__orbitshell_status=$?; '
    "printf '\\033]133;D;%s\\007\\033]7;file://%s%s\\007\\033]133;A\\007' "
    '"$__orbitshell_status" "${HOSTNAME:-localhost}" "$PWD"'
)


class SpawnError(Exception):
    """The pseudo-terminal or the shell process could not be created"""


def shell_environment(environment: ShellEnvironment):
    """Environment variables for the child shell"""
    env = dict(environment.environ)
    env['TERM'] = 'xterm-256color'
    env['COLORTERM'] = 'truecolor'
    if Path(environment.shell).name in ('bash', 'bash.exe'):
        existing = env.get('PROMPT_COMMAND', '').strip()
        env['PROMPT_COMMAND'] = f"{BASH_PROMPT_COMMAND}; {existing}" if existing else BASH_PROMPT_COMMAND
    return env


def _set_controlling_terminal():
    # Runs in the child after setsid(); stdin is the pty slave
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


class PtySession:
    """Owns the shell process and the master side of its terminal.

    Use ``PtySession.open()``; on Windows, where the standard library has no
    pseudo-terminal, the shell runs with plain pipes.
    """

    def __init__(self, process, master_fd=None, environment=None):
        self.process = process
        self.master_fd = master_fd
        self.environment = environment
        self._closed = False

    @classmethod
    def open(cls, cols=80, rows=24, cwd=None, environment=None):
        """Spawn the shell; returns ``(session, reader)``. Raises ``SpawnError``."""
        environment = environment or ShellEnvironment.from_os()
        if cwd is not None and not Path(cwd).is_dir():
            raise SpawnError(f"working directory does not exist: {cwd}")
        if environment.is_windows:
            session = cls._open_pipes(cwd, environment)
        else:
            session = cls._open_pty(cols, rows, cwd, environment)
        debug_log('terminal', 'Shell spawned', shell=environment.shell, pid=session.pid, cwd=str(cwd))
        return session, PTYReader(session)

    @classmethod
    def _open_pty(cls, cols, rows, cwd, environment):
        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise SpawnError(f"cannot allocate pseudo-terminal: {e}") from e

        try:
            # Set PTY size
            fcntl.ioctl(master_fd, termios.TIOCSWINSZ, struct.pack('HHHH', rows, cols, 0, 0))
            process = subprocess.Popen(
                [environment.shell, *environment.shell_args],
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                cwd=str(cwd) if cwd is not None else None,
                env=shell_environment(environment),
                start_new_session=True,
                preexec_fn=_set_controlling_terminal,
                close_fds=True,
            )
        except (OSError, subprocess.SubprocessError) as e:
            os.close(master_fd)
            os.close(slave_fd)
            raise SpawnError(f"cannot start {environment.shell}: {e}") from e

        # The child holds its own copy of the slave side
        os.close(slave_fd)
        return cls(process, master_fd=master_fd, environment=environment)

    @classmethod
    def _open_pipes(cls, cwd, environment):
        try:
            process = subprocess.Popen(
                [environment.shell, *environment.shell_args],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                cwd=str(cwd) if cwd is not None else None,
                env=shell_environment(environment),
                bufsize=0,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise SpawnError(f"cannot start {environment.shell}: {e}") from e
        return cls(process, environment=environment)

    @property
    def pid(self):
        return self.process.pid

    @property
    def uses_pty(self):
        return self.master_fd is not None

    def is_alive(self):
        return not self._closed and self.process.poll() is None

    def write(self, data: bytes):
        """Send raw bytes to the shell; failures after the child exited are ignored"""
        if self._closed:
            return
        try:
            if self.master_fd is not None:
                view = memoryview(data)
                while view:
                    written = os.write(self.master_fd, view)
                    view = view[written:]
            else:
                self.process.stdin.write(data)
                self.process.stdin.flush()
        except (OSError, ValueError) as e:
            debug_log('terminal', 'Write to shell failed', error=str(e))

    def wait_readable(self, timeout=POLL_INTERVAL):
        """True when ``read()`` will not block (always True for pipes)"""
        if self.master_fd is None:
            return True
        if self._closed:
            return True
        ready, _, _ = select.select([self.master_fd], [], [], timeout)
        return bool(ready)

    def read(self, size=READ_CHUNK_SIZE) -> bytes:
        """Blocking read; ``b''`` at end of stream"""
        if self._closed:
            return b''
        try:
            if self.master_fd is not None:
                return os.read(self.master_fd, size)
            return os.read(self.process.stdout.fileno(), size)
        except (OSError, ValueError):
            # EIO once the child side is gone
            return b''

    def resize(self, cols, rows):
        if self.master_fd is None or self._closed:
            return
        try:
            fcntl.ioctl(self.master_fd, termios.TIOCSWINSZ, struct.pack('HHHH', rows, cols, 0, 0))
        except (OSError, struct.error) as e:
            debug_log('terminal', 'Resize failed', cols=cols, rows=rows, error=str(e))

    def interrupt(self):
        """Send interrupt (Ctrl+C)"""
        self.write(b'\x03')

    def close(self):
        """Kill the shell, close descriptors and reap the child"""
        if self._closed:
            return
        self._closed = True
        if self.process.poll() is None:
            try:
                self.process.kill()
            except OSError as e:
                debug_error('terminal', 'Failed to kill shell', exception=e, pid=self.pid)
        self.process.wait()
        if self.master_fd is not None:
            try:
                os.close(self.master_fd)
            except OSError:
                pass
            self.master_fd = None
        else:
            for stream in (self.process.stdin, self.process.stdout):
                if stream is not None:
                    stream.close()
        debug_log('terminal', 'Shell closed', pid=self.pid, returncode=self.process.returncode)


class PTYReader(QThread):
    """Thread to read from the shell and emit output"""

    output_received = pyqtSignal(bytes)
    stream_closed = pyqtSignal()

    def __init__(self, session):
        super().__init__()
        self.session = session
        self.running = True

    def run(self):
        """Read from the session until end of stream or stop()"""
        while self.running:
            try:
                if not self.session.wait_readable(POLL_INTERVAL):
                    continue
            except (OSError, ValueError):
                break
            data = self.session.read(READ_CHUNK_SIZE)
            if not data:
                break
            try:
                self.output_received.emit(data)
            except RuntimeError:
                # Receiver deleted, stop thread
                break
        debug_log('terminal', 'Reader finished', stopped=not self.running)
        self.stream_closed.emit()

    def stop(self):
        """Stop the reader thread"""
        self.running = False
