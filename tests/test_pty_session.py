"""Shell process on a pseudo-terminal"""

import os
import shutil
import sys

import pytest

from orbitshell.core.platform_manager import OSType, ShellEnvironment
from orbitshell.core.pty_session import BASH_PROMPT_COMMAND, PtySession, SpawnError, shell_environment

from conftest import pump_until

pytestmark = pytest.mark.skipif(sys.platform == 'win32', reason='POSIX pseudo-terminals')


def make_environment(tmp_path, shell='/bin/sh', environ=None):
    return ShellEnvironment(
        os_type=OSType.LINUX,
        shell=shell,
        home=tmp_path,
        environ=environ if environ is not None else {'PATH': os.environ.get('PATH', '')},
        data_dir=tmp_path,
    )


def test_shell_environment_for_bash(tmp_path):
    env = shell_environment(make_environment(tmp_path, '/bin/bash', {'PROMPT_COMMAND': 'history -a'}))
    assert env['TERM'] == 'xterm-256color'
    assert env['PROMPT_COMMAND'] == f'{BASH_PROMPT_COMMAND}; history -a'


def test_shell_environment_leaves_other_shells_alone(tmp_path):
    env = shell_environment(make_environment(tmp_path, '/bin/zsh', {}))
    assert 'PROMPT_COMMAND' not in env


def test_missing_working_directory(tmp_path):
    with pytest.raises(SpawnError):
        PtySession.open(cwd=tmp_path / 'missing', environment=make_environment(tmp_path))


def test_missing_shell(tmp_path):
    with pytest.raises(SpawnError):
        PtySession.open(cwd=tmp_path, environment=make_environment(tmp_path, str(tmp_path / 'no-shell')))


@pytest.fixture
def shell(qapp, tmp_path):
    session, reader = PtySession.open(cols=80, rows=24, cwd=tmp_path, environment=make_environment(tmp_path))
    received = []
    closed = []
    reader.output_received.connect(received.append)
    reader.stream_closed.connect(lambda: closed.append(True))
    reader.start()
    yield session, reader, received, closed
    reader.stop()
    reader.wait()
    session.close()


def output(received):
    return b''.join(received)


def test_command_output_is_read(qapp, shell):
    session, reader, received, _ = shell
    assert session.uses_pty
    assert session.is_alive()
    session.write(b'echo orbit-$((40 + 2))\n')
    assert pump_until(qapp, lambda: b'orbit-42' in output(received))


@pytest.mark.skipif(shutil.which('stty') is None, reason='needs stty')
def test_resize_reaches_the_terminal(qapp, shell):
    session, reader, received, _ = shell
    session.resize(100, 30)
    session.write(b'stty size\n')
    assert pump_until(qapp, lambda: b'30 100' in output(received))


def test_exit_closes_stream(qapp, shell):
    session, reader, received, closed = shell
    session.write(b'exit\n')
    assert pump_until(qapp, lambda: closed)
    session.close()
    assert not session.is_alive()
    assert session.read() == b''
    # writes after close are ignored
    session.write(b'ignored\n')
