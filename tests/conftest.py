import os
import sys
import time

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault('QT_QPA_PLATFORM', 'offscreen')

from PyQt5.QtCore import QCoreApplication

from orbitshell.core.platform_manager import OSType, ShellEnvironment


@pytest.fixture(scope='session')
def qapp():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


def pump_until(app, condition, timeout=5.0):
    """Process queued signals until ``condition()`` holds or ``timeout`` expires"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        app.processEvents()
        if condition():
            return True
        time.sleep(0.01)
    app.processEvents()
    return condition()


@pytest.fixture
def environment(tmp_path):
    home = tmp_path / 'home'
    home.mkdir()
    return ShellEnvironment(
        os_type=OSType.LINUX,
        shell='/bin/sh',
        home=home,
        environ={'PATH': ''},
        data_dir=tmp_path / 'data',
    )
