#!/usr/bin/env python3
"""
Orbit Shell
A desktop shell front end that groups output into command blocks, with
history and path completion and a file search sidebar
"""

import sys
import asyncio
import logging
from PyQt5.QtWidgets import QApplication
from PyQt5.QtCore import Qt
import qasync

from orbitshell.ui.main_window import MainWindow
from orbitshell.core.debug_logger import (
    debug_log,
    enable_all_categories,
    set_category_enabled,
    set_debug_enabled,
)


def configure_logging():
    """Install the root handler and apply debug_config.py when it is present"""
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(name)s %(levelname)s %(message)s')
    try:
        import debug_config
    except ImportError:
        return
    if not debug_config.ENABLE_DEBUG:
        return

    logging.getLogger('orbitshell').setLevel(logging.DEBUG)
    set_debug_enabled(True)
    if debug_config.ENABLE_ALL:
        enable_all_categories()
        return
    for name in debug_config.ENABLED_CATEGORIES:
        set_category_enabled(name, True)


def main():
    configure_logging()

    QApplication.setAttribute(Qt.AA_EnableHighDpiScaling, True)
    QApplication.setAttribute(Qt.AA_UseHighDpiPixmaps, True)

    app = QApplication(sys.argv)
    app.setApplicationName("Orbit Shell")
    app.setOrganizationName("OrbitShell")
    app.setStyle('Fusion')

    # Qt drives the asyncio loop so that file persistence can be awaited
    loop = qasync.QEventLoop(app)
    asyncio.set_event_loop(loop)

    async def open_window():
        window = MainWindow()
        window.show()
        await window.initialize_async()
        debug_log('ui', 'Window ready', cwd=window.session.cwd)
        return window

    with loop:
        window = loop.run_until_complete(open_window())
        app.aboutToQuit.connect(window.close)
        loop.run_forever()


if __name__ == '__main__':
    main()
