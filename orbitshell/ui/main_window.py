"""Main application window"""

import asyncio
import shlex
from pathlib import Path

from PyQt5.QtWidgets import QMainWindow, QSplitter, QToolBar, QAction, QMenu, QFileDialog, QMessageBox
from PyQt5.QtCore import Qt, QSettings

from orbitshell.core.command_history_manager import CommandHistoryManager
from orbitshell.core.debug_logger import debug_log
from orbitshell.core.platform_manager import ShellEnvironment
from orbitshell.core.preferences_manager import PreferencesManager, load_rules
from orbitshell.core.state_manager import RecentStore
from orbitshell.core.terminal_session import TerminalSession, start_session
from orbitshell.ui.search_panel import SearchPanel
from orbitshell.ui.terminal_view import TerminalView


class MainWindow(QMainWindow):
    """Search sidebar plus one shell session"""

    def __init__(self, prefs_manager=None, environment=None):
        super().__init__()
        self.settings = QSettings()
        self.prefs_manager = prefs_manager or PreferencesManager()
        self.environment = environment or ShellEnvironment.from_os(
            shell=self.prefs_manager.get('terminal', 'shell'))
        self.history_manager = CommandHistoryManager(self.environment, load=False)
        self.recent_store = RecentStore(self.environment.recent_file)

        self.session = TerminalSession(
            self.environment,
            self.history_manager,
            cols=self.prefs_manager.get('terminal', 'columns', 80),
            rows=self.prefs_manager.get('terminal', 'rows', 24),
            scrollback_lines=self.prefs_manager.get('terminal', 'scrollback_lines', 10000),
        )
        self.session.open_repository.connect(self.open_repository)
        self.session.session_closed.connect(self.on_session_closed)

        self.init_ui()
        # Note: async initialization will be done separately via initialize_async()

    async def initialize_async(self):
        """Load data files, then start the shell - call this after __init__"""
        await asyncio.gather(
            self.prefs_manager.load_preferences(),
            self.history_manager.load_history(),
            self.recent_store.load_async(),
        )
        self.rebuild_recent_menu()
        default_directory = self.prefs_manager.get('behavior', 'default_directory')
        if not start_session(self.session, default_directory):
            self.show_spawn_failure(default_directory)
        self.search_panel.set_root(self.session.cwd or Path.home())
        self.terminal_view.input.setFocus()

    def init_ui(self):
        self.setWindowTitle("Orbit Shell")
        self.resize(1200, 800)
        self.setStyleSheet("QMainWindow { background-color: #1e1e1e; }")

        rules_file = self.prefs_manager.get('search', 'rules_file')
        self.search_panel = SearchPanel(load_rules(rules_file))
        self.search_panel.result_activated.connect(self.on_search_result)
        self.session.cwd_changed.connect(self.search_panel.set_root)

        self.terminal_view = TerminalView(self.session)

        self.main_splitter = QSplitter(Qt.Horizontal)
        self.main_splitter.addWidget(self.search_panel)
        self.main_splitter.addWidget(self.terminal_view)
        self.main_splitter.setStretchFactor(1, 1)
        self.main_splitter.setSizes([300, 900])
        self.setCentralWidget(self.main_splitter)

        self.setup_toolbar()
        self.restore_geometry_settings()

    def setup_toolbar(self):
        toolbar = QToolBar("Main")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        open_action = QAction("Open Repository...", self)
        open_action.triggered.connect(self.choose_repository)
        toolbar.addAction(open_action)

        self.recent_menu = QMenu("Recent", self)
        recent_action = toolbar.addAction("Recent")
        recent_action.setMenu(self.recent_menu)

        toolbar.addSeparator()

        restart_action = QAction("Restart Shell", self)
        restart_action.triggered.connect(lambda: self.open_repository(self.session.cwd))
        toolbar.addAction(restart_action)

        interrupt_action = QAction("Interrupt", self)
        interrupt_action.triggered.connect(lambda: self.session.handle_key('c', ctrl=True))
        toolbar.addAction(interrupt_action)

        clear_history_action = QAction("Clear History", self)
        clear_history_action.triggered.connect(self.history_manager.clear_history)
        toolbar.addAction(clear_history_action)

    def rebuild_recent_menu(self):
        self.recent_menu.clear()
        if not self.recent_store.entries:
            empty = self.recent_menu.addAction("No recent directories")
            empty.setEnabled(False)
            return
        for entry in self.recent_store.entries:
            action = self.recent_menu.addAction(self.environment.format_path(entry.path))
            action.triggered.connect(lambda _checked, p=entry.path: self.session.request_open_repository(p))

    def choose_repository(self):
        start_dir = self.session.cwd or str(Path.home())
        path = QFileDialog.getExistingDirectory(self, "Open Repository", start_dir)
        if path:
            self.session.request_open_repository(path)

    def open_repository(self, path):
        """Restart the shell in ``path`` and remember it"""
        debug_log('ui', 'Opening repository', path=path)
        if not start_session(self.session, path):
            self.show_spawn_failure(path)
            return
        self.recent_store.add_recent(path)
        self.rebuild_recent_menu()
        self.search_panel.set_root(path)
        self.terminal_view.render_blocks()
        self.terminal_view.input.setFocus()

    def show_spawn_failure(self, path):
        QMessageBox.warning(self, "Shell", f"Could not start {self.environment.shell} in {path or '~'}")

    def on_session_closed(self):
        self.statusBar().showMessage("Shell exited - use Restart Shell to start a new one")

    def on_search_result(self, path, line):
        self.session.paste(shlex.quote(path))
        self.terminal_view.input.setFocus()

    def restore_geometry_settings(self):
        geometry = self.settings.value("geometry")
        if geometry:
            self.restoreGeometry(geometry)
        splitter_state = self.settings.value("splitter_state")
        if splitter_state:
            self.main_splitter.restoreState(splitter_state)

    def closeEvent(self, event):
        """Save settings before closing"""
        self.settings.setValue("geometry", self.saveGeometry())
        self.settings.setValue("splitter_state", self.main_splitter.saveState())
        self.search_panel.controller.cancel()
        self.session.shutdown()
        event.accept()
