"""Sidebar panel for searching file names and contents under the working directory"""

import html
from pathlib import Path

from PyQt5.QtWidgets import QWidget, QVBoxLayout, QLineEdit, QLabel, QTreeWidget, QTreeWidgetItem
from PyQt5.QtCore import Qt, QTimer, pyqtSignal

from orbitshell.core.debug_logger import debug_log
from orbitshell.core.search_engine import SearchController, split_match

SEARCH_DEBOUNCE_MS = 200


def highlight(text, query):
    before, match, after = split_match(text, query)
    if not match:
        return html.escape(text)
    return f"{html.escape(before)}<b style='color:#f0c674'>{html.escape(match)}</b>{html.escape(after)}"


class SearchPanel(QWidget):
    """Query box plus results grouped per file"""

    result_activated = pyqtSignal(str, int)  # path, line (0 for a filename match)

    def __init__(self, rules=None, parent=None):
        super().__init__(parent)
        self.root = Path('.')
        self.controller = SearchController(rules)
        self.controller.results_changed.connect(self._render_results)
        self.controller.search_finished.connect(self._on_search_finished)

        # Debounced search to avoid a worker per keystroke
        self.search_timer = QTimer(self)
        self.search_timer.setSingleShot(True)
        self.search_timer.timeout.connect(self.run_search)

        self.init_ui()

    def init_ui(self):
        layout = QVBoxLayout(self)
        layout.setContentsMargins(5, 5, 5, 5)
        layout.setSpacing(5)

        self.setStyleSheet("""
            QWidget {
                background-color: #252526;
                color: #e0e0e0;
            }
            QLineEdit {
                background-color: #3c3c3c;
                border: 1px solid #555;
                padding: 5px;
                border-radius: 3px;
            }
            QLineEdit:focus {
                border: 1px solid #0078d4;
            }
            QTreeWidget {
                border: none;
            }
        """)

        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Search files...")
        self.search_input.textChanged.connect(lambda _: self.search_timer.start(SEARCH_DEBOUNCE_MS))
        self.search_input.returnPressed.connect(self.run_search)
        layout.addWidget(self.search_input)

        self.status_label = QLabel("")
        layout.addWidget(self.status_label)

        self.results_tree = QTreeWidget()
        self.results_tree.setHeaderHidden(True)
        self.results_tree.itemActivated.connect(self._on_item_activated)
        layout.addWidget(self.results_tree)

    def set_root(self, path):
        """Search under ``path``; re-runs the current query"""
        self.root = Path(path)
        if self.search_input.text().strip():
            self.run_search()

    def run_search(self):
        self.search_timer.stop()
        generation = self.controller.start(self.root, self.search_input.text())
        debug_log('ui', 'Search requested', generation=generation, root=str(self.root))
        self.status_label.setText("Searching..." if self.controller.pending else "")

    def _relative(self, path):
        try:
            return str(Path(path).relative_to(self.root))
        except ValueError:
            return str(path)

    def _render_results(self):
        self.results_tree.clear()
        query = self.controller.query
        for path, results in self.controller.grouped_results():
            file_item = QTreeWidgetItem(self.results_tree, [self._relative(path)])
            file_item.setData(0, Qt.UserRole, (str(path), 0))
            for result in results:
                if result.is_filename:
                    continue
                child = QTreeWidgetItem(file_item, [""])
                child.setData(0, Qt.UserRole, (str(result.path), result.line))
                label = QLabel(f"<span style='color:#808080'>{result.line}:</span> {highlight(result.snippet, query)}")
                label.setTextFormat(Qt.RichText)
                self.results_tree.setItemWidget(child, 0, label)
            file_item.setExpanded(True)
        if self.controller.pending:
            self.status_label.setText(f"Searching... {len(self.controller.results)} results")

    def _on_search_finished(self, generation):
        count = len(self.controller.results)
        limit = self.controller.rules.search_limit
        suffix = " (limit reached)" if count >= limit else ""
        self.status_label.setText(f"{count} results{suffix}")

    def _on_item_activated(self, item, _column):
        data = item.data(0, Qt.UserRole)
        if data:
            path, line = data
            self.result_activated.emit(path, line)
