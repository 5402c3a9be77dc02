"""Block list and command input for a TerminalSession"""

import html

from PyQt5.QtWidgets import (QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton,
                             QTextBrowser, QListWidget, QApplication)
from PyQt5.QtCore import Qt, QEvent, QRectF
from PyQt5.QtGui import QColor, QFont, QFontMetricsF, QKeyEvent, QPainter

from orbitshell.core.block_processor import is_directory_header_line, is_error_line
from orbitshell.core.debug_logger import debug_log

# Qt key -> toolkit independent key name used by TerminalSession.handle_key
KEY_NAMES = {
    Qt.Key_Return: 'enter',
    Qt.Key_Enter: 'enter',
    Qt.Key_Backspace: 'backspace',
    Qt.Key_Delete: 'delete',
    Qt.Key_Tab: 'tab',
    Qt.Key_Left: 'left',
    Qt.Key_Right: 'right',
    Qt.Key_Home: 'home',
    Qt.Key_End: 'end',
    Qt.Key_Up: 'up',
    Qt.Key_Down: 'down',
    Qt.Key_Escape: 'escape',
}

ERROR_COLOR = '#ff7b72'
HEADER_COLOR = '#8bd06f'
TEXT_COLOR = '#dddddd'


def key_name(event: QKeyEvent):
    name = KEY_NAMES.get(event.key())
    if name is not None:
        return name
    if Qt.Key_A <= event.key() <= Qt.Key_Z:
        return chr(event.key()).lower()
    return event.text()


def render_block_html(block):
    parts = []
    if block.command:
        ctx = block.context
        header = html.escape(ctx.cwd) if ctx else ''
        if ctx and ctx.branch:
            header += f" <span style='color:#c678dd'>{html.escape(ctx.branch)}</span>"
            if ctx.files_changed:
                header += f" <span style='color:#808080'>+{ctx.added} -{ctx.deleted} ~{ctx.modified}</span>"
        parts.append(f"<div style='color:#808080'>{header}</div>")
        parts.append(f"<div style='color:#61afef'><b>{html.escape(block.command)}</b></div>")
    for line in block.output_lines:
        if block.has_error and is_error_line(line):
            color = ERROR_COLOR
        elif is_directory_header_line(line):
            color = HEADER_COLOR
        else:
            color = TEXT_COLOR
        parts.append(f"<div style='color:{color}; white-space:pre'>{html.escape(line) or '&nbsp;'}</div>")
    border = ERROR_COLOR if block.has_error else '#3c3c3c'
    return f"<div style='border-left:3px solid {border}; margin-bottom:8px'>{''.join(parts)}</div>"


class CommandInput(QWidget):
    """Single-line input drawn from the session's EditorState, with ghost text"""

    def __init__(self, session, parent=None):
        super().__init__(parent)
        self.session = session
        self.setFocusPolicy(Qt.StrongFocus)
        self.font = QFont('Menlo', 13)
        self.font.setStyleHint(QFont.Monospace)
        self.setMinimumHeight(32)

    def keyPressEvent(self, event: QKeyEvent):
        modifiers = event.modifiers()
        ctrl = bool(modifiers & (Qt.ControlModifier | Qt.MetaModifier))
        shift = bool(modifiers & Qt.ShiftModifier)
        if ctrl and event.key() == Qt.Key_V:
            self.session.paste(QApplication.clipboard().text())
        elif ctrl and event.key() == Qt.Key_C and self.session.editor.has_selection():
            QApplication.clipboard().setText(self.session.copy_selection())
        elif not self.session.handle_key(key_name(event), event.text(), ctrl=ctrl, shift=shift):
            super().keyPressEvent(event)
            return
        self.update()

    def event(self, event):
        # Keep Tab for completion instead of focus changes
        if event.type() == QEvent.KeyPress and event.key() in (Qt.Key_Tab, Qt.Key_Backtab):
            self.keyPressEvent(event)
            return True
        return super().event(event)

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setFont(self.font)
        painter.fillRect(self.rect(), QColor('#1e1e1e'))
        metrics = QFontMetricsF(self.font)
        editor = self.session.editor
        x0 = 8.0
        baseline = (self.height() + metrics.ascent() - metrics.descent()) / 2

        if not self.session.input_visible:
            painter.setPen(QColor('#808080'))
            painter.drawText(int(x0), int(baseline), "running... (Esc to interrupt)")
            return

        sel = editor.normalized_selection()
        if sel is not None:
            a, b = sel
            left = x0 + metrics.horizontalAdvance(editor.text[:a])
            width = metrics.horizontalAdvance(editor.text[a:b])
            painter.fillRect(QRectF(left, 4, width, self.height() - 8), QColor('#264f78'))

        before, after = editor.split_at_cursor()
        painter.setPen(QColor('#e5e5e5'))
        painter.drawText(int(x0), int(baseline), before)
        cursor_x = x0 + metrics.horizontalAdvance(before)

        ghost = self.session.ghost_text
        if ghost:
            painter.setPen(QColor('#5c6370'))
            painter.drawText(int(cursor_x), int(baseline), ghost)
        after_x = cursor_x + metrics.horizontalAdvance(ghost)
        painter.setPen(QColor('#e5e5e5'))
        painter.drawText(int(after_x), int(baseline), after)

        if self.hasFocus():
            painter.fillRect(QRectF(cursor_x, 6, 2, self.height() - 12), QColor('#00ff00'))


class TerminalView(QWidget):
    """Blocks, the prompt bar, the input line and the history/picker popups"""

    def __init__(self, session, parent=None):
        super().__init__(parent)
        self.session = session
        self.init_ui()
        session.output_changed.connect(self.render_blocks)
        session.input_changed.connect(self.refresh_input)
        session.status_changed.connect(lambda _status: self.refresh_prompt_bar())
        session.cwd_changed.connect(lambda _path: self.refresh_prompt_bar())

    def init_ui(self):
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)
        self.setStyleSheet("""
            QTextBrowser { background-color: #1e1e1e; color: #dddddd; border: none; }
            QLabel { color: #c0c0c0; }
            QPushButton { background-color: #3c3c3c; color: #e0e0e0; border: 1px solid #555;
                          padding: 2px 8px; border-radius: 3px; }
            QListWidget { background-color: #252526; color: #e0e0e0; border: 1px solid #3c3c3c; }
        """)

        self.blocks_view = QTextBrowser()
        self.blocks_view.setFont(QFont('Menlo', 12))
        layout.addWidget(self.blocks_view, 1)

        self.popup = QListWidget()
        self.popup.setMaximumHeight(160)
        self.popup.setVisible(False)
        self.popup.setFocusPolicy(Qt.NoFocus)
        layout.addWidget(self.popup)

        bar = QHBoxLayout()
        bar.setContentsMargins(8, 4, 8, 4)
        self.path_button = QPushButton("~")
        self.path_button.setToolTip("Change directory")
        self.path_button.clicked.connect(self.open_path_picker)
        bar.addWidget(self.path_button)
        self.branch_button = QPushButton("")
        self.branch_button.setToolTip("Switch branch")
        self.branch_button.clicked.connect(self.open_branch_picker)
        bar.addWidget(self.branch_button)
        self.status_label = QLabel("")
        bar.addWidget(self.status_label)
        bar.addStretch()
        layout.addLayout(bar)

        self.input = CommandInput(self.session)
        layout.addWidget(self.input)
        self.refresh_prompt_bar()

    def render_blocks(self):
        body = ''.join(render_block_html(block) for block in self.session.blocks)
        self.blocks_view.setHtml(f"<div style='font-family:Menlo,monospace'>{body}</div>")
        scroll_bar = self.blocks_view.verticalScrollBar()
        scroll_bar.setValue(scroll_bar.maximum())
        debug_log('ui', 'Blocks rendered', blocks=len(self.session.blocks))

    def refresh_prompt_bar(self):
        self.path_button.setText(self.session.current_path)
        status = self.session.status
        if status is None:
            self.branch_button.setVisible(False)
            self.status_label.setText("")
            return
        self.branch_button.setVisible(True)
        self.branch_button.setText(status.branch)
        if status.files_changed:
            self.status_label.setText(
                f"{status.files_changed} files  +{status.added} -{status.deleted} ~{status.modified}")
        else:
            self.status_label.setText("")

    def refresh_input(self):
        session = self.session
        self.popup.clear()
        if session.overlay is not None:
            for item in session.overlay.items:
                self.popup.addItem(item if isinstance(item, str) else item.name)
            self.popup.setCurrentRow(session.overlay.selected)
            self.popup.setVisible(True)
        elif session.history_open and session.history_items:
            for item in session.history_items:
                self.popup.addItem(item.display)
            self.popup.setCurrentRow(session.history_index)
            self.popup.setVisible(True)
        else:
            self.popup.setVisible(False)
        self.refresh_prompt_bar()
        self.input.update()

    def open_path_picker(self):
        if self.session.open_path_picker() is not None:
            self.refresh_input()
            self.input.setFocus()

    def open_branch_picker(self):
        if self.session.open_branch_picker() is not None:
            self.refresh_input()
            self.input.setFocus()

    def resizeEvent(self, event):
        super().resizeEvent(event)
        metrics = QFontMetricsF(self.blocks_view.font())
        char_width = metrics.horizontalAdvance('M') or 1
        viewport = self.blocks_view.viewport().size()
        cols = max(int(viewport.width() / char_width), 20)
        rows = max(int(viewport.height() / (metrics.height() or 1)), 5)
        if (cols, rows) != (self.session.cols, self.session.rows):
            self.session.resize(cols, rows)
