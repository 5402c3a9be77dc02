"""One shell tab: the pty, its output blocks and the command input"""

import codecs
from functools import partial
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from PyQt5.QtCore import QObject, pyqtSignal

from orbitshell.core import git_status
from orbitshell.core.block_processor import BlockProcessor
from orbitshell.core.debug_logger import debug_error, debug_log
from orbitshell.core.editor_state import EditorState
from orbitshell.core.pty_session import PtySession, SpawnError
from orbitshell.core.suggestion_engine import (
    SuggestionEngine, SuggestionItem, SuggestSource, accept, cycle, ghost_text,
)
from orbitshell.core.terminal_buffer import TerminalBuffer

HISTORY_MENU_SIZE = 8
PARENT_ENTRY_NAME = '.. (Parent Directory)'


@dataclass
class PathEntry:
    name: str
    path: Path
    is_dir: bool = True


@dataclass
class PathPicker:
    """Directory chooser overlay; accepting runs ``cd`` in the shell"""

    cwd: Path
    query: str = ''
    entries: List[PathEntry] = field(default_factory=list)
    selected: int = 0

    def populate(self):
        query = self.query.lower()
        entries = []
        parent = self.cwd.parent
        if parent != self.cwd:
            entries.append(PathEntry(PARENT_ENTRY_NAME, parent))
        try:
            children = [
                PathEntry(child.name, child)
                for child in self.cwd.iterdir()
                if child.is_dir() and (not query or query in child.name.lower())
            ]
        except OSError:
            children = []
        children.sort(key=lambda entry: entry.name.lower())
        self.entries = entries + children
        self.selected = min(self.selected, max(len(self.entries) - 1, 0))

    @property
    def items(self):
        return self.entries

    def command(self) -> Optional[str]:
        if not self.entries:
            return None
        entry = self.entries[self.selected]
        if not entry.is_dir:
            return None
        return f'cd "{entry.path}"'


@dataclass
class BranchPicker:
    """Branch chooser overlay; accepting runs ``git checkout``"""

    all_branches: List[str]
    query: str = ''
    branches: List[str] = field(default_factory=list)
    selected: int = 0

    def populate(self):
        query = self.query.lower()
        if query:
            self.branches = [b for b in self.all_branches if query in b.lower()]
        else:
            self.branches = list(self.all_branches)
        self.selected = min(self.selected, max(len(self.branches) - 1, 0))

    @property
    def items(self):
        return self.branches

    def command(self) -> Optional[str]:
        if not self.branches:
            return None
        return f"git checkout {self.branches[self.selected]}"


class TerminalSession(QObject):
    """Owner of a shell tab.

    Wires ``PtySession`` output into the ``BlockProcessor`` and routes key
    presses to the input ``EditorState``, the history menu, the completion
    list and the picker overlays. Key names are toolkit independent
    (``'enter'``, ``'left'``, ``'backspace'`` ...).
    """

    cwd_changed = pyqtSignal(str)
    open_repository = pyqtSignal(str)
    status_changed = pyqtSignal(object)
    output_changed = pyqtSignal()
    input_changed = pyqtSignal()
    session_closed = pyqtSignal()

    def __init__(self, environment, history, cols=80, rows=24, scrollback_lines=10000,
                 status_provider=git_status.get_status, branch_provider=git_status.get_branches,
                 engine: Optional[SuggestionEngine] = None, parent=None):
        super().__init__(parent)
        self.environment = environment
        self.history = history
        self.cols = cols
        self.rows = rows
        self.branch_provider = branch_provider

        self.processor = BlockProcessor(
            cwd=str(environment.home) if environment.home else '',
            status_provider=status_provider,
            path_resolver=environment.expand_tilde,
        )
        self.buffer = TerminalBuffer(scrollback_lines)
        self.editor = EditorState()
        self.engine = engine or SuggestionEngine(history, environment)

        self.pty: Optional[PtySession] = None
        self.reader = None
        self._decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')

        self.suggestions: List[SuggestionItem] = []
        self.suggest_index = 0
        self.history_open = False
        self.history_items: List[SuggestionItem] = []
        self.history_index = 0
        self.overlay = None

        self.processor.cwd_changed.connect(self.cwd_changed)
        self.processor.status_changed.connect(self.status_changed)
        self.processor.blocks_changed.connect(self.output_changed)
        self.processor.prompt_ready.connect(self._on_prompt_ready)

    # Session lifecycle

    @property
    def cwd(self):
        return self.processor.cwd

    @property
    def current_path(self):
        """Display form of the working directory"""
        if not self.processor.cwd:
            return '~'
        return self.environment.format_path(self.processor.cwd)

    @property
    def blocks(self):
        return self.processor.blocks

    @property
    def input_visible(self):
        return self.processor.input_visible

    @property
    def status(self):
        return self.processor.status

    @property
    def newline(self):
        # a pty translates CR itself; pipes need the full sequence
        if self.pty is not None and not self.pty.uses_pty:
            return b'\r\n'
        return b'\r'

    def start(self, path=None):
        """(Re)start the shell in ``path`` (home when None). Raises ``SpawnError``."""
        self.shutdown()
        cwd = Path(path) if path else self.environment.home
        session, reader = PtySession.open(self.cols, self.rows, cwd=cwd, environment=self.environment)
        self.pty = session
        self.reader = reader
        self._decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        self.buffer.clear()
        self.processor.reset(str(cwd) if cwd else '')
        self._reset_input()
        self.overlay = None
        self.processor.refresh_status()

        reader.output_received.connect(partial(self._on_output, reader))
        reader.stream_closed.connect(partial(self._on_stream_closed, reader))
        reader.start()
        debug_log('terminal', 'Session started', cwd=str(cwd))
        self.input_changed.emit()
        return session

    def shutdown(self):
        """Stop the reader and close the shell"""
        reader, self.reader = self.reader, None
        if reader is not None:
            reader.output_received.disconnect()
            reader.stream_closed.disconnect()
            reader.stop()
            reader.wait()
        session, self.pty = self.pty, None
        if session is not None:
            session.close()

    def write(self, data: bytes):
        if self.pty is not None:
            self.pty.write(data)

    def resize(self, cols, rows):
        self.cols, self.rows = cols, rows
        if self.pty is not None:
            self.pty.resize(cols, rows)

    def _on_output(self, reader, data):
        # already queued by a reader that a restart replaced
        if reader is not self.reader:
            return
        text = self._decoder.decode(data)
        if not text:
            return
        self.buffer.push_output(text)
        self.processor.feed(text)

    def _on_stream_closed(self, reader):
        if reader is not self.reader:
            return
        tail = self._decoder.decode(b'', final=True)
        if tail:
            self.buffer.push_output(tail)
            self.processor.feed(tail)
        self.buffer.flush()
        self.processor.stream_closed()
        debug_log('terminal', 'Output stream closed')
        self.session_closed.emit()

    def _on_prompt_ready(self):
        self.refresh_suggestions()
        self.input_changed.emit()

    def request_open_repository(self, path):
        self.open_repository.emit(str(path))

    # Command submission

    def _reset_input(self):
        self.editor.clear()
        self.history_open = False
        self.history_items = []
        self.history_index = 0
        self.suggestions = []
        self.suggest_index = 0

    def commit_input(self):
        """Enter: run the input, or send a bare newline when it is blank"""
        command = self.editor.text.strip()
        if not command:
            self.write(self.newline)
            self.editor.clear()
            self.input_changed.emit()
            return None
        return self.run_command(command)

    def run_command(self, command):
        command = command.strip()
        if not command:
            return None
        self.history.push(command)
        block = self.processor.begin_command(command)
        self.write(command.encode('utf-8') + self.newline)
        self._reset_input()
        self.overlay = None
        self.input_changed.emit()
        return block

    # Completion

    def refresh_suggestions(self):
        self.suggestions = self.engine.suggest(self.editor.text, self.editor.cursor, self.processor.cwd)
        self.suggest_index = 0

    @property
    def ghost_text(self):
        return ghost_text(self.editor.text, self.editor.cursor, self.editor.has_selection(),
                          self.suggestions, self.suggest_index) or ''

    def has_suggestion(self):
        if self.editor.has_selection():
            return False
        if self.ghost_text:
            return True
        if self.suggestions:
            return self.suggestions[min(self.suggest_index, len(self.suggestions) - 1)].insert_text != self.editor.text
        return False

    def accept_suggestion(self):
        if not accept(self.editor, self.suggestions, self.suggest_index):
            return False
        self.editor.clear_selection()
        self._after_edit()
        return True

    def cycle_suggestion(self):
        self.suggest_index = cycle(self.suggest_index, len(self.suggestions))

    # History menu

    def refresh_history_menu(self):
        if not self.history_open:
            return
        prefix, _ = self.editor.split_at_cursor()
        self.history_items = [
            SuggestionItem(command, command, SuggestSource.HISTORY)
            for command in self.history.prefix_matches(prefix, HISTORY_MENU_SIZE)
        ]
        if not self.history_items:
            self.history_open = False
        else:
            self.history_index = min(self.history_index, len(self.history_items) - 1)

    def open_or_step_history(self, up):
        if not self.history_open:
            self.history_open = True
            self.history_index = 0
            self.refresh_history_menu()
            return
        if not self.history_items:
            self.history_open = False
            return
        if up:
            self.history_index = min(self.history_index + 1, len(self.history_items) - 1)
        elif self.history_index == 0:
            self.history_open = False
        else:
            self.history_index -= 1

    def accept_history_item(self):
        if not self.history_items:
            self.history_open = False
            return False
        item = self.history_items[min(self.history_index, len(self.history_items) - 1)]
        self.editor.set_text(item.insert_text)
        self.history_open = False
        self.history_items = []
        self.refresh_suggestions()
        return True

    # Pickers

    def open_path_picker(self):
        if not self.input_visible:
            return None
        cwd = self.environment.expand_tilde(self.processor.cwd) if self.processor.cwd else Path('.')
        picker = PathPicker(cwd=Path(cwd))
        picker.populate()
        self.overlay = picker
        return picker

    def open_branch_picker(self):
        if not self.input_visible:
            return None
        branches = self.branch_provider(self.processor.cwd) if self.processor.cwd else []
        if not branches:
            return None
        picker = BranchPicker(all_branches=branches)
        picker.populate()
        self.overlay = picker
        return picker

    def accept_overlay_selection(self):
        picker, self.overlay = self.overlay, None
        if picker is None:
            return None
        command = picker.command()
        if command is None:
            return None
        return self.run_command(command)

    def _handle_overlay_key(self, key, text, ctrl):
        picker = self.overlay
        if key == 'escape':
            self.overlay = None
        elif key == 'backspace':
            picker.query = picker.query[:-1]
            picker.selected = 0
            picker.populate()
        elif key == 'enter':
            self.accept_overlay_selection()
        elif key == 'up':
            if picker.selected > 0:
                picker.selected -= 1
        elif key == 'down':
            if picker.selected + 1 < len(picker.items):
                picker.selected += 1
        elif text and not ctrl:
            picker.query += text
            picker.selected = 0
            picker.populate()
        return True

    # Key routing

    def _after_edit(self):
        self.refresh_suggestions()
        self.refresh_history_menu()
        self.input_changed.emit()

    def handle_key(self, key, text='', ctrl=False, shift=False):
        """Route a key press; returns True when it was consumed"""
        if self.overlay is not None:
            handled = self._handle_overlay_key(key, text, ctrl)
            self.input_changed.emit()
            return handled

        if ctrl and key == 'a':
            self.editor.select_all()
            self.input_changed.emit()
            return True

        if ctrl and len(key) == 1 and key.isalpha() and key.isascii():
            # Ctrl+letter goes straight to the shell as a control code
            self.write(bytes([ord(key.lower()) - ord('a') + 1]))
            return True

        if not self.input_visible:
            if key == 'escape' and self.pty is not None:
                self.pty.interrupt()
                return True
            return False

        editor = self.editor
        if key == 'enter':
            if self.history_open:
                self.accept_history_item()
            else:
                self.commit_input()
            self.input_changed.emit()
            return True
        if key == 'backspace':
            if editor.delete_backward():
                self._after_edit()
            return True
        if key == 'delete':
            if editor.delete_forward():
                self._after_edit()
            return True
        if key == 'tab':
            if self.has_suggestion():
                self.accept_suggestion()
            return True
        if key == 'left':
            editor.move_left(extend=shift, word=ctrl)
        elif key == 'right':
            if not shift and not ctrl and not editor.has_selection() and self.has_suggestion():
                self.accept_suggestion()
            else:
                editor.move_right(extend=shift, word=ctrl)
        elif key == 'home':
            editor.move_home()
        elif key == 'end':
            editor.move_end()
        elif key in ('up', 'down'):
            self.open_or_step_history(key == 'up')
            self.input_changed.emit()
            return True
        elif key == 'escape':
            if self.history_open:
                self.history_open = False
            else:
                editor.clear_selection()
        elif text:
            editor.insert_text(text)
            self._after_edit()
            return True
        else:
            return False

        if key in ('left', 'right', 'home', 'end'):
            self.history_open = False
        self.input_changed.emit()
        return True

    def paste(self, text):
        """Insert clipboard text; line breaks become spaces"""
        text = text.replace('\r\n', ' ').replace('\n', ' ').replace('\r', ' ')
        if text:
            self.editor.insert_text(text)
            self._after_edit()

    def copy_selection(self):
        return self.editor.selected_text()


def start_session(session, path=None):
    """Start ``session``, logging instead of raising on failure; returns success"""
    try:
        session.start(path)
        return True
    except SpawnError as e:
        debug_error('terminal', 'Failed to start shell', exception=e, path=str(path))
        return False
