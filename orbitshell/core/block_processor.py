"""Segmentation of shell output into command blocks

The processor sits between the pty reader and the view. Each chunk goes
through ``AnsiStream``; the remaining text is split into lines which are
appended to the block of the most recently issued command. Prompt lines and
the echo of the submitted command are filtered out, and every prompt closes
the current block.

Per command the processor goes through three states:

- AWAITING_ECHO: just submitted, the next line equal to the command is dropped
- ACCUMULATING: lines are appended to the current block
- CLOSED: a prompt (or an OSC 133 A/D marker) arrived, input is visible again
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from PyQt5.QtCore import QObject, pyqtSignal

from orbitshell.core.ansi_parser import (
    AnsiSink, AnsiStream, NewlineNormalizer, SemanticMarker, classify_osc, parse_directory_uri,
)
from orbitshell.core.debug_logger import debug_log

STATUS_REFRESH_PREFIXES = ('git checkout', 'git switch')

BRANCH_CHANGE_PHRASES = (
    'switched to branch',
    'switched to a new branch',
    'already on',
    'head is now at',
    'your branch is up to date',
)

ERROR_PHRASES = (
    'not recognized as',
    'is not recognized',
    'cannot find path',
    'categoryinfo',
    'fullyqualifiederrorid',
    'command not found',
    'exception',
    'at line:',
)

ERROR_PREFIXES = ('error:', 'erreur:', 'fehler:', 'erro:')

# user@host:path$  optionally preceded by a virtualenv/conda marker
_USER_HOST_PROMPT = re.compile(r'^(?:\([^)]*\)\s+)?[\w.-]+@[\w.-]+:(?P<path>.+?)\s*[$#%]$')
# [user@host dir]$
_BRACKET_PROMPT = re.compile(r'^(?:\([^)]*\)\s+)?\[[\w.-]+@[\w.-]+ [^\]]+\][$#%]$')


def is_error_line(line):
    s = line.strip().lower()
    return s.startswith(ERROR_PREFIXES) or any(phrase in s for phrase in ERROR_PHRASES)


def is_branch_change_line(line):
    s = line.strip().lower()
    return any(phrase in s for phrase in BRANCH_CHANGE_PHRASES)


def is_directory_header_line(line):
    """Header rows of a PowerShell directory listing"""
    trimmed = line.strip()
    return (
        trimmed.startswith(('Directory:', 'Mode', '----'))
        or ('LastWriteTime' in trimmed and 'Length' in trimmed and 'Name' in trimmed)
    )


def prompt_path(line) -> Optional[str]:
    """Working directory shown by a prompt line, when the prompt shows one"""
    trimmed = line.strip()
    if trimmed.startswith('PS ') and trimmed.endswith('>'):
        path = trimmed[3:-1].strip()
        return path or None
    match = _USER_HOST_PROMPT.match(trimmed)
    if match:
        return match.group('path').strip() or None
    return None


def is_prompt_line(line):
    trimmed = line.strip()
    if trimmed.startswith('PS ') and trimmed.endswith('>'):
        return True
    return bool(_USER_HOST_PROMPT.match(trimmed) or _BRACKET_PROMPT.match(trimmed))


def needs_status_refresh(command):
    return command.lower().startswith(STATUS_REFRESH_PREFIXES)


@dataclass
class BlockContext:
    """Working directory and repository state when a command was issued"""

    cwd: str
    branch: Optional[str] = None
    files_changed: Optional[int] = None
    added: Optional[int] = None
    deleted: Optional[int] = None
    modified: Optional[int] = None

    @classmethod
    def capture(cls, cwd, status=None):
        if status is None:
            return cls(cwd=cwd)
        return cls(
            cwd=cwd,
            branch=status.branch,
            files_changed=status.files_changed,
            added=status.added,
            deleted=status.deleted,
            modified=status.modified,
        )


@dataclass
class CommandBlock:
    command: str = ''
    output_lines: List[str] = field(default_factory=list)
    has_error: bool = False
    context: Optional[BlockContext] = None
    exit_code: Optional[int] = None


class TurnState(Enum):
    AWAITING_ECHO = 'awaiting_echo'
    ACCUMULATING = 'accumulating'
    CLOSED = 'closed'


class _SkipReason(Enum):
    ECHO = 'echo'
    PROMPT = 'prompt'
    CONTINUATION = 'continuation'


class _ProcessorSink(AnsiSink):

    def __init__(self, processor):
        self.processor = processor

    def on_text(self, text):
        self.processor._handle_text(text)

    def on_control(self, char):
        debug_log('output', 'Control character dropped', code=ord(char))

    def on_osc(self, payload):
        self.processor._handle_osc(payload)


class BlockProcessor(QObject):
    """Turns the shell's output stream into ``CommandBlock`` objects"""

    cwd_changed = pyqtSignal(str)
    status_changed = pyqtSignal(object)
    prompt_ready = pyqtSignal()
    semantic_marker = pyqtSignal(object)
    blocks_changed = pyqtSignal()

    def __init__(self, cwd='', status_provider: Optional[Callable] = None,
                 path_resolver: Optional[Callable] = None, parent=None):
        """
        Args:
            cwd: initial working directory
            status_provider: ``callable(path) -> GitStatus | None``
            path_resolver: maps a prompt path (``~/src``) to a real path
        """
        super().__init__(parent)
        self.blocks: List[CommandBlock] = []
        self.cwd = cwd
        self.status = None
        self.status_provider = status_provider
        self.path_resolver = path_resolver
        self.pending_echo: Optional[str] = None
        self.needs_status_refresh = False
        self.input_visible = True
        self.state = TurnState.ACCUMULATING

        self._stream = AnsiStream()
        self._newlines = NewlineNormalizer()
        self._in_prompt = False
        self._changed = False
        self._reset_open_line()

    def _reset_open_line(self):
        self._open_text = None
        self._open_appended = False
        self._open_skip = None

    def reset(self, cwd=None):
        """Forget all blocks and stream state (new shell)"""
        self.blocks = []
        if cwd is not None:
            self.cwd = cwd
        self.pending_echo = None
        self.needs_status_refresh = False
        self.input_visible = True
        self.state = TurnState.ACCUMULATING
        self._stream.reset()
        self._newlines = NewlineNormalizer()
        self._in_prompt = False
        self._reset_open_line()
        self.blocks_changed.emit()

    @property
    def current_block(self) -> Optional[CommandBlock]:
        return self.blocks[-1] if self.blocks else None

    def refresh_status(self):
        """Query the version control collaborator for the current directory"""
        self.needs_status_refresh = False
        if self.status_provider is None or not self.cwd:
            return self.status
        self.status = self.status_provider(self.cwd)
        self.status_changed.emit(self.status)
        return self.status

    def begin_command(self, command) -> Optional[CommandBlock]:
        """Open a block for a submitted command"""
        command = command.strip()
        if not command:
            return None
        self.needs_status_refresh = needs_status_refresh(command)
        self.pending_echo = command
        block = CommandBlock(command=command, context=BlockContext.capture(self.cwd, self.status))
        self.blocks.append(block)
        self.input_visible = False
        self.state = TurnState.AWAITING_ECHO
        # the prompt is over once a command was typed into it
        self._in_prompt = False
        self._reset_open_line()
        debug_log('commands', 'Block opened', command=command, index=len(self.blocks) - 1)
        self.blocks_changed.emit()
        return block

    def feed(self, chunk):
        """Process a decoded chunk of shell output"""
        self._changed = False
        self._stream.feed(chunk, _ProcessorSink(self))
        if self._changed:
            self.blocks_changed.emit()

    def stream_closed(self):
        self._changed = False
        # a trailing CR held back by the normalizer still ends the open line
        tail = self._newlines.flush()
        if tail and not self._in_prompt:
            self._handle_segments(tail)
        self._reset_open_line()
        if self._changed:
            self.blocks_changed.emit()

    def _ensure_block(self) -> CommandBlock:
        if not self.blocks:
            # output before the first command (shell banner)
            self.blocks.append(CommandBlock())
        return self.blocks[-1]

    def _handle_text(self, text):
        text = self._newlines.feed(text)
        if not text:
            return
        if self._in_prompt:
            debug_log('prompt', 'Prompt text suppressed', text=text)
            return
        self._handle_segments(text)

    def _handle_segments(self, text):
        segments = text.split('\n')
        last = len(segments) - 1
        for i, segment in enumerate(segments):
            completes = i < last
            if i == last and segment == '':
                # the chunk ended with a newline
                break
            self._process_piece(segment, completes)

    def _process_piece(self, piece, completes):
        full = piece if self._open_text is None else self._open_text + piece

        self._detect_prompt_cwd(full)
        if self.needs_status_refresh and is_branch_change_line(full):
            debug_log('git', 'Branch change detected', line=full.strip())
            self.refresh_status()

        reason = self._skip_reason(full)
        if reason is not None:
            if self._open_appended:
                self.blocks[-1].output_lines.pop()
                self._open_appended = False
                self._changed = True
            if reason != self._open_skip:
                self._on_skip(reason)
            self._open_skip = reason
        else:
            block = self._ensure_block()
            if self._open_appended:
                block.output_lines[-1] = full
            else:
                block.output_lines.append(full)
                self._open_appended = True
            if is_error_line(full):
                block.has_error = True
            if self.state == TurnState.AWAITING_ECHO:
                self.state = TurnState.ACCUMULATING
            self._changed = True

        if completes:
            self._reset_open_line()
        else:
            self._open_text = full

    def _skip_reason(self, full):
        trimmed = full.strip()
        echo = self.pending_echo
        if echo is not None:
            if trimmed == echo:
                self.pending_echo = None
                return _SkipReason.ECHO
            if trimmed.endswith(echo):
                head = trimmed[:-len(echo)].rstrip()
                if head and is_prompt_line(head):
                    self.pending_echo = None
                    return _SkipReason.ECHO
        if self._open_skip is not None:
            return self._open_skip
        if trimmed == '>>':
            return _SkipReason.CONTINUATION
        if is_prompt_line(trimmed):
            return _SkipReason.PROMPT
        return None

    def _on_skip(self, reason):
        if reason == _SkipReason.ECHO:
            debug_log('commands', 'Echo skipped', state=self.state.value)
            if self.state == TurnState.AWAITING_ECHO:
                self.state = TurnState.ACCUMULATING
        elif reason == _SkipReason.CONTINUATION:
            self.input_visible = True
        else:
            self._close_turn('prompt line')

    def _close_turn(self, cause):
        self.input_visible = True
        if self.state == TurnState.CLOSED:
            return
        self.state = TurnState.CLOSED
        debug_log('prompt', 'Turn closed', cause=cause)
        self.refresh_status()
        self.prompt_ready.emit()

    def _set_cwd(self, path):
        if not path or path == self.cwd:
            return
        self.cwd = path
        debug_log('directory', 'Working directory changed', cwd=path)
        self.cwd_changed.emit(path)
        self.refresh_status()

    def _detect_prompt_cwd(self, line):
        path = prompt_path(line)
        if path is None:
            return
        if self.path_resolver is not None:
            path = str(self.path_resolver(path))
        self._set_cwd(path)

    def _handle_osc(self, payload):
        path = parse_directory_uri(payload)
        if path is not None:
            self._set_cwd(path)
            return
        event = classify_osc(payload)
        if event is None:
            return
        debug_log('prompt', 'Semantic marker', marker=event.marker.name, exit_code=event.exit_code)
        self.semantic_marker.emit(event)
        if event.marker == SemanticMarker.PROMPT_START:
            self._reset_open_line()
            self._in_prompt = True
            self._close_turn('marker A')
        elif event.marker == SemanticMarker.COMMAND_START:
            self._in_prompt = False
        elif event.marker == SemanticMarker.COMMAND_FINISHED:
            block = self.current_block
            if block is not None and block.command and self.state != TurnState.CLOSED:
                block.exit_code = event.exit_code
                if event.exit_code:
                    block.has_error = True
                self._changed = True
            self._reset_open_line()
            self._close_turn('marker D')
