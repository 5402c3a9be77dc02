"""ANSI escape stripping and shell-integration marker detection

This is a filter, not a terminal emulator: CSI and OSC sequences are removed,
cursor state is never tracked. Two OSC payloads are interpreted on the way
through:

- ``133;X`` semantic markers (prompt start, command start, output start,
  command finished) announced by shells with prompt integration
- ``7;file://host/path`` working directory reports
"""

from enum import Enum
from typing import NamedTuple, Optional
from urllib.parse import unquote, urlparse

ESC = '\x1b'
BEL = '\x07'

SEMANTIC_MARKER_PREFIX = '133;'
CWD_REPORT_PREFIX = '7;'


class SemanticMarker(Enum):
    """OSC 133 sub-commands"""
    PROMPT_START = 'A'
    COMMAND_START = 'B'
    OUTPUT_START = 'C'
    COMMAND_FINISHED = 'D'


class MarkerEvent(NamedTuple):
    """A classified semantic marker"""

    marker: SemanticMarker
    exit_code: Optional[int] = None


def classify_osc(payload: str) -> Optional[MarkerEvent]:
    """Classify an OSC payload as a semantic marker, or return None"""
    if not payload.startswith(SEMANTIC_MARKER_PREFIX):
        return None
    parts = payload[len(SEMANTIC_MARKER_PREFIX):].split(';')
    try:
        marker = SemanticMarker(parts[0])
    except ValueError:
        return None
    exit_code = None
    if marker == SemanticMarker.COMMAND_FINISHED and len(parts) > 1:
        try:
            exit_code = int(parts[1])
        except ValueError:
            exit_code = None
    return MarkerEvent(marker, exit_code)


def parse_directory_uri(payload: str) -> Optional[str]:
    """Extract the path from an OSC 7 payload (``7;file://host/path``)"""
    if not payload.startswith(CWD_REPORT_PREFIX):
        return None
    uri = payload[len(CWD_REPORT_PREFIX):]
    if not uri:
        return None
    parsed = urlparse(uri)
    if parsed.scheme != 'file':
        return None
    path = unquote(parsed.path)
    return path or None


class AnsiSink:
    """Receiver for the events produced by ``AnsiStream``.

    Subclasses override what they care about; the defaults ignore everything.
    """

    def on_text(self, text):
        pass

    def on_control(self, char):
        pass

    def on_escape(self, sequence):
        pass

    def on_osc(self, payload):
        pass


class _State(Enum):
    GROUND = 0
    ESCAPE = 1
    CSI = 2
    OSC = 3
    OSC_ESCAPE = 4


class AnsiStream:
    """Single-pass scanner that keeps incomplete sequences across chunks.

    - ``ESC [`` ... final char in ``@``-``~``: CSI, discarded
    - ``ESC ]`` ... BEL or ``ESC \\``: OSC, payload reported to ``on_osc``
    - ``ESC x``: two-char escape, discarded
    - ``\\n``, ``\\r``, ``\\t`` and printable text go to ``on_text``; other C0
      controls go to ``on_control``
    """

    PASSTHROUGH_CONTROLS = '\n\r\t'

    def __init__(self):
        self._state = _State.GROUND
        self._sequence = []

    @property
    def pending(self):
        """True while an escape sequence is open at the end of the last chunk"""
        return self._state != _State.GROUND

    def reset(self):
        self._state = _State.GROUND
        self._sequence = []

    def feed(self, text, sink):
        run = []
        for ch in text:
            state = self._state
            if state == _State.GROUND:
                if ch == ESC:
                    if run:
                        sink.on_text(''.join(run))
                        run = []
                    self._state = _State.ESCAPE
                elif (ch < ' ' or ch == '\x7f') and ch not in self.PASSTHROUGH_CONTROLS:
                    if run:
                        sink.on_text(''.join(run))
                        run = []
                    sink.on_control(ch)
                else:
                    run.append(ch)
            elif state == _State.ESCAPE:
                if ch == '[':
                    self._sequence = [ESC, ch]
                    self._state = _State.CSI
                elif ch == ']':
                    self._sequence = []
                    self._state = _State.OSC
                else:
                    sink.on_escape(ESC + ch)
                    self._state = _State.GROUND
            elif state == _State.CSI:
                self._sequence.append(ch)
                if '@' <= ch <= '~':
                    sink.on_escape(''.join(self._sequence))
                    self._sequence = []
                    self._state = _State.GROUND
            elif state == _State.OSC:
                if ch == BEL:
                    self._dispatch_osc(sink)
                elif ch == ESC:
                    self._state = _State.OSC_ESCAPE
                else:
                    self._sequence.append(ch)
            else:
                # OSC_ESCAPE: only ``ESC \`` (or a BEL) terminates
                if ch == '\\' or ch == BEL:
                    self._dispatch_osc(sink)
                elif ch == ESC:
                    self._sequence.append(ESC)
                else:
                    self._sequence.append(ESC + ch)
                    self._state = _State.OSC
        if run:
            sink.on_text(''.join(run))

    def _dispatch_osc(self, sink):
        payload = ''.join(self._sequence)
        self._sequence = []
        self._state = _State.GROUND
        sink.on_osc(payload)


class _CollectingSink(AnsiSink):

    def __init__(self):
        self.parts = []
        self.markers = []

    def on_text(self, text):
        self.parts.append(text)

    def on_control(self, char):
        self.parts.append(char)

    def on_osc(self, payload):
        event = classify_osc(payload)
        if event is not None:
            self.markers.append(event)


def strip_ansi(text):
    """Remove CSI/OSC/two-char escape sequences, passing everything else through"""
    sink = _CollectingSink()
    AnsiStream().feed(text, sink)
    return ''.join(sink.parts)


def scan(text):
    """Strip ``text`` and return ``(stripped, markers)``"""
    sink = _CollectingSink()
    AnsiStream().feed(text, sink)
    return ''.join(sink.parts), sink.markers


def normalize_newlines(text):
    """``\\r\\n`` and lone ``\\r`` become ``\\n``"""
    return text.replace('\r\n', '\n').replace('\r', '\n')


class NewlineNormalizer:
    """``normalize_newlines`` for a chunked stream.

    A chunk ending in ``\\r`` is held back by one character so that a
    ``\\r\\n`` pair split across two reads yields one newline, not two.
    """

    def __init__(self):
        self._pending_cr = False

    def feed(self, text):
        if self._pending_cr:
            text = '\r' + text
            self._pending_cr = False
        if text.endswith('\r'):
            text = text[:-1]
            self._pending_cr = True
        return normalize_newlines(text)

    def flush(self):
        if self._pending_cr:
            self._pending_cr = False
            return '\n'
        return ''
