"""Line segmentation of sanitized output with a capped scrollback"""

from collections import deque

from orbitshell.core.ansi_parser import AnsiSink, AnsiStream, NewlineNormalizer, classify_osc


class _BufferSink(AnsiSink):

    def __init__(self):
        self.parts = []
        self.markers = []

    def on_text(self, text):
        self.parts.append(text)

    def on_osc(self, payload):
        event = classify_osc(payload)
        if event is not None:
            self.markers.append(event)


class TerminalBuffer:
    """Raw scrollback of everything the shell printed.

    The last line is the in-progress line: the first segment of each chunk is
    appended to it, further segments start new lines. A chunk that ends with a
    newline leaves an empty in-progress line behind.
    """

    DEFAULT_MAX_LINES = 10000

    def __init__(self, max_lines=DEFAULT_MAX_LINES):
        self.max_lines = max(1, int(max_lines))
        self._lines = deque(maxlen=self.max_lines)
        self._stream = AnsiStream()
        self._newlines = NewlineNormalizer()

    def push_line(self, line):
        # deque(maxlen) drops from the left when full
        self._lines.append(line)

    def push_output(self, chunk):
        """Append a raw chunk; returns the semantic markers found in it"""
        sink = _BufferSink()
        self._stream.feed(chunk, sink)
        text = self._newlines.feed(''.join(sink.parts))
        self.push_text(text)
        return sink.markers

    def push_text(self, text):
        """Append already sanitized, newline-normalized text"""
        if not text:
            return
        segments = text.split('\n')
        if self._lines:
            self._lines[-1] += segments[0]
        else:
            self.push_line(segments[0])
        for segment in segments[1:]:
            self.push_line(segment)

    def flush(self):
        self.push_text(self._newlines.flush())

    @property
    def lines(self):
        return list(self._lines)

    def __len__(self):
        return len(self._lines)

    def clear(self):
        self._lines.clear()
        self._stream.reset()
        self._newlines = NewlineNormalizer()

    def text(self):
        return '\n'.join(self._lines)
