"""Escape stripping, semantic markers and newline normalization"""

from orbitshell.core.ansi_parser import (
    AnsiSink, AnsiStream, MarkerEvent, NewlineNormalizer, SemanticMarker,
    classify_osc, normalize_newlines, parse_directory_uri, scan, strip_ansi,
)


class RecordingSink(AnsiSink):

    def __init__(self):
        self.text = []
        self.controls = []
        self.oscs = []

    def on_text(self, text):
        self.text.append(text)

    def on_control(self, char):
        self.controls.append(char)

    def on_osc(self, payload):
        self.oscs.append(payload)


def test_strip_csi_sequences():
    assert strip_ansi('\x1b[1;31merror\x1b[0m: boom') == 'error: boom'


def test_strip_osc_with_bel_and_st():
    assert strip_ansi('\x1b]0;title\x07ok') == 'ok'
    assert strip_ansi('\x1b]0;title\x1b\\ok') == 'ok'


def test_two_char_escape_removed():
    assert strip_ansi('a\x1b=b') == 'ab'


def test_plain_text_untouched():
    assert strip_ansi('nothing to see\n') == 'nothing to see\n'


def test_classify_semantic_markers():
    assert classify_osc('133;A') == MarkerEvent(SemanticMarker.PROMPT_START)
    assert classify_osc('133;B').marker == SemanticMarker.COMMAND_START
    assert classify_osc('133;D;2') == MarkerEvent(SemanticMarker.COMMAND_FINISHED, 2)
    assert classify_osc('133;D') == MarkerEvent(SemanticMarker.COMMAND_FINISHED, None)
    assert classify_osc('133;Z') is None
    assert classify_osc('0;title') is None


def test_scan_reports_markers():
    text, markers = scan('\x1b]133;D;0\x07\x1b]133;A\x07$ ')
    assert text == '$ '
    assert [m.marker for m in markers] == [SemanticMarker.COMMAND_FINISHED, SemanticMarker.PROMPT_START]
    assert markers[0].exit_code == 0


def test_parse_directory_uri():
    assert parse_directory_uri('7;file://myhost/home/me/my%20dir') == '/home/me/my dir'
    assert parse_directory_uri('7;http://x/y') is None
    assert parse_directory_uri('133;A') is None
    assert parse_directory_uri('7;') is None


def test_sequence_split_across_chunks():
    stream = AnsiStream()
    sink = RecordingSink()
    stream.feed('before\x1b[3', sink)
    assert stream.pending
    stream.feed('1mafter\x1b]133;', sink)
    stream.feed('A\x07', sink)
    assert not stream.pending
    assert ''.join(sink.text) == 'beforeafter'
    assert sink.oscs == ['133;A']


def test_control_characters_routed_separately():
    sink = RecordingSink()
    AnsiStream().feed('a\x07b\tc\r\n', sink)
    assert sink.controls == ['\x07']
    assert ''.join(sink.text) == 'ab\tc\r\n'


def test_reset_drops_pending_sequence():
    stream = AnsiStream()
    sink = RecordingSink()
    stream.feed('\x1b]7;file://h/tmp', sink)
    stream.reset()
    stream.feed('text', sink)
    assert sink.oscs == []
    assert sink.text == ['text']


def test_normalize_newlines():
    assert normalize_newlines('a\r\nb\rc\n') == 'a\nb\nc\n'


def test_newline_normalizer_joins_split_crlf():
    normalizer = NewlineNormalizer()
    assert normalizer.feed('line\r') == 'line'
    assert normalizer.feed('\nnext') == '\nnext'
    assert normalizer.flush() == ''


def test_newline_normalizer_flushes_lone_cr():
    normalizer = NewlineNormalizer()
    normalizer.feed('end\r')
    assert normalizer.flush() == '\n'
