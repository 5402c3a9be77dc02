"""Scrollback segmentation"""

from orbitshell.core.ansi_parser import SemanticMarker
from orbitshell.core.terminal_buffer import TerminalBuffer


def test_first_segment_joins_in_progress_line():
    buf = TerminalBuffer()
    buf.push_output('hel')
    buf.push_output('lo\nwor')
    buf.push_output('ld\n')
    assert buf.lines == ['hello', 'world', '']


def test_escapes_stripped_and_markers_returned():
    buf = TerminalBuffer()
    markers = buf.push_output('\x1b[32mok\x1b[0m\r\n\x1b]133;D;1\x07')
    assert buf.lines == ['ok', '']
    assert markers[0].marker == SemanticMarker.COMMAND_FINISHED
    assert markers[0].exit_code == 1


def test_crlf_split_across_chunks_is_one_newline():
    buf = TerminalBuffer()
    buf.push_output('a\r')
    buf.push_output('\nb')
    assert buf.lines == ['a', 'b']


def test_capacity_drops_oldest_lines():
    buf = TerminalBuffer(max_lines=3)
    buf.push_output('1\n2\n3\n4\n5')
    assert buf.lines == ['3', '4', '5']
    assert len(buf) == 3


def test_flush_and_clear():
    buf = TerminalBuffer()
    buf.push_output('tail\r')
    buf.flush()
    assert buf.lines == ['tail', '']
    buf.clear()
    assert buf.lines == []
    assert buf.text() == ''
