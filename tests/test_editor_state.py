"""Caret, selection and word movement of the input model"""

import random

import pytest

from orbitshell.core.editor_state import EditorState, is_word_char


def test_word_chars():
    assert is_word_char('a')
    assert is_word_char('_')
    assert is_word_char('-')
    assert is_word_char('.')
    assert not is_word_char('/')
    assert not is_word_char(' ')


def test_insert_replaces_selection():
    ed = EditorState('hello world')
    ed.set_selection_from_anchor(0, 5)
    ed.insert_text('bye')
    assert ed.text == 'bye world'
    assert ed.cursor == 3
    assert not ed.has_selection()


def test_insert_at_cursor():
    ed = EditorState('gt status')
    ed.cursor = 1
    ed.insert_text('i')
    assert ed.text == 'git status'
    assert ed.cursor == 2


def test_backspace_at_start_is_noop():
    ed = EditorState('abc')
    ed.cursor = 0
    assert not ed.delete_backward()
    assert ed.text == 'abc'
    assert ed.cursor == 0


def test_backspace_deletes_previous_char():
    ed = EditorState('abc')
    assert ed.delete_backward()
    assert ed.text == 'ab'
    assert ed.cursor == 2


def test_delete_forward():
    ed = EditorState('abc')
    ed.cursor = 1
    assert ed.delete_forward()
    assert ed.text == 'ac'
    assert ed.cursor == 1
    ed.move_end()
    assert not ed.delete_forward()


def test_backspace_removes_selection():
    ed = EditorState('abcdef')
    ed.set_selection_from_anchor(4, 1)
    assert ed.delete_backward()
    assert ed.text == 'aef'
    assert ed.cursor == 1


def test_normalized_selection_orders_and_drops_empty():
    ed = EditorState('abcdef')
    ed.selection = (5, 2)
    assert ed.normalized_selection() == (2, 5)
    ed.selection = (3, 3)
    assert ed.normalized_selection() is None
    ed.selection = (2, 99)
    assert ed.normalized_selection() == (2, 6)


def test_select_all_on_empty_text_does_nothing():
    ed = EditorState('')
    ed.select_all()
    assert ed.selection is None


def test_select_all():
    ed = EditorState('ls -la')
    ed.cursor = 0
    ed.select_all()
    assert ed.selected_text() == 'ls -la'
    assert ed.cursor == 6


def test_word_left_and_right():
    ed = EditorState('git commit -m msg')
    assert ed.word_left(len(ed.text)) == 14
    assert ed.word_left(14) == 11
    assert ed.word_right(0) == 3
    assert ed.word_right(3) == 10


def test_word_movement_stops_at_punctuation():
    ed = EditorState('cd foo;')
    # ';' is outside the word class, so neither direction crosses it
    assert ed.word_left(7) == 7
    assert ed.word_right(6) == 6
    assert ed.word_left(6) == 3
    assert ed.word_right(2) == 6


def test_shift_arrow_extends_from_anchor():
    ed = EditorState('abcdef')
    ed.cursor = 2
    ed.move_right(extend=True)
    ed.move_right(extend=True)
    assert ed.normalized_selection() == (2, 4)
    ed.move_left(extend=True)
    assert ed.normalized_selection() == (2, 3)
    assert ed.anchor == 2


def test_plain_arrow_collapses_selection():
    ed = EditorState('abcdef')
    ed.set_selection_from_anchor(1, 4)
    ed.move_left()
    assert ed.cursor == 1
    assert ed.selection is None

    ed.set_selection_from_anchor(1, 4)
    ed.move_right()
    assert ed.cursor == 4
    assert ed.selection is None


def test_ctrl_shift_left_selects_word():
    ed = EditorState('echo hello')
    ed.move_left(extend=True, word=True)
    assert ed.selected_text() == 'hello'


def test_home_end_clear_selection():
    ed = EditorState('abc')
    ed.select_all()
    ed.move_home()
    assert ed.cursor == 0
    assert not ed.has_selection()
    ed.move_end()
    assert ed.cursor == 3


def test_split_at_cursor():
    ed = EditorState('abcd')
    ed.cursor = 2
    assert ed.split_at_cursor() == ('ab', 'cd')


def test_caret_stays_in_bounds_through_edits():
    rng = random.Random(7)
    ed = EditorState()
    for _ in range(500):
        action = rng.choice(['insert', 'backspace', 'left', 'right', 'jump'])
        if action == 'insert':
            ed.insert_text(rng.choice(['a', 'xy', ' ', 'é', '✓ ok', '']))
        elif action == 'backspace':
            ed.delete_backward()
        elif action == 'left':
            ed.move_left(extend=rng.random() < 0.3, word=rng.random() < 0.3)
        elif action == 'right':
            ed.move_right(extend=rng.random() < 0.3, word=rng.random() < 0.3)
        else:
            ed.cursor = rng.randint(0, len(ed.text))
            ed.clear_selection()
        assert 0 <= ed.cursor <= len(ed.text)


@pytest.mark.parametrize('typed', ['ls -la', 'grün größe', 'echo ✓ 日本'])
def test_backspacing_typed_text_restores_input(typed):
    ed = EditorState('cd src')
    ed.cursor = 2
    ed.insert_text(typed)
    assert ed.text == 'cd' + typed + ' src'
    for _ in range(len(typed)):
        ed.delete_backward()
    assert ed.text == 'cd src'
    assert ed.cursor == 2
