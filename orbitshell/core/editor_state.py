"""Cursor, selection and text model for single-line editable fields"""

from typing import Optional, Tuple


def is_word_char(ch):
    return ch.isalnum() or ch in '_-.'


class EditorState:
    """Text with a caret and an optional selection.

    Positions are string indices. ``selection`` is kept unnormalized as
    ``(anchor, head)`` so that extending it with shift+arrow keeps the anchor;
    use ``normalized_selection()`` for ``(start, end)``.
    """

    def __init__(self, text=''):
        self.text = text
        self.cursor = len(text)
        self.selection: Optional[Tuple[int, int]] = None
        self.anchor: Optional[int] = None

    def __repr__(self):
        return f"EditorState(text={self.text!r}, cursor={self.cursor}, selection={self.selection})"

    def _clamp(self, pos):
        return max(0, min(pos, len(self.text)))

    def set_text(self, text):
        self.text = text
        self.cursor = len(text)
        self.clear_selection()

    def clear(self):
        self.set_text('')

    def clear_selection(self):
        self.selection = None
        self.anchor = None

    def normalized_selection(self):
        """``(start, end)`` with ``start < end``, or None when nothing is selected"""
        if self.selection is None:
            return None
        a, b = self.selection
        a, b = self._clamp(a), self._clamp(b)
        if a > b:
            a, b = b, a
        if a == b:
            return None
        return a, b

    def has_selection(self):
        return self.normalized_selection() is not None

    def selected_text(self):
        sel = self.normalized_selection()
        if sel is None:
            return ''
        a, b = sel
        return self.text[a:b]

    def select_all(self):
        if not self.text:
            return
        self.selection = (0, len(self.text))
        self.anchor = 0
        self.cursor = len(self.text)

    def set_selection_from_anchor(self, anchor, cursor):
        anchor = self._clamp(anchor)
        cursor = self._clamp(cursor)
        self.anchor = anchor
        self.cursor = cursor
        self.selection = (anchor, cursor)

    def delete_selection_if_any(self):
        sel = self.normalized_selection()
        if sel is None:
            self.clear_selection()
            return False
        a, b = sel
        self.text = self.text[:a] + self.text[b:]
        self.cursor = a
        self.clear_selection()
        return True

    def insert_text(self, s):
        self.delete_selection_if_any()
        pos = self._clamp(self.cursor)
        self.text = self.text[:pos] + s + self.text[pos:]
        self.cursor = self._clamp(pos + len(s))
        self.clear_selection()

    def delete_backward(self):
        """Backspace: remove the selection or the char before the caret"""
        if self.delete_selection_if_any():
            return True
        pos = self._clamp(self.cursor)
        if pos == 0:
            self.cursor = 0
            return False
        self.text = self.text[:pos - 1] + self.text[pos:]
        self.cursor = pos - 1
        return True

    def delete_forward(self):
        """Delete key: remove the selection or the char after the caret"""
        if self.delete_selection_if_any():
            return True
        pos = self._clamp(self.cursor)
        if pos >= len(self.text):
            return False
        self.text = self.text[:pos] + self.text[pos + 1:]
        self.cursor = pos
        return True

    def split_at_cursor(self):
        pos = self._clamp(self.cursor)
        return self.text[:pos], self.text[pos:]

    def word_left(self, pos):
        """Start of the word before ``pos`` (whitespace is skipped first)"""
        pos = self._clamp(pos)
        while pos > 0 and self.text[pos - 1].isspace():
            pos -= 1
        while pos > 0 and is_word_char(self.text[pos - 1]):
            pos -= 1
        return pos

    def word_right(self, pos):
        """End of the word after ``pos`` (whitespace is skipped first)"""
        pos = self._clamp(pos)
        n = len(self.text)
        while pos < n and self.text[pos].isspace():
            pos += 1
        while pos < n and is_word_char(self.text[pos]):
            pos += 1
        return pos

    def move_word_left(self):
        self.cursor = self.word_left(self.cursor)

    def move_word_right(self):
        self.cursor = self.word_right(self.cursor)

    def move_left(self, extend=False, word=False):
        if extend:
            target = self.word_left(self.cursor) if word else max(0, self.cursor - 1)
            anchor = self.anchor if self.anchor is not None else self.cursor
            self.set_selection_from_anchor(anchor, target)
            return
        sel = self.normalized_selection()
        if sel is not None:
            self.cursor = sel[0]
        elif word:
            self.move_word_left()
        else:
            self.cursor = max(0, self._clamp(self.cursor) - 1)
        self.clear_selection()

    def move_right(self, extend=False, word=False):
        if extend:
            target = self.word_right(self.cursor) if word else self._clamp(self.cursor + 1)
            anchor = self.anchor if self.anchor is not None else self.cursor
            self.set_selection_from_anchor(anchor, target)
            return
        sel = self.normalized_selection()
        if word:
            self.move_word_right()
        elif sel is not None:
            self.cursor = sel[1]
        else:
            self.cursor = self._clamp(self.cursor + 1)
        self.clear_selection()

    def move_home(self):
        self.clear_selection()
        self.cursor = 0

    def move_end(self):
        self.clear_selection()
        self.cursor = len(self.text)
