"""Recursive filename and content search with generation-based cancellation

A search runs on a ``SearchWorker`` thread and hands results back to the GUI
thread in batches. Every search gets a new generation number; the shared
``GenerationToken`` holds the one currently accepted. Workers of older
generations notice the mismatch on their next check and stop on their own.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from PyQt5.QtCore import QObject, QThread, pyqtSignal

from orbitshell.core.debug_logger import debug_log, debug_timer_end, debug_timer_start
from orbitshell.core.preferences_manager import SearchRules

BATCH_SIZE = 25
BINARY_PEEK_BYTES = 512
SNIPPET_FALLBACK_CHARS = 80
ELLIPSIS = '…'


@dataclass
class SearchResult:
    """A filename match (``line == 0``) or a matching line of a file"""

    path: Path
    line: int
    snippet: str
    is_filename: bool = False


class GenerationToken:
    """Holder of the currently accepted search generation.

    Written only by the consumer, read by workers.
    """

    def __init__(self, value=0):
        self.value = value

    def is_current(self, generation):
        return self.value == generation


def make_snippet(line: str, query: str, padding: int = 2) -> str:
    """Excerpt of ``line`` around the first match of ``query``.

    Expands ``padding`` whitespace-delimited words on each side, trims to word
    boundaries and marks truncated ends with an ellipsis. Falls back to the
    first 80 characters when the query is empty or absent.
    """
    q = query.lower()
    if not q:
        return line[:SNIPPET_FALLBACK_CHARS]
    pos = line.lower().find(q)
    if pos < 0:
        return line[:SNIPPET_FALLBACK_CHARS]

    n = len(line)
    start = min(pos, n)
    words = 0
    while start > 0 and words < padding:
        start -= 1
        if line[start].isspace():
            while start > 0 and line[start].isspace():
                start -= 1
            words += 1
    while start > 0 and not line[start - 1].isspace():
        start -= 1

    end = min(pos + len(q), n)
    words = 0
    while end < n and words < padding:
        if line[end].isspace():
            while end < n and line[end].isspace():
                end += 1
            words += 1
        else:
            end += 1
    while end < n and not line[end].isspace():
        end += 1

    snippet = line[start:end]
    if start > 0:
        snippet = ELLIPSIS + snippet
    if end < n:
        snippet = snippet + ELLIPSIS
    return snippet


def split_match(text: str, query: str):
    """Split ``text`` into ``(before, match, after)`` around the first match"""
    q = query.lower()
    if not q:
        return text, '', ''
    pos = text.lower().find(q)
    if pos < 0:
        return text, '', ''
    end = pos + len(q)
    return text[:pos], text[pos:end], text[end:]


def _sorted_entries(scandir, directory):
    with scandir(directory) as it:
        return sorted(it, key=lambda entry: entry.name)


def _is_dir(entry):
    try:
        return entry.is_dir(follow_symlinks=False)
    except OSError:
        return False


def search_tree(root, query: str, rules: SearchRules,
                should_continue: Callable[[], bool],
                push: Callable[[SearchResult], bool],
                scandir=os.scandir, open_file=open):
    """Walk ``root`` depth first, reporting filename and content matches to ``push``.

    ``push`` returns False to stop the walk. ``should_continue`` is polled
    before every directory read, entry, file open and line.
    """
    query_lower = query.lower()
    stack = [Path(root)]

    while stack:
        directory = stack.pop()
        if not should_continue():
            return
        try:
            entries = _sorted_entries(scandir, directory)
        except OSError:
            continue

        for entry in entries:
            if not should_continue():
                return
            name = entry.name
            path = Path(entry.path)
            if _is_dir(entry):
                if rules.should_skip_dir(name):
                    continue
                stack.append(path)
                continue
            if rules.should_skip_file(name):
                continue

            if query_lower in name.lower():
                if not push(SearchResult(path=path, line=0, snippet=name, is_filename=True)):
                    return

            if not should_continue():
                return
            if not _scan_file(path, query, query_lower, rules, should_continue, push, open_file):
                return


def _scan_file(path, query, query_lower, rules, should_continue, push, open_file):
    """Content scan of one file; returns False when the walk must stop"""
    try:
        f = open_file(path, 'rb')
    except OSError:
        return True
    with f:
        try:
            if os.fstat(f.fileno()).st_size > rules.max_file_bytes:
                return True
            if b'\0' in f.read(BINARY_PEEK_BYTES):
                return True
            f.seek(0)
            for number, raw in enumerate(f, start=1):
                if not should_continue():
                    return False
                try:
                    line = raw.decode('utf-8').rstrip('\r\n')
                except UnicodeDecodeError:
                    continue
                if query_lower in line.lower():
                    result = SearchResult(path=path, line=number, snippet=make_snippet(line, query, 2))
                    if not push(result):
                        return False
        except OSError:
            return True
    return True


class SearchWorker(QThread):
    """Runs one search generation and delivers batches of results"""

    search_batch = pyqtSignal(int, object)
    search_done = pyqtSignal(int)

    def __init__(self, root, query, rules, generation, token, parent=None):
        super().__init__(parent)
        self.root = root
        self.query = query
        self.rules = rules
        self.generation = generation
        self.token = token

    def _is_current(self):
        return self.token.is_current(self.generation)

    def run(self):
        timer = debug_timer_start('performance', f"search generation {self.generation}")
        batch = []
        total = 0

        def push(result):
            nonlocal batch, total
            if not self._is_current():
                return False
            batch.append(result)
            total += 1
            if len(batch) >= BATCH_SIZE:
                self.search_batch.emit(self.generation, batch)
                batch = []
            return total < self.rules.search_limit

        search_tree(self.root, self.query, self.rules, self._is_current, push)

        if batch:
            self.search_batch.emit(self.generation, batch)
        self.search_done.emit(self.generation)
        debug_log('search', 'Worker finished', generation=self.generation, results=total)
        debug_timer_end('performance', f"search generation {self.generation}", timer)


class SearchController(QObject):
    """Single consumer of search batches, owned by the GUI thread"""

    results_changed = pyqtSignal()
    search_finished = pyqtSignal(int)
    batch_applied = pyqtSignal(int, int)  # generation, count

    def __init__(self, rules: Optional[SearchRules] = None, parent=None):
        super().__init__(parent)
        self.rules = rules or SearchRules().normalized()
        self.token = GenerationToken()
        self.generation = 0
        self.query = ''
        self.results: List[SearchResult] = []
        self.pending = False
        self._workers = []

    def start(self, root, query: str) -> int:
        """Start a new search generation, superseding any running one"""
        self.generation += 1
        generation = self.generation
        self.token.value = generation
        self.query = query.strip()
        self.results = []
        self.pending = True
        self.results_changed.emit()

        if not self.query:
            self.pending = False
            return generation

        debug_log('search', 'Search started', generation=generation, query=self.query, root=str(root))
        worker = SearchWorker(root, self.query, self.rules, generation, self.token)
        worker.search_batch.connect(self.apply_batch)
        worker.search_done.connect(self.apply_done)
        worker.finished.connect(lambda w=worker: self._forget(w))
        # Old workers are never joined; keep a reference until they finish
        self._workers.append(worker)
        worker.start()
        return generation

    def cancel(self):
        """Supersede the running search without starting a new one"""
        self.generation += 1
        self.token.value = self.generation
        self.pending = False

    def _forget(self, worker):
        if worker in self._workers:
            self._workers.remove(worker)
        worker.deleteLater()

    def apply_batch(self, generation, results):
        """Append a batch if it belongs to the current generation; returns True if applied"""
        if generation != self.generation:
            debug_log('search', 'Stale batch dropped', generation=generation, current=self.generation)
            return False
        space = self.rules.search_limit - len(self.results)
        if space <= 0:
            return False
        results = results[:space]
        self.results.extend(results)
        self.pending = True
        self.batch_applied.emit(generation, len(results))
        self.results_changed.emit()
        return True

    def apply_done(self, generation):
        if generation != self.generation:
            return False
        self.pending = False
        self.search_finished.emit(generation)
        return True

    def grouped_results(self):
        """Results grouped per file, in arrival order"""
        groups = {}
        for result in self.results:
            groups.setdefault(result.path, []).append(result)
        return list(groups.items())

    def running_workers(self):
        return len(self._workers)
