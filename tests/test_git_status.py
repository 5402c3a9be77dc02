"""Porcelain parsing and status queries"""

import shutil
import subprocess

import pytest

from orbitshell.core import git_status
from orbitshell.core.git_status import parse_porcelain, summarize


def test_parse_porcelain_records():
    output = ' M src/app.py\0A  new.py\0?? notes.txt\0 D gone.py\0R  renamed.py\0old.py\0'
    entries = parse_porcelain(output)
    assert [e.path for e in entries] == ['src/app.py', 'new.py', 'notes.txt', 'gone.py', 'renamed.py']
    assert [e.kind for e in entries] == ['M', 'A', 'A', 'D', 'M']


def test_staged_and_unstaged_flags():
    staged, unstaged, untracked = parse_porcelain('M  a\0 M b\0?? c\0')
    assert staged.staged and not staged.unstaged
    assert unstaged.unstaged and not unstaged.staged
    assert untracked.unstaged and not untracked.staged


def test_summarize_counts():
    entries = parse_porcelain(' M a\0A  b\0?? c\0 D d\0')
    status = summarize('main', entries)
    assert status.branch == 'main'
    assert status.files_changed == 4
    assert status.added == 2
    assert status.deleted == 1
    assert status.modified == 1


def test_outside_repository(tmp_path, monkeypatch):
    monkeypatch.setattr(git_status, '_run_git', lambda path, *args: None)
    assert git_status.get_status(tmp_path) is None
    assert git_status.get_branches(tmp_path) == []
    assert git_status.get_changes(tmp_path) == []


def test_missing_git_executable(tmp_path, monkeypatch):
    monkeypatch.setattr(git_status, 'GIT_EXECUTABLE', 'definitely-not-git-xyz')
    assert git_status.get_status(tmp_path) is None


def git(path, *args):
    subprocess.run(['git', *args], cwd=path, check=True, capture_output=True)


@pytest.mark.skipif(shutil.which('git') is None, reason='git not installed')
def test_real_repository(tmp_path):
    git(tmp_path, 'init', '-q', '-b', 'main')
    git(tmp_path, 'config', 'user.email', 'dev@example.com')
    git(tmp_path, 'config', 'user.name', 'Dev')
    (tmp_path / 'tracked.txt').write_text('one\n')
    git(tmp_path, 'add', 'tracked.txt')
    git(tmp_path, '-c', 'commit.gpgsign=false', 'commit', '-q', '-m', 'initial')
    git(tmp_path, 'branch', 'feature')

    (tmp_path / 'tracked.txt').write_text('two\n')
    (tmp_path / 'untracked.txt').write_text('new\n')

    status = git_status.get_status(tmp_path)
    assert status.branch == 'main'
    assert status.files_changed == 2
    assert status.added == 1
    assert status.modified == 1
    assert git_status.get_branches(tmp_path) == ['feature', 'main']
    changes = {c.path: c.kind for c in git_status.get_changes(tmp_path)}
    assert changes == {'tracked.txt': 'M', 'untracked.txt': 'A'}
