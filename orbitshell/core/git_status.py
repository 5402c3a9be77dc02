"""Best-effort version control status through the ``git`` executable"""

import subprocess
from dataclasses import dataclass
from typing import List, Optional

from orbitshell.core.debug_logger import debug_log

GIT_EXECUTABLE = 'git'


@dataclass
class GitStatus:
    branch: str
    files_changed: int = 0
    added: int = 0
    deleted: int = 0
    modified: int = 0


@dataclass
class GitChange:
    path: str
    staged: bool
    unstaged: bool
    kind: str  # 'A', 'D', 'M' or '?'


@dataclass
class PorcelainEntry:
    """One record of ``git status --porcelain -z``"""

    index: str
    worktree: str
    path: str

    @property
    def is_untracked(self):
        return self.index == '?' and self.worktree == '?'

    @property
    def is_new(self):
        return self.is_untracked or self.index == 'A' or self.worktree == 'A'

    @property
    def is_deleted(self):
        return 'D' in (self.index, self.worktree)

    @property
    def is_modified(self):
        return self.index in 'MRT' or self.worktree in 'MRT'

    @property
    def staged(self):
        return self.index in 'AMDRT'

    @property
    def unstaged(self):
        return self.is_untracked or self.worktree in 'AMDRT'

    @property
    def kind(self):
        if self.is_new:
            return 'A'
        if self.is_deleted:
            return 'D'
        if self.is_modified:
            return 'M'
        return '?'


def parse_porcelain(output: str) -> List[PorcelainEntry]:
    """Parse NUL-separated porcelain v1 output"""
    entries = []
    records = output.split('\0')
    i = 0
    while i < len(records):
        record = records[i]
        i += 1
        if len(record) < 4:
            continue
        index, worktree, path = record[0], record[1], record[3:]
        if index in 'RC':
            # rename/copy records are followed by the original path
            i += 1
        entries.append(PorcelainEntry(index, worktree, path))
    return entries


def _run_git(path, *args) -> Optional[str]:
    try:
        result = subprocess.run(
            [GIT_EXECUTABLE, *args],
            cwd=str(path),
            capture_output=True,
            text=True,
            errors='replace',
        )
    except OSError as e:
        debug_log('git', 'git unavailable', path=str(path), error=str(e))
        return None
    if result.returncode != 0:
        return None
    return result.stdout


def _status_entries(path):
    output = _run_git(path, 'status', '--porcelain=v1', '-z', '--untracked-files=all')
    if output is None:
        return None
    return parse_porcelain(output)


def summarize(branch, entries) -> GitStatus:
    status = GitStatus(branch=branch, files_changed=len(entries))
    for entry in entries:
        if entry.is_new:
            status.added += 1
        if entry.is_deleted:
            status.deleted += 1
        if entry.is_modified:
            status.modified += 1
    return status


def get_status(path) -> Optional[GitStatus]:
    """Branch name and change counts, or None outside a repository"""
    branch = _run_git(path, 'rev-parse', '--abbrev-ref', 'HEAD')
    if branch is None:
        return None
    entries = _status_entries(path)
    if entries is None:
        return None
    status = summarize(branch.strip(), entries)
    debug_log('git', 'Status refreshed', path=str(path), branch=status.branch,
              files_changed=status.files_changed)
    return status


def get_branches(path) -> List[str]:
    """Sorted local branch names"""
    output = _run_git(path, 'for-each-ref', '--format=%(refname:short)', 'refs/heads/')
    if output is None:
        return []
    return sorted(line.strip() for line in output.splitlines() if line.strip())


def get_changes(path) -> List[GitChange]:
    """Per-file change list including untracked files"""
    entries = _status_entries(path)
    if entries is None:
        return []
    return [
        GitChange(path=entry.path, staged=entry.staged, unstaged=entry.unstaged, kind=entry.kind)
        for entry in entries
        if entry.path
    ]
