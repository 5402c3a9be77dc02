"""History file parsing, merging and the application log"""

import asyncio

from orbitshell.core.command_history_manager import (
    CommandHistoryManager, merge_histories, parse_fish_history, parse_plain_lines, parse_zsh_history,
)


def test_parse_plain_lines_newest_first():
    assert parse_plain_lines('ls\n\ncd /tmp\ngit status\n') == ['git status', 'cd /tmp', 'ls']


def test_parse_zsh_extended_format():
    contents = ': 1700000000:0;ls -la\n: 1700000005:0;git log\nplain\n'
    assert parse_zsh_history(contents) == ['plain', 'git log', 'ls -la']


def test_parse_fish_history():
    contents = '- cmd: ls\n  when: 1700000000\n- cmd: make test\n  when: 1700000001\n'
    assert parse_fish_history(contents) == ['make test', 'ls']


def test_merge_first_occurrence_wins_and_caps():
    merged = merge_histories([['b', 'a'], ['c', 'b', 'd']], max_history=3)
    assert merged == ['b', 'a', 'c']


def write_history(environment, own=None, bash=None, zsh=None):
    if own is not None:
        environment.history_file.parent.mkdir(parents=True, exist_ok=True)
        environment.history_file.write_text(own, encoding='utf-8')
    if bash is not None:
        (environment.home / '.bash_history').write_text(bash, encoding='utf-8')
    if zsh is not None:
        (environment.home / '.zsh_history').write_text(zsh, encoding='utf-8')


def test_load_merges_sources_in_precedence_order(environment):
    write_history(environment, own='make\n', bash='ls\nmake\n', zsh=': 1:0;vim\n')
    history = CommandHistoryManager(environment)
    assert history.entries == ['make', 'ls', 'vim']


def test_async_load_matches_sync_load(environment):
    write_history(environment, own='one\ntwo\n', bash='three\n')
    history = CommandHistoryManager(environment, load=False)
    assert history.entries == []
    asyncio.run(history.load_history())
    assert history.entries == ['two', 'one', 'three']


def test_missing_files_give_empty_history(environment):
    history = CommandHistoryManager(environment)
    assert history.entries == []


def test_push_prepends_and_appends_to_log(environment):
    history = CommandHistoryManager(environment)
    history.push('ls')
    history.push('ls')
    history.push('  ')
    history.push('pwd')
    assert history.entries == ['pwd', 'ls']
    assert environment.history_file.read_text(encoding='utf-8') == 'ls\npwd\n'


def test_push_evicts_oldest(environment):
    history = CommandHistoryManager(environment, max_history=2)
    for command in ('a', 'b', 'c'):
        history.push(command)
    assert history.entries == ['c', 'b']


def test_prefix_matches_excludes_exact_entry(environment):
    history = CommandHistoryManager(environment)
    for command in ('git', 'git status', 'ls', 'git log'):
        history.push(command)
    assert history.prefix_matches('git') == ['git log', 'git status']
    assert history.prefix_matches('git', limit=1) == ['git log']


def test_clear_history_truncates_log(environment):
    history = CommandHistoryManager(environment)
    history.push('ls')
    history.clear_history()
    assert history.entries == []
    assert environment.history_file.read_text(encoding='utf-8') == ''
