"""Segmentation of shell output into command blocks"""

import pytest

from orbitshell.core.block_processor import (
    BlockProcessor, TurnState, is_directory_header_line, is_error_line, is_prompt_line,
    needs_status_refresh, prompt_path,
)
from orbitshell.core.git_status import GitStatus


@pytest.fixture
def processor(qapp, environment):
    return BlockProcessor(
        cwd=str(environment.home),
        status_provider=lambda path: None,
        path_resolver=environment.expand_tilde,
    )


def test_prompt_heuristics():
    assert is_prompt_line('PS C:\\Users\\me>')
    assert is_prompt_line('me@box:~/src$ ')
    assert is_prompt_line('(venv) me@box:~/src$')
    assert is_prompt_line('[me@box src]$')
    assert is_prompt_line('root@box:/etc#')
    assert not is_prompt_line('total 8')
    assert not is_prompt_line('email me@box.org')


def test_prompt_path():
    assert prompt_path('PS C:\\Users\\me>') == 'C:\\Users\\me'
    assert prompt_path('me@box:~/src$') == '~/src'
    assert prompt_path('[me@box src]$') is None
    assert prompt_path('hello') is None


def test_error_and_header_lines():
    assert is_error_line('error: pathspec did not match')
    assert is_error_line('bash: foo: command not found')
    assert is_error_line("foo : The term 'foo' is not recognized as the name of a cmdlet")
    assert not is_error_line('all good')
    assert is_directory_header_line('    Directory: C:\\src')
    assert is_directory_header_line('Mode                 LastWriteTime         Length Name')
    assert not is_directory_header_line('README.md')


def test_status_refresh_commands():
    assert needs_status_refresh('git checkout main')
    assert needs_status_refresh('Git Switch dev')
    assert not needs_status_refresh('git status')


def test_output_collected_between_echo_and_prompt(processor):
    ready = []
    processor.prompt_ready.connect(lambda: ready.append(True))

    block = processor.begin_command('ls')
    assert not processor.input_visible
    assert processor.state == TurnState.AWAITING_ECHO

    processor.feed('ls\r\nfile1\r\nfile2\r\n')
    assert processor.state == TurnState.ACCUMULATING
    processor.feed('me@box:~$ ')

    assert block.output_lines == ['file1', 'file2']
    assert processor.input_visible
    assert processor.state == TurnState.CLOSED
    assert ready == [True]


def test_blank_command_opens_nothing(processor):
    assert processor.begin_command('   ') is None
    assert processor.blocks == []


def test_line_split_across_chunks_is_coalesced(processor):
    block = processor.begin_command('echo hi')
    processor.feed('echo hi\r\nh')
    processor.feed('i\r\n')
    assert block.output_lines == ['hi']


def test_prompt_split_across_chunks_is_removed(processor):
    block = processor.begin_command('pwd')
    processor.feed('pwd\r\n/home/me\r\nme@bo')
    assert block.output_lines == ['/home/me', 'me@bo']
    processor.feed('x:~$ ')
    assert block.output_lines == ['/home/me']
    assert processor.input_visible


def test_echo_after_prompt_on_same_line(processor):
    block = processor.begin_command('whoami')
    processor.feed('me@box:~$ whoami\r\nme\r\n')
    assert block.output_lines == ['me']


def test_output_before_first_command_goes_to_banner_block(processor):
    processor.feed('Welcome to the shell\r\n')
    assert len(processor.blocks) == 1
    assert processor.blocks[0].command == ''
    assert processor.blocks[0].output_lines == ['Welcome to the shell']


def test_error_line_flags_block(processor):
    block = processor.begin_command('foo')
    processor.feed('foo\r\nbash: foo: command not found\r\n')
    assert block.has_error


def test_semantic_markers_close_turn_and_record_exit_code(processor):
    cwds = []
    processor.cwd_changed.connect(cwds.append)
    block = processor.begin_command('false')
    processor.feed(
        'false\r\n'
        '\x1b]133;D;1\x07'
        '\x1b]7;file://box/tmp/work\x07'
        '\x1b]133;A\x07me@box:/tmp/work$ \x1b]133;B\x07'
    )
    assert block.exit_code == 1
    assert block.has_error
    assert block.output_lines == []
    assert processor.cwd == '/tmp/work'
    assert cwds == ['/tmp/work']
    assert processor.input_visible


def test_zero_exit_code_is_not_an_error(processor):
    block = processor.begin_command('true')
    processor.feed('true\r\n\x1b]133;D;0\x07\x1b]133;A\x07$ \x1b]133;B\x07')
    assert block.exit_code == 0
    assert not block.has_error


def test_prompt_text_between_markers_is_suppressed(processor):
    processor.feed('\x1b]133;A\x07custom prompt > \x1b]133;B\x07')
    assert processor.blocks == []


def test_prompt_path_updates_cwd(processor, environment):
    (environment.home / 'src').mkdir()
    processor.begin_command('cd src')
    processor.feed('cd src\r\nme@box:~/src$ ')
    assert processor.cwd == str(environment.home / 'src')


def test_continuation_prompt_shows_input(processor):
    processor.begin_command('Get-Item (')
    processor.feed('Get-Item (\r\n>> ')
    assert processor.input_visible


def test_branch_change_refreshes_status(qapp, environment):
    calls = []

    def provider(path):
        calls.append(path)
        return GitStatus(branch='dev')

    processor = BlockProcessor(cwd=str(environment.home), status_provider=provider,
                               path_resolver=environment.expand_tilde)
    processor.begin_command('git checkout dev')
    assert calls == []
    processor.feed("git checkout dev\r\nSwitched to branch 'dev'\r\n")
    assert len(calls) == 1
    assert processor.status.branch == 'dev'
    assert not processor.needs_status_refresh


def test_block_context_captures_status(qapp, environment):
    status = GitStatus(branch='main', files_changed=2, added=1, modified=1)
    processor = BlockProcessor(cwd='/repo', status_provider=lambda path: status)
    processor.refresh_status()
    block = processor.begin_command('git status')
    assert block.context.cwd == '/repo'
    assert block.context.branch == 'main'
    assert block.context.files_changed == 2
    assert block.context.modified == 1


def test_reset_forgets_blocks(processor):
    processor.begin_command('ls')
    processor.reset('/elsewhere')
    assert processor.blocks == []
    assert processor.cwd == '/elsewhere'
    assert processor.input_visible


def test_stream_close_drains_held_carriage_return(processor):
    changed = []
    block = processor.begin_command('ls')
    processor.feed('ls\r\nout\r')
    processor.blocks_changed.connect(lambda: changed.append(True))

    processor.stream_closed()
    assert block.output_lines == ['out']
    assert changed == [True]

    # nothing is left pending to double up the next line break
    processor.feed('next\r\n')
    assert block.output_lines == ['out', 'next']
