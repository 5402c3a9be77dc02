"""Category-gated diagnostics for OrbitShell

Every subsystem tags its messages with a category name. Nothing below DEBUG
level reaches the handlers until the master flag is switched on, and each
category can then be muted on its own. Records go through the standard logging
module as ``orbitshell.<category>``, so main.py decides where they end up.

Usage:
    from orbitshell.core.debug_logger import debug_log, set_debug_enabled

    set_debug_enabled(True)
    debug_log('terminal', 'Shell spawned', pid=1234)
    debug_log('search', 'Batch delivered', generation=3, size=25)
"""

import logging
import time

_debug_on = False
_category_flags = {}

# Category name -> what it traces
DEBUG_CATEGORIES = {
    'terminal': 'PTY process lifecycle and raw I/O',
    'output': 'Output stream sanitizing and line segmentation',
    'prompt': 'Prompt and semantic marker detection',
    'commands': 'Command blocks and submission',
    'history': 'Command history loading and persistence',
    'suggestions': 'Completion candidates and ghost text',
    'search': 'File content search workers',
    'directory': 'Working directory tracking',
    'git': 'Version control status queries',
    'state': 'Preferences and recent entries persistence',
    'ui': 'Window events and interactions',
    'performance': 'Timings of slow operations',
    'error': 'Failures that were recovered from',
}

LOGGER_PREFIX = 'orbitshell'


def get_category_logger(category: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_PREFIX}.{category}")


def set_debug_enabled(enabled: bool):
    """Flip the master flag for all categories"""
    global _debug_on
    _debug_on = enabled


def set_category_enabled(category: str, enabled: bool):
    """Mute or unmute one category; only matters while the master flag is on"""
    _category_flags[category] = enabled


def enable_all_categories():
    set_debug_enabled(True)
    for name in DEBUG_CATEGORIES:
        _category_flags[name] = True


def is_debug_enabled(category: str = None) -> bool:
    """Whether a debug record for ``category`` would be emitted

    Categories that were never configured follow the master flag.
    """
    if not _debug_on:
        return False
    if category is None:
        return True
    return _category_flags.get(category, True)


def _tag(category, message, fields):
    line = f"[{category.upper():12s}] {message}"
    if fields:
        line += ' | ' + ', '.join(f"{key}={value!r}" for key, value in fields.items())
    return line


def debug_log(category: str, message: str, **fields):
    """Emit a DEBUG record, with ``fields`` appended as key=value pairs

    Example:
        debug_log('commands', 'Block opened', command='ls -la')
    """
    if is_debug_enabled(category):
        get_category_logger(category).debug(_tag(category, message, fields))


def debug_timer_start(category: str, operation: str) -> float:
    """Returns a token for debug_timer_end, 0 when the category is muted"""
    if not is_debug_enabled(category):
        return 0
    debug_log(category, f"{operation} started")
    return time.perf_counter()


def debug_timer_end(category: str, operation: str, start_time: float):
    if start_time <= 0 or not is_debug_enabled(category):
        return
    elapsed = (time.perf_counter() - start_time) * 1000
    debug_log(category, f"{operation} completed", duration_ms=f"{elapsed:.2f}ms")


def debug_error(category: str, message: str, exception: Exception = None, **fields):
    """Emit an ERROR record regardless of the debug flags

    The exception type and text are folded into the message. The full traceback
    is attached only when the category is being traced.

    Example:
        try:
            ...
        except OSError as e:
            debug_error('history', 'Failed to append history line', exception=e, path=path)
    """
    line = _tag(category, message, fields)
    trace = None
    if exception is not None:
        line = f"{line} ({type(exception).__name__}: {exception})"
        if is_debug_enabled(category):
            trace = exception
    get_category_logger(category).error(line, exc_info=trace)
