"""Debug configuration - Edit this file to control debug logging

To enable debug logging:
1. Set ENABLE_DEBUG = True
2. Choose which categories to enable in ENABLED_CATEGORIES
3. Restart the application

Available categories:
- 'terminal': PTY process lifecycle and raw I/O
- 'output': Output stream sanitizing and line segmentation
- 'prompt': Prompt and semantic marker detection
- 'commands': Command blocks and submission
- 'history': Command history loading and persistence
- 'suggestions': Completion candidates and ghost text
- 'search': File content search workers
- 'directory': Working directory tracking
- 'git': Version control status queries
- 'state': Preferences and recent entries persistence
- 'ui': Window events and interactions
- 'performance': Performance metrics
- 'error': Errors and exceptions
"""

# Master switch - set to True to enable debug logging
ENABLE_DEBUG = False

# Enable all categories (overrides ENABLED_CATEGORIES if True)
ENABLE_ALL = False

# List of enabled categories (only used if ENABLE_ALL is False)
ENABLED_CATEGORIES = [
    # 'terminal',
    # 'output',
    # 'prompt',
    # 'commands',
    # 'history',
    # 'suggestions',
    # 'search',
    # 'directory',
    # 'git',
    # 'state',
    # 'ui',
]

# Quick presets - uncomment one to use
# ENABLED_CATEGORIES = ['terminal', 'output', 'prompt']  # Shell stream only
# ENABLED_CATEGORIES = ['suggestions', 'history']  # Completion
