"""Color output support for the pacdef CLI.

Color palette:
  - Red: errors and packages to remove
  - Orange: warnings (skipped backends, inactive sections)
  - Green: success and packages to install
  - Blue: backend headers and contextual information
"""

import os
import sys

# ANSI color codes
_COLORS = {
    'reset': '\033[0m',
    'bold': '\033[1m',
    'red': '\033[91m',
    'orange': '\033[93m',   # no true orange in ANSI
    'green': '\033[92m',
    'blue': '\033[94m',
    'dim': '\033[2m',
}

_colors_enabled = True


def init(nocolor: bool = False, stream=None):
    """Initialize color support.

    Colors are off with --nocolor, when NO_COLOR is set
    (https://no-color.org/) or when the stream is not a terminal.
    """
    global _colors_enabled
    stream = stream or sys.stdout

    if nocolor or os.environ.get('NO_COLOR'):
        _colors_enabled = False
    else:
        _colors_enabled = stream.isatty()


def enabled() -> bool:
    return _colors_enabled


def _wrap(text: str, color: str) -> str:
    if not _colors_enabled:
        return text
    return f"{_COLORS.get(color, '')}{text}{_COLORS['reset']}"


def error(text: str) -> str:
    return _wrap(text, 'red')


def warning(text: str) -> str:
    return _wrap(text, 'orange')


def success(text: str) -> str:
    return _wrap(text, 'green')


def info(text: str) -> str:
    return _wrap(text, 'blue')


def dim(text: str) -> str:
    return _wrap(text, 'dim')


def bold(text: str) -> str:
    return _wrap(text, 'bold')


def pkg_install(name: str) -> str:
    """Format package name for installation (green)."""
    return success(name)


def pkg_remove(name: str) -> str:
    """Format package name for removal (red)."""
    return error(name)


def backend(tag: str) -> str:
    """Format a backend tag as a section header."""
    return bold(info(f"[{tag}]"))


def count(n: int) -> str:
    return bold(str(n))
