"""Diagnostic output on stderr, with rich formatting when colour is allowed.

specmirror never writes to stdout, so a host CLI keeps stdout for its own
data. Source progress ("loading cache of ...", "cache of ... is out of
date") and warnings go to stderr through one :class:`OutputManager`,
installed by the host with :func:`set_output`. Colour is turned off by
``NO_COLOR``, ``TERM=dumb`` or the ``no_color`` flag; ``quiet`` silences
progress but never warnings.

Wire-level detail (each HTTP hop) is logged through :mod:`logging`
instead, see :mod:`specmirror.client.transport`.
"""

from __future__ import annotations

import os
import sys
from typing import Optional

from rich.console import Console
from rich.markup import escape


class OutputManager:
    """Writes source progress and warnings to stderr.

    Args:
        no_color: Disable all colour and rich markup.
        quiet: Suppress progress messages.
    """

    def __init__(self, no_color: bool = False, quiet: bool = False) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    def info(self, message: str) -> None:
        """Print a progress message. Suppressed by ``quiet``."""
        if self._quiet:
            return
        if self._no_color:
            print(message, file=sys.stderr, flush=True)
        else:
            self._stderr.print(escape(message))

    def warning(self, message: str) -> None:
        """Print a yellow warning. NOT suppressed by ``quiet``."""
        if self._no_color:
            print(f"Warning: {message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(f"[yellow]Warning:[/yellow] {escape(message)}")


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Drop the installed manager; the next :func:`get_output` builds a default."""
    global _output
    _output = None
