"""
Exceptions raised by the analysis.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional


class DeadExportError(Exception):
    """Base class for deadexport errors."""


class ScopeResolutionError(DeadExportError):
    """The target module is not part of the loaded program."""

    def __init__(self, target: str, scope: Optional[list] = None):
        self.target = target
        self.scope = list(scope or [])
        msg = f"target module {target!r} not found in scope"
        if self.scope:
            msg += f" ({', '.join(self.scope)})"
        super().__init__(msg)


class FrontEndError(DeadExportError):
    """A source file could not be read or parsed.

    Tolerated during a run: the loader records it on ``Program.errors`` and
    carries on with whatever it recovered.
    """

    def __init__(self, message: str, path: Optional[Path] = None, line: Optional[int] = None):
        self.path = path
        self.line = line
        where = ""
        if path is not None:
            where = f"{path}:{line}: " if line else f"{path}: "
        super().__init__(f"{where}{message}")
