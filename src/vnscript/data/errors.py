"""Exceptions raised while turning script files into ScriptDef values."""
from __future__ import annotations

from pathlib import Path


class DataError(Exception):
    """Base exception for the data layer."""


class DataLoadError(DataError):
    """A script file could not be read or decoded."""

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"{reason}: {path}")
        self.path = Path(path)
        self.reason = reason


class DataValidationError(DataError):
    """Raw script content has the wrong shape.

    ``context`` locates the offending value, e.g. ``scene.json script[3] choices``.
    """

    def __init__(self, context: str, problem: str) -> None:
        super().__init__(f"{context} {problem}")
        self.context = context
        self.problem = problem
