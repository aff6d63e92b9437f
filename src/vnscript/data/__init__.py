"""Data layer utilities for loading scenario scripts."""

from .errors import DataError, DataLoadError, DataValidationError
from .script_loader import load_script, parse_command, parse_script

__all__ = [
    "DataError",
    "DataLoadError",
    "DataValidationError",
    "load_script",
    "parse_command",
    "parse_script",
]
