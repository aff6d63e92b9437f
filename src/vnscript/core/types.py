"""Shared type aliases for the core and domain layers."""
from typing import Dict, Literal, Union

Value = Union[bool, int, float, str]
LocalizedString = Union[str, Dict[str, str]]

DisplayKind = Literal["text", "choices", "input", "wait", "video", "end"]

PlaybackAction = Literal[
    "advance",
    "advance_or_select_first",
    "rollback",
    "restart",
    "toggle_auto",
    "toggle_skip",
    "save",
    "load",
    "select_choice",
]

__all__ = ["DisplayKind", "LocalizedString", "PlaybackAction", "Value"]
