"""Service layer exports."""

from .input_bindings import PLAYTEST_KEYBINDINGS, ActionRequest, KeyBinding, KeyEvent, lookup_action
from .label_resolver import DuplicateLabel, LabelIndex, build_label_index
from .playback_service import (
    ChoicesDisplay,
    EndDisplay,
    InputDisplay,
    PlaybackSession,
    PlaybackView,
    StepResult,
    TextDisplay,
    VideoDisplay,
    WaitDisplay,
    start_session,
)
from .reachability import LabelInfo, PathIssue, ReachabilityReport, analyze_reachability, format_issue

__all__ = [
    "PLAYTEST_KEYBINDINGS",
    "ActionRequest",
    "ChoicesDisplay",
    "DuplicateLabel",
    "EndDisplay",
    "InputDisplay",
    "KeyBinding",
    "KeyEvent",
    "LabelIndex",
    "LabelInfo",
    "PathIssue",
    "PlaybackSession",
    "PlaybackView",
    "ReachabilityReport",
    "StepResult",
    "TextDisplay",
    "VideoDisplay",
    "WaitDisplay",
    "analyze_reachability",
    "build_label_index",
    "format_issue",
    "lookup_action",
    "start_session",
]
