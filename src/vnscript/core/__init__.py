"""Core primitives shared by every layer."""

from .scheduler import AsyncioScheduler, ManualScheduler, Scheduler, TimerHandle
from .types import DisplayKind, LocalizedString, PlaybackAction, Value

__all__ = [
    "AsyncioScheduler",
    "DisplayKind",
    "LocalizedString",
    "ManualScheduler",
    "PlaybackAction",
    "Scheduler",
    "TimerHandle",
    "Value",
]
