"""UI-agnostic controllers for service-layer orchestration."""

from .playback_controller import PlaybackController

__all__ = ["PlaybackController"]
