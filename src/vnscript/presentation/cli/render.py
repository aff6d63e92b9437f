"""Shared CLI rendering helpers."""
from __future__ import annotations

import os
import textwrap
from typing import List

from vnscript.services.playback_service import (
    ChoicesDisplay,
    InputDisplay,
    PlaybackView,
    TextDisplay,
    VideoDisplay,
    WaitDisplay,
)
from vnscript.services.reachability import ReachabilityReport, format_issue

_WIDTH = 72


def debug_enabled() -> bool:
    """Return True only when VNSCRIPT_DEBUG is explicitly set to '1'."""
    return os.getenv("VNSCRIPT_DEBUG") == "1"


def wrap(text: str, width: int = _WIDTH) -> List[str]:
    if not text:
        return [""]
    lines: List[str] = []
    for paragraph in text.splitlines() or [""]:
        lines.extend(textwrap.wrap(paragraph, width=width, break_long_words=False) or [""])
    return lines


def render_view(view: PlaybackView, *, debug: bool = False) -> List[str]:
    """Format a playback view as printable lines."""
    lines: List[str] = []
    display = view.display
    if debug:
        label = view.current_label or "-"
        lines.append(f"[#{view.command_index + 1}/{view.total_commands} label={label}]")
    if isinstance(display, TextDisplay):
        if display.speaker:
            lines.append(f"{display.speaker}:")
        lines.extend(wrap(display.text))
    elif isinstance(display, ChoicesDisplay):
        if display.speaker:
            lines.append(f"{display.speaker}:")
        if display.text:
            lines.extend(wrap(display.text))
        lines.append("Choices:")
        for number, choice in enumerate(display.choices, start=1):
            marker = " *" if display.default_choice == number - 1 and display.timeout is not None else ""
            lines.append(f"  {number}. {choice.label}{marker}")
        if display.timeout is not None and display.default_choice is not None:
            lines.append(f"(choose within {display.timeout:g}s or * is picked)")
    elif isinstance(display, InputDisplay):
        lines.append(display.prompt or f"Enter a value for {display.var_name}:")
        if display.default_value:
            lines.append(f"(default: {display.default_value})")
    elif isinstance(display, WaitDisplay):
        lines.append(f"... ({display.duration:g}s)")
    elif isinstance(display, VideoDisplay):
        suffix = " [loop]" if display.loop_video else ""
        lines.append(f"[video: {display.path}{suffix}]")
    else:
        lines.append("-- The End --")
        if view.error:
            lines.append(f"(playback stopped: {view.error})")
    if debug and view.variables:
        pairs = ", ".join(f"{name}={value!r}" for name, value in sorted(view.variables.items()))
        lines.append(f"[vars: {pairs}]")
    return lines


def render_report(report: ReachabilityReport, title: str = "") -> List[str]:
    """Summarize a reachability report."""
    unreachable = report.unreachable_labels()
    lines = []
    if title:
        lines.append(f"Scenario: {title}")
    lines.append(f"Reachable commands: {report.reachable_count} / {report.total_count}")
    lines.append(f"Labels: {len(report.labels)} ({len(unreachable)} unreachable)")
    if report.issues:
        lines.append("Issues:")
        lines.extend(f"  {format_issue(issue)}" for issue in report.issues)
    if unreachable:
        lines.append("Unreachable labels:")
        lines.extend(f"  - {info.name} (#{info.defined_at + 1})" for info in unreachable)
    if not report.issues and not unreachable:
        lines.append("All story paths are reachable.")
    return lines
