"""Console front end: analyze a script or playtest it in the terminal."""
from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import List, Sequence

from vnscript.core.scheduler import ManualScheduler
from vnscript.core.types import Value
from vnscript.data import DataError, load_script
from vnscript.presentation.cli.config import load_config
from vnscript.presentation.cli.render import debug_enabled, render_report, render_view
from vnscript.services.controllers import PlaybackController
from vnscript.services.input_bindings import KeyEvent, bindings_from_config
from vnscript.services.playback_service import ChoicesDisplay, InputDisplay, VideoDisplay, WaitDisplay, start_session
from vnscript.services.reachability import analyze_reachability

logger = logging.getLogger(__name__)

_KEY_ALIASES = {
    "": "Enter",
    "b": "Backspace",
    "back": "Backspace",
    "up": "ArrowUp",
    "next": "ArrowRight",
}
_HELP = (
    "Enter=continue  1-9=choose  b=back  a=auto  s=skip  ctrl+r=restart  "
    "F5/F9=quick save/load  q=quit  :jump L  :set NAME VALUE  :back N  :auto SECONDS  :history"
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vnscript", description="Scenario script tools.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")
    parser.add_argument("--config", type=Path, default=None, help="Path to a config JSON file.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Report unreachable labels and broken jumps.")
    analyze.add_argument("script", type=Path)

    play = subparsers.add_parser("play", help="Playtest a script in the terminal.")
    play.add_argument("script", type=Path)
    play.add_argument("--language", default=None, help="Language code for localized text.")
    play.add_argument("--auto", action="store_true", help="Start with auto mode enabled.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and return a process exit code."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        script = load_script(args.script)
    except DataError as exc:
        print(f"Error: {exc}")
        return 2
    if args.command == "analyze":
        report = analyze_reachability(script)
        for line in render_report(report, script.title):
            print(line)
        return 1 if report.has_errors else 0

    config = load_config(args.config)
    session = start_session(
        script,
        language=args.language or str(config["language"]),
        max_history=int(config["max_history"]),
    )
    scheduler = ManualScheduler()
    controller = PlaybackController(
        session,
        scheduler,
        auto_delay=float(config["auto_delay"]),
        skip_tick=float(config["skip_tick"]),
        bindings=bindings_from_config(config["keybindings"]),
    )
    if args.auto:
        controller.toggle_auto_mode()
    print(f"=== {script.title or args.script.name} ===")
    print(_HELP)
    run_play_loop(controller, scheduler, debug=debug_enabled())
    return 0


def run_play_loop(controller: PlaybackController, scheduler: ManualScheduler, *, debug: bool = False) -> None:
    """Drive a playtest from stdin until the player quits."""
    while True:
        view = controller.view()
        print()
        for line in render_view(view, debug=debug):
            print(line)
        display = view.display
        if isinstance(display, WaitDisplay):
            _let_time_pass(scheduler, display.duration)
            continue
        if view.kind == "text" and (controller.is_auto_mode or controller.is_skip_mode):
            _let_time_pass(scheduler, controller.auto_delay if controller.is_auto_mode else controller.skip_tick)
            continue
        if isinstance(display, InputDisplay):
            controller.submit_input(input("> "))
            continue
        if isinstance(display, VideoDisplay):
            raw = input("[Enter] video finished, [s] skip: ").strip().lower()
            result = controller.skip_video() if raw == "s" else controller.complete_video()
            if not result.accepted:
                print(f"({result.reason})")
            continue
        started = time.monotonic()
        raw = input("> ").strip()
        # Time spent at the prompt counts against a timed choice.
        if isinstance(display, ChoicesDisplay) and display.timeout is not None:
            if scheduler.advance_time(time.monotonic() - started):
                print("(time ran out)")
                continue
        if raw.lower() in ("q", "quit"):
            controller.stop()
            return
        if view.is_ended and raw == "":
            controller.stop()
            return
        if raw.startswith(":"):
            _run_debug_command(controller, raw[1:].split())
            continue
        result = controller.handle_key(parse_key(raw))
        if result is not None and not result.accepted:
            print(f"({result.reason})")


def parse_key(raw: str) -> KeyEvent:
    """Turn typed text like ``ctrl+r`` or ``2`` into a KeyEvent."""
    parts = raw.split("+") if "+" in raw and len(raw) > 1 else [raw]
    modifiers = {part.lower() for part in parts[:-1]}
    key = _KEY_ALIASES.get(parts[-1].lower(), parts[-1])
    return KeyEvent(
        key=key,
        ctrl="ctrl" in modifiers,
        meta="meta" in modifiers or "cmd" in modifiers,
        shift="shift" in modifiers,
        alt="alt" in modifiers,
    )


def parse_value(raw: str) -> Value:
    lowered = raw.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        return raw


def _let_time_pass(scheduler: ManualScheduler, seconds: float) -> None:
    time.sleep(seconds)
    scheduler.advance_time(seconds)


def _run_debug_command(controller: PlaybackController, words: List[str]) -> None:
    if not words:
        return
    name, args = words[0], words[1:]
    if name == "jump" and len(args) == 1:
        result = controller.jump_to_label(args[0])
    elif name == "set" and len(args) >= 2:
        result = controller.set_variable(args[0], parse_value(" ".join(args[1:])))
    elif name == "back" and len(args) == 1 and args[0].isdigit():
        result = controller.rollback_steps(int(args[0]))
    elif name == "auto" and len(args) == 1:
        try:
            seconds = float(args[0])
        except ValueError:
            print(f"Not a number of seconds: {args[0]}")
            return
        controller.set_auto_delay(seconds)
        print(f"(auto delay {controller.auto_delay:g}s)")
        return
    elif name == "history":
        for entry in controller.view().history:
            speaker = f"{entry.speaker}: " if entry.speaker else ""
            print(f"  #{entry.index + 1} {speaker}{entry.text}")
        return
    else:
        print(f"Unknown command: :{' '.join(words)}")
        return
    if not result.accepted:
        print(f"({result.reason})")
