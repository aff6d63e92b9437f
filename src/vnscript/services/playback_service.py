"""Interactive playback of scenario scripts."""
from __future__ import annotations

import functools
import logging
import threading
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Callable, ClassVar, Deque, Dict, List, Tuple, TypeVar

from vnscript.core.types import DisplayKind, LocalizedString, Value
from vnscript.domain.defs import ChoiceDef, CommandDef, ScriptDef
from vnscript.domain.localized import DEFAULT_LANGUAGE, resolve_localized
from vnscript.domain.variables import Variables, fingerprint, is_value, snapshot, variable_equals
from vnscript.services.label_resolver import LabelIndex, build_label_index

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 50


@dataclass(frozen=True, slots=True)
class VisualState:
    """Background and sprite carried from command to command."""

    background: str | None = None
    character: str | None = None
    char_pos: str = "center"


@dataclass(frozen=True, slots=True)
class ChoiceView:
    label: str
    jump: str


@dataclass(frozen=True, slots=True)
class Display:
    """Base class for the renderable projections of playback."""

    kind: ClassVar[DisplayKind]


@dataclass(frozen=True, slots=True)
class TextDisplay(Display):
    kind: ClassVar[DisplayKind] = "text"
    speaker: str | None
    text: str
    visual: VisualState
    nvl_mode: bool = False


@dataclass(frozen=True, slots=True)
class ChoicesDisplay(Display):
    kind: ClassVar[DisplayKind] = "choices"
    speaker: str | None
    text: str
    choices: Tuple[ChoiceView, ...]
    visual: VisualState
    timeout: float | None = None
    default_choice: int | None = None


@dataclass(frozen=True, slots=True)
class InputDisplay(Display):
    kind: ClassVar[DisplayKind] = "input"
    prompt: str
    var_name: str
    default_value: str | None
    visual: VisualState


@dataclass(frozen=True, slots=True)
class WaitDisplay(Display):
    kind: ClassVar[DisplayKind] = "wait"
    duration: float
    visual: VisualState


@dataclass(frozen=True, slots=True)
class VideoDisplay(Display):
    kind: ClassVar[DisplayKind] = "video"
    path: str
    skippable: bool
    loop_video: bool


@dataclass(frozen=True, slots=True)
class EndDisplay(Display):
    kind: ClassVar[DisplayKind] = "end"


@dataclass(frozen=True, slots=True)
class TransitionView:
    type: str
    duration: float
    direction: str


@dataclass(frozen=True, slots=True)
class BacklogEntry:
    index: int
    speaker: str | None
    text: str


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """State of playback just before a transition left it."""

    index: int
    variables: Variables
    visual: VisualState
    speaker: LocalizedString | None
    text: LocalizedString | None
    display: Display


@dataclass(frozen=True, slots=True)
class PlaybackView:
    """Data returned to the presentation layer for rendering."""

    display: Display
    command_index: int
    total_commands: int
    variables: Dict[str, Value]
    history_count: int
    can_rollback: bool
    is_ended: bool
    labels: List[str]
    current_label: str | None
    history: List[BacklogEntry]
    transition: TransitionView | None = None
    error: str | None = None

    @property
    def kind(self) -> DisplayKind:
        return self.display.kind


@dataclass(frozen=True, slots=True)
class StepResult:
    """Outcome of a playback operation."""

    accepted: bool
    view: PlaybackView
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """In-memory quick save of a session."""

    position: int
    variables: Variables = field(default_factory=dict)
    visual: VisualState = field(default_factory=VisualState)
    error: str | None = None


_F = TypeVar("_F", bound=Callable[..., StepResult])


def _transition(method: _F) -> _F:
    """Reject calls on stopped sessions and calls made while another is running."""

    @functools.wraps(method)
    def wrapper(self: "PlaybackSession", *args, **kwargs) -> StepResult:
        if not self._active:
            return self._reject("session is stopped")
        if not self._lock.acquire(blocking=False):
            return self._reject("another transition is in progress")
        try:
            return method(self, *args, **kwargs)
        finally:
            self._lock.release()

    return wrapper  # type: ignore[return-value]


class PlaybackSession:
    """Walks a script one displayable command at a time.

    The current display is re-derived from the command under the cursor and the
    variables, so the only stored state is the cursor, the variables, the
    accumulated visual state and the history used for rollback. Broken content
    never raises: unresolved jumps end playback with ``error`` set.
    """

    def __init__(
        self,
        script: ScriptDef,
        *,
        language: str = DEFAULT_LANGUAGE,
        max_history: int | None = DEFAULT_MAX_HISTORY,
    ) -> None:
        self._script = script
        self._index: LabelIndex = build_label_index(script)
        self._language = language
        self._history: Deque[HistoryEntry] = deque(maxlen=max_history)
        self._variables: Variables = {}
        self._visual = VisualState()
        self._position = 0
        self._error: str | None = None
        self._active = True
        self._lock = threading.Lock()
        self._enter(0)

    # Read side -----------------------------------------------------------

    @property
    def script(self) -> ScriptDef:
        return self._script

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def language(self) -> str:
        return self._language

    @property
    def position(self) -> int:
        return self._position

    @property
    def variables(self) -> Dict[str, Value]:
        return snapshot(self._variables)

    @property
    def can_rollback(self) -> bool:
        return bool(self._history)

    @property
    def history_count(self) -> int:
        return len(self._history)

    @property
    def is_ended(self) -> bool:
        return self._position >= len(self._script)

    @property
    def kind(self) -> DisplayKind:
        command = self._script.command_at(self._position)
        if command is None:
            return "end"
        return _display_kind(command)

    def view(self) -> PlaybackView:
        """Return the projection for the current position."""
        return PlaybackView(
            display=self._display(),
            command_index=self._position,
            total_commands=len(self._script),
            variables=snapshot(self._variables),
            history_count=len(self._history),
            can_rollback=bool(self._history),
            is_ended=self.is_ended,
            labels=self._script.labels(),
            current_label=self._index.nearest_label(self._position),
            history=[
                BacklogEntry(
                    index=entry.index,
                    speaker=resolve_localized(entry.speaker, self._language) if entry.speaker is not None else None,
                    text=resolve_localized(entry.text, self._language),
                )
                for entry in self._history
            ],
            transition=self._transition_view(),
            error=self._error,
        )

    # Player operations ---------------------------------------------------

    @_transition
    def advance(self) -> StepResult:
        """Continue past the text currently shown."""
        kind = self.kind
        if kind != "text":
            return self._reject(f"advance is not valid while showing {kind}")
        command = self._script.script[self._position]
        self._record()
        self._depart(command)
        self._go(self._branch_target(command, self._position))
        return self._accept()

    @_transition
    def select_choice(self, choice_index: int) -> StepResult:
        """Pick one of the displayed choices by its displayed index."""
        if self.kind != "choices":
            return self._reject(f"no choices are shown (showing {self.kind})")
        command = self._script.script[self._position]
        choices = self._valid_choices(command)
        if not 0 <= choice_index < len(choices):
            return self._reject(f"choice index {choice_index} is out of range")
        selected = choices[choice_index]
        self._record()
        self._depart(command)
        self._go(self._index.resolve(selected.jump))
        return self._accept()

    @_transition
    def submit_input(self, value: str) -> StepResult:
        if self.kind != "input":
            return self._reject(f"no input is requested (showing {self.kind})")
        command = self._script.script[self._position]
        assert command.input is not None
        if value == "" and command.input.default is not None:
            value = command.input.default
        self._record()
        self._variables[command.input.var] = value
        self._depart(command)
        self._go(self._branch_target(command, self._position))
        return self._accept()

    @_transition
    def complete_wait(self) -> StepResult:
        """Called by the host once the wait duration has elapsed."""
        return self._finish_wait()

    @_transition
    def skip_wait(self) -> StepResult:
        return self._finish_wait()

    @_transition
    def complete_video(self) -> StepResult:
        """Called by the host when the video reaches its natural end."""
        if self.kind != "video":
            return self._reject(f"no video is playing (showing {self.kind})")
        command = self._script.script[self._position]
        assert command.video is not None
        if command.video.loop:
            return self._reject("looping videos only end when skipped")
        return self._finish_suspension(command)

    @_transition
    def skip_video(self) -> StepResult:
        if self.kind != "video":
            return self._reject(f"no video is playing (showing {self.kind})")
        command = self._script.script[self._position]
        assert command.video is not None
        if not (command.video.skippable or command.video.loop):
            return self._reject("video is not skippable")
        return self._finish_suspension(command)

    @_transition
    def rollback(self) -> StepResult:
        return self._rollback(1)

    @_transition
    def rollback_steps(self, steps: int) -> StepResult:
        return self._rollback(steps)

    @_transition
    def restart(self) -> StepResult:
        self._history.clear()
        self._variables = {}
        self._visual = VisualState()
        self._error = None
        self._enter(0)
        return self._accept()

    # Debug operations ----------------------------------------------------

    @_transition
    def jump_to_label(self, label: str) -> StepResult:
        self._record()
        self._error = None
        self._go(self._index.resolve(label))
        return self._accept()

    @_transition
    def set_variable(self, name: str, value: Value) -> StepResult:
        if not is_value(value):
            return self._reject(f"unsupported value type {type(value).__name__}")
        self._record()
        self._variables[name] = value
        return self._accept()

    # Session management --------------------------------------------------

    @_transition
    def set_language(self, language: str) -> StepResult:
        self._language = language
        return self._accept()

    @_transition
    def reload_script(self, script: ScriptDef) -> StepResult:
        """Swap in an edited script, keeping the variables and cursor."""
        self._script = script
        self._index = build_label_index(script)
        self._history.clear()
        self._error = None
        self._enter(min(self._position, len(script)))
        return self._accept()

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            position=self._position,
            variables=snapshot(self._variables),
            visual=self._visual,
            error=self._error,
        )

    @_transition
    def restore(self, saved: SessionSnapshot) -> StepResult:
        self._record()
        self._position = max(0, min(saved.position, len(self._script)))
        self._variables = snapshot(saved.variables)
        self._visual = saved.visual
        self._error = saved.error
        return self._accept()

    def stop(self) -> None:
        """Discard variables and history; later calls are rejected."""
        self._active = False
        self._history.clear()
        self._variables = {}

    # Internals -----------------------------------------------------------

    def _accept(self) -> StepResult:
        return StepResult(accepted=True, view=self.view())

    def _reject(self, reason: str) -> StepResult:
        logger.debug("Rejected playback operation at #%d: %s", self._position, reason)
        return StepResult(accepted=False, view=self.view(), reason=reason)

    def _finish_wait(self) -> StepResult:
        if self.kind != "wait":
            return self._reject(f"nothing is waiting (showing {self.kind})")
        return self._finish_suspension(self._script.script[self._position])

    def _finish_suspension(self, command: CommandDef) -> StepResult:
        self._record()
        self._depart(command)
        self._go(self._branch_target(command, self._position))
        return self._accept()

    def _rollback(self, steps: int) -> StepResult:
        if steps <= 0:
            return self._reject("rollback needs a positive step count")
        if not self._history:
            return self._reject("nothing to roll back")
        entry = self._history.pop()
        for _ in range(min(steps, len(self._history) + 1) - 1):
            entry = self._history.pop()
        self._position = entry.index
        self._variables = snapshot(entry.variables)
        self._visual = entry.visual
        self._error = None
        return self._accept()

    def _record(self) -> None:
        command = self._script.command_at(self._position)
        self._history.append(
            HistoryEntry(
                index=self._position,
                variables=snapshot(self._variables),
                visual=self._visual,
                speaker=command.speaker if command is not None else None,
                text=command.text if command is not None else None,
                display=self._display(),
            )
        )

    def _depart(self, command: CommandDef) -> None:
        self._visual = _overlay(self._visual, command)

    def _go(self, target: int | None) -> None:
        if target is None:
            self._end("unresolved_jump")
            return
        self._enter(target)

    def _end(self, reason: str) -> None:
        logger.warning("Playback of %r ended at #%d: %s", self._script.title, self._position, reason)
        self._position = len(self._script)
        self._error = reason

    def _enter(self, position: int) -> None:
        """Move to ``position`` and run forward until something can be shown."""
        seen: set[tuple] = set()
        while True:
            command = self._script.command_at(position)
            if command is None:
                self._position = len(self._script)
                return
            key = (position, fingerprint(self._variables))
            if key in seen:
                self._position = position
                self._end("infinite_loop")
                return
            seen.add(key)
            if command.set is not None:
                self._variables[command.set.name] = command.set.value
            if not command.has_display():
                self._visual = _overlay(self._visual, command)
                target = self._branch_target(command, position)
                if target is None:
                    self._position = position
                    self._end("unresolved_jump")
                    return
                position = target
                continue
            if _display_kind(command) == "choices":
                if command.if_ is not None and self._condition_holds(command):
                    target = self._index.resolve(command.if_.jump)
                    if target is None:
                        self._position = position
                        self._end("unresolved_jump")
                        return
                    position = target
                    continue
                if not self._valid_choices(command):
                    self._position = position
                    self._end("no_valid_choices")
                    return
            self._position = position
            return

    def _branch_target(self, command: CommandDef, position: int) -> int | None:
        """Where control goes after ``command``: jump, then if, then the next command."""
        if command.jump is not None:
            return self._index.resolve(command.jump)
        if command.if_ is not None and self._condition_holds(command):
            return self._index.resolve(command.if_.jump)
        return position + 1

    def _condition_holds(self, command: CommandDef) -> bool:
        condition = command.if_
        assert condition is not None
        return variable_equals(self._variables, condition.var, condition.is_)

    def _valid_choices(self, command: CommandDef) -> List[ChoiceDef]:
        return [choice for choice in command.choices or () if choice.jump in self._index]

    def _display(self) -> Display:
        command = self._script.command_at(self._position)
        if command is None:
            return EndDisplay()
        visual = _overlay(self._visual, command)
        kind = _display_kind(command)
        speaker = resolve_localized(command.speaker, self._language) if command.speaker is not None else None
        text = resolve_localized(command.text, self._language)
        if kind == "video":
            assert command.video is not None
            return VideoDisplay(path=command.video.path, skippable=command.video.skippable, loop_video=command.video.loop)
        if kind == "choices":
            choices = self._valid_choices(command)
            default_choice = next((i for i, choice in enumerate(choices) if choice.default), 0)
            return ChoicesDisplay(
                speaker=speaker,
                text=text,
                choices=tuple(
                    ChoiceView(label=resolve_localized(choice.label, self._language), jump=choice.jump)
                    for choice in choices
                ),
                visual=visual,
                timeout=command.timeout,
                default_choice=default_choice if choices else None,
            )
        if kind == "input":
            assert command.input is not None
            return InputDisplay(
                prompt=command.input.prompt or "",
                var_name=command.input.var,
                default_value=command.input.default,
                visual=visual,
            )
        if kind == "wait":
            assert command.wait is not None
            return WaitDisplay(duration=command.wait, visual=visual)
        return TextDisplay(speaker=speaker, text=text, visual=visual, nvl_mode=bool(command.nvl))

    def _transition_view(self) -> TransitionView | None:
        command = self._script.command_at(self._position)
        if command is None or command.transition is None:
            return None
        return TransitionView(
            type=command.transition.type,
            duration=command.transition.duration,
            direction=command.transition.direction,
        )


def start_session(
    script: ScriptDef,
    *,
    language: str = DEFAULT_LANGUAGE,
    max_history: int | None = DEFAULT_MAX_HISTORY,
) -> PlaybackSession:
    """Begin a playtest of ``script`` and return the session handle."""
    session = PlaybackSession(script, language=language, max_history=max_history)
    logger.debug("Started playback of %r at #%d", script.title, session.position)
    return session


def _display_kind(command: CommandDef) -> DisplayKind:
    if command.video is not None:
        return "video"
    if command.choices is not None and command.jump is None:
        return "choices"
    if command.input is not None:
        return "input"
    if command.text is not None or command.choices is not None:
        return "text"
    if command.wait is not None:
        return "wait"
    return "text"


def _overlay(visual: VisualState, command: CommandDef) -> VisualState:
    """Apply a command's background/sprite overrides; empty strings clear."""
    updated = visual
    if command.background is not None:
        updated = replace(updated, background=command.background or None)
    if command.character is not None:
        updated = replace(updated, character=command.character or None)
    if command.char_pos is not None:
        updated = replace(updated, char_pos=command.char_pos)
    return updated
