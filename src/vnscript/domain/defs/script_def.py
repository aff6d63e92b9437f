"""Scenario script definition structures used by the runtime and analyzer."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from vnscript.core.types import LocalizedString, Value


@dataclass(frozen=True, slots=True)
class ChoiceDef:
    """Selectable option on a choices command."""

    label: LocalizedString
    jump: str
    default: bool = False


@dataclass(frozen=True, slots=True)
class IfConditionDef:
    """Conditional transfer: jump when ``var`` currently equals ``is_``."""

    var: str
    is_: Value
    jump: str


@dataclass(frozen=True, slots=True)
class SetVarDef:
    name: str
    value: Value


@dataclass(frozen=True, slots=True)
class InputDef:
    """Free-text entry stored into ``var``."""

    var: str
    prompt: str | None = None
    default: str | None = None


@dataclass(frozen=True, slots=True)
class VideoDef:
    path: str
    skippable: bool = True
    loop: bool = False


@dataclass(frozen=True, slots=True)
class TransitionDef:
    type: str = "fade"
    duration: float = 0.5
    direction: str = "left_to_right"


@dataclass(frozen=True, slots=True)
class CommandDef:
    """One scenario step.

    Every field is optional and independent: a command may show text, swap the
    background and set a variable in the same step. Only ``jump``, ``if_``,
    ``choices``, ``wait``, ``input`` and ``video`` affect control flow; the
    remaining fields are passed through to the renderer untouched.
    """

    label: str | None = None
    speaker: LocalizedString | None = None
    text: LocalizedString | None = None
    choices: Tuple[ChoiceDef, ...] | None = None
    jump: str | None = None
    if_: IfConditionDef | None = None
    set: SetVarDef | None = None
    wait: float | None = None
    timeout: float | None = None
    input: InputDef | None = None
    video: VideoDef | None = None
    background: str | None = None
    character: str | None = None
    char_pos: str | None = None
    bgm: str | None = None
    se: str | None = None
    voice: str | None = None
    transition: TransitionDef | None = None
    shake: Dict[str, object] | None = None
    camera: Dict[str, object] | None = None
    particles: str | None = None
    achievement: Dict[str, object] | None = None
    nvl: bool | None = None
    extra: Dict[str, object] = field(default_factory=dict)

    def has_display(self) -> bool:
        """Return True when playback suspends on this command."""
        return (
            self.text is not None
            or self.choices is not None
            or self.wait is not None
            or self.input is not None
            or self.video is not None
        )

    def jump_targets(self) -> List[str]:
        """Return every label name this command refers to, in field order."""
        targets: List[str] = []
        if self.jump is not None:
            targets.append(self.jump)
        if self.if_ is not None:
            targets.append(self.if_.jump)
        for choice in self.choices or ():
            targets.append(choice.jump)
        return targets


@dataclass(frozen=True, slots=True)
class ScriptDef:
    """Immutable scenario: a title plus an ordered command sequence."""

    title: str
    script: Tuple[CommandDef, ...] = ()

    def __len__(self) -> int:
        return len(self.script)

    def command_at(self, position: int) -> CommandDef | None:
        if 0 <= position < len(self.script):
            return self.script[position]
        return None

    def labels(self) -> List[str]:
        return [command.label for command in self.script if command.label is not None]
