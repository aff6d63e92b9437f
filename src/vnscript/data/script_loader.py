"""Turns raw script mappings (decoded JSON) into ScriptDef values.

Only structural problems are rejected here. Reference problems such as jumps
to missing labels or duplicate labels are legal content at this layer and are
reported by the reachability analyzer instead.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Mapping, Tuple

from vnscript.core.types import LocalizedString, Value
from vnscript.data.errors import DataLoadError, DataValidationError
from vnscript.domain.defs import (
    ChoiceDef,
    CommandDef,
    IfConditionDef,
    InputDef,
    ScriptDef,
    SetVarDef,
    TransitionDef,
    VideoDef,
)
from vnscript.domain.variables import is_value

logger = logging.getLogger(__name__)

_KNOWN_KEYS = {
    "label",
    "speaker",
    "text",
    "choices",
    "jump",
    "if",
    "set",
    "wait",
    "timeout",
    "input",
    "video",
    "background",
    "character",
    "char_pos",
    "bgm",
    "se",
    "voice",
    "transition",
    "shake",
    "camera",
    "particles",
    "achievement",
    "nvl",
}


def load_script(path: Path | str) -> ScriptDef:
    """Read a JSON scenario file from disk."""
    file_path = Path(path)
    raw = _read_json(file_path)
    script = parse_script(raw, source=str(file_path))
    logger.debug("Loaded script %r with %d commands from %s", script.title, len(script), file_path)
    return script


def _read_json(path: Path) -> object:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise DataLoadError(path, "Script file not found") from exc
    except OSError as exc:
        raise DataLoadError(path, f"Unable to read script file ({exc.strerror})") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise DataLoadError(path, f"Invalid JSON at line {exc.lineno} column {exc.colno}") from exc


def parse_script(raw: object, *, source: str = "script") -> ScriptDef:
    """Build a ScriptDef from ``{"title": ..., "script": [...]}``."""
    data = _require_mapping(raw, source)
    title = data.get("title", "")
    if not isinstance(title, str):
        raise DataValidationError(source, "title must be a string.")
    raw_commands = data.get("script", [])
    if not isinstance(raw_commands, list):
        raise DataValidationError(source, "script must be a list.")
    commands = tuple(
        parse_command(entry, context=f"{source} script[{index}]")
        for index, entry in enumerate(raw_commands)
    )
    return ScriptDef(title=title, script=commands)


def parse_command(raw: object, *, context: str = "command") -> CommandDef:
    data = _require_mapping(raw, context)
    extra = {key: value for key, value in data.items() if key not in _KNOWN_KEYS}
    return CommandDef(
        label=_optional_str(data.get("label"), f"{context} label"),
        speaker=_optional_localized(data.get("speaker"), f"{context} speaker"),
        text=_optional_localized(data.get("text"), f"{context} text"),
        choices=_parse_choices(data.get("choices"), context),
        jump=_optional_str(data.get("jump"), f"{context} jump"),
        if_=_parse_if(data.get("if"), context),
        set=_parse_set(data.get("set"), context),
        wait=_optional_number(data.get("wait"), f"{context} wait"),
        timeout=_optional_number(data.get("timeout"), f"{context} timeout"),
        input=_parse_input(data.get("input"), context),
        video=_parse_video(data.get("video"), context),
        background=_optional_str(data.get("background"), f"{context} background"),
        character=_optional_str(data.get("character"), f"{context} character"),
        char_pos=_optional_str(data.get("char_pos"), f"{context} char_pos"),
        bgm=_optional_str(data.get("bgm"), f"{context} bgm"),
        se=_optional_str(data.get("se"), f"{context} se"),
        voice=_optional_str(data.get("voice"), f"{context} voice"),
        transition=_parse_transition(data.get("transition"), context),
        shake=_optional_mapping(data.get("shake"), f"{context} shake"),
        camera=_optional_mapping(data.get("camera"), f"{context} camera"),
        particles=_optional_str(data.get("particles"), f"{context} particles"),
        achievement=_optional_mapping(data.get("achievement"), f"{context} achievement"),
        nvl=_optional_bool(data.get("nvl"), f"{context} nvl"),
        extra=extra,
    )


def _parse_choices(raw: object, context: str) -> Tuple[ChoiceDef, ...] | None:
    if raw is None:
        return None
    if not isinstance(raw, list):
        raise DataValidationError(context, "choices must be a list if provided.")
    choices: List[ChoiceDef] = []
    for index, entry in enumerate(raw):
        choice_ctx = f"{context} choices[{index}]"
        choice = _require_mapping(entry, choice_ctx)
        label = _optional_localized(choice.get("label"), f"{choice_ctx} label")
        jump = _require_str(choice.get("jump"), f"{choice_ctx} jump")
        choices.append(
            ChoiceDef(
                label=label if label is not None else "",
                jump=jump,
                default=bool(_optional_bool(choice.get("default"), f"{choice_ctx} default")),
            )
        )
    return tuple(choices)


def _parse_if(raw: object, context: str) -> IfConditionDef | None:
    if raw is None:
        return None
    data = _require_mapping(raw, f"{context} if")
    return IfConditionDef(
        var=_require_str(data.get("var"), f"{context} if.var"),
        is_=_require_value(data.get("is"), f"{context} if.is"),
        jump=_require_str(data.get("jump"), f"{context} if.jump"),
    )


def _parse_set(raw: object, context: str) -> SetVarDef | None:
    if raw is None:
        return None
    data = _require_mapping(raw, f"{context} set")
    return SetVarDef(
        name=_require_str(data.get("name"), f"{context} set.name"),
        value=_require_value(data.get("value"), f"{context} set.value"),
    )


def _parse_input(raw: object, context: str) -> InputDef | None:
    if raw is None:
        return None
    data = _require_mapping(raw, f"{context} input")
    return InputDef(
        var=_require_str(data.get("var"), f"{context} input.var"),
        prompt=_optional_str(data.get("prompt"), f"{context} input.prompt"),
        default=_optional_str(data.get("default"), f"{context} input.default"),
    )


def _parse_video(raw: object, context: str) -> VideoDef | None:
    if raw is None:
        return None
    data = _require_mapping(raw, f"{context} video")
    skippable = _optional_bool(data.get("skippable"), f"{context} video.skippable")
    loop = _optional_bool(data.get("loop", data.get("loop_video")), f"{context} video.loop")
    return VideoDef(
        path=_require_str(data.get("path"), f"{context} video.path"),
        skippable=True if skippable is None else skippable,
        loop=bool(loop),
    )


def _parse_transition(raw: object, context: str) -> TransitionDef | None:
    if raw is None:
        return None
    data = _require_mapping(raw, f"{context} transition")
    defaults = TransitionDef()
    duration = _optional_number(data.get("duration"), f"{context} transition.duration")
    return TransitionDef(
        type=_optional_str(data.get("type"), f"{context} transition.type") or defaults.type,
        duration=defaults.duration if duration is None else duration,
        direction=_optional_str(data.get("direction"), f"{context} transition.direction")
        or defaults.direction,
    )


def _require_mapping(value: object, context: str) -> Dict[str, object]:
    if not isinstance(value, dict):
        raise DataValidationError(context, "must be an object/dict.")
    return value


def _optional_mapping(value: object, context: str) -> Dict[str, object] | None:
    if value is None:
        return None
    return dict(_require_mapping(value, context))


def _require_str(value: object, context: str) -> str:
    if not isinstance(value, str):
        raise DataValidationError(context, "must be a string.")
    return value


def _optional_str(value: object, context: str) -> str | None:
    if value is None:
        return None
    return _require_str(value, context)


def _optional_bool(value: object, context: str) -> bool | None:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise DataValidationError(context, "must be a boolean if provided.")
    return value


def _optional_number(value: object, context: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DataValidationError(context, "must be a number if provided.")
    return float(value)


def _optional_localized(value: object, context: str) -> LocalizedString | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping) and all(
        isinstance(key, str) and isinstance(text, str) for key, text in value.items()
    ):
        return dict(value)
    raise DataValidationError(context, "must be a string or a language-to-string map.")


def _require_value(value: object, context: str) -> Value:
    if not is_value(value):
        raise DataValidationError(context, "must be a string, number, or boolean.")
    return value
