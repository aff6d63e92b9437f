"""Domain definition exports."""

from .script_def import (
    ChoiceDef,
    CommandDef,
    IfConditionDef,
    InputDef,
    ScriptDef,
    SetVarDef,
    TransitionDef,
    VideoDef,
)

__all__ = [
    "ChoiceDef",
    "CommandDef",
    "IfConditionDef",
    "InputDef",
    "ScriptDef",
    "SetVarDef",
    "TransitionDef",
    "VideoDef",
]
