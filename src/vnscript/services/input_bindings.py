"""Declarative key bindings for playtest controls."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Mapping, Sequence, Tuple, get_args

from vnscript.core.types import PlaybackAction

logger = logging.getLogger(__name__)

Modifier = str
MODIFIERS: FrozenSet[Modifier] = frozenset({"ctrl", "meta", "shift", "alt"})
_ACTIONS = frozenset(get_args(PlaybackAction))


@dataclass(frozen=True, slots=True)
class KeyEvent:
    """Device-independent key press."""

    key: str
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    alt: bool = False

    def active_modifiers(self) -> FrozenSet[Modifier]:
        pressed = {
            "ctrl": self.ctrl,
            "meta": self.meta,
            "shift": self.shift,
            "alt": self.alt,
        }
        return frozenset(name for name, down in pressed.items() if down)


@dataclass(frozen=True, slots=True)
class KeyBinding:
    """Maps a key to an action.

    By default the pressed modifiers must match ``modifiers`` exactly. With
    ``require_no_modifiers`` only ctrl and meta are checked, and both must be up.
    """

    key: str
    action: PlaybackAction
    modifiers: FrozenSet[Modifier] = frozenset()
    require_no_modifiers: bool = False


@dataclass(frozen=True, slots=True)
class ActionRequest:
    action: PlaybackAction
    choice_index: int | None = None


PLAYTEST_KEYBINDINGS: Tuple[KeyBinding, ...] = (
    KeyBinding("Enter", "advance_or_select_first"),
    KeyBinding(" ", "advance"),
    KeyBinding("Backspace", "rollback"),
    KeyBinding("ArrowUp", "rollback"),
    KeyBinding("ArrowDown", "advance"),
    KeyBinding("ArrowRight", "advance"),
    KeyBinding("r", "restart", modifiers=frozenset({"ctrl"})),
    KeyBinding("r", "restart", modifiers=frozenset({"meta"})),
    KeyBinding("a", "toggle_auto"),
    KeyBinding("s", "toggle_skip", require_no_modifiers=True),
    KeyBinding("F5", "save"),
    KeyBinding("F9", "load"),
)

_DIGITS = "123456789"


def matches_binding(event: KeyEvent, binding: KeyBinding) -> bool:
    if event.key.lower() != binding.key.lower():
        return False
    if binding.require_no_modifiers:
        return not (event.ctrl or event.meta)
    return event.active_modifiers() == binding.modifiers


def lookup_action(
    event: KeyEvent, bindings: Sequence[KeyBinding] = PLAYTEST_KEYBINDINGS
) -> ActionRequest | None:
    """Return the action for ``event``; the first matching binding wins.

    Digits 1-9 select the matching choice, but only when no binding claims the key.
    """
    for binding in bindings:
        if matches_binding(event, binding):
            return ActionRequest(action=binding.action)
    if len(event.key) == 1 and event.key in _DIGITS:
        return ActionRequest(action="select_choice", choice_index=int(event.key) - 1)
    return None


def bindings_from_config(raw: object) -> Tuple[KeyBinding, ...]:
    """Build a binding table from config entries, skipping invalid ones.

    Each entry is ``{"key": str, "action": str, "modifiers": [...],
    "require_no_modifiers": bool}``. An empty or unusable list yields the defaults.
    """
    if not isinstance(raw, list):
        return PLAYTEST_KEYBINDINGS
    bindings = [binding for binding in (_binding_from_entry(entry) for entry in raw) if binding is not None]
    return tuple(bindings) if bindings else PLAYTEST_KEYBINDINGS


def bindings_to_config(bindings: Iterable[KeyBinding]) -> list[dict[str, object]]:
    return [
        {
            "key": binding.key,
            "action": binding.action,
            "modifiers": sorted(binding.modifiers),
            "require_no_modifiers": binding.require_no_modifiers,
        }
        for binding in bindings
    ]


def _binding_from_entry(entry: object) -> KeyBinding | None:
    if not isinstance(entry, Mapping):
        logger.warning("Ignoring key binding that is not an object: %r", entry)
        return None
    key = entry.get("key")
    action = entry.get("action")
    modifiers = entry.get("modifiers", [])
    if not isinstance(key, str) or not key:
        logger.warning("Ignoring key binding without a key: %r", entry)
        return None
    if action not in _ACTIONS or action == "select_choice":
        logger.warning("Ignoring key binding with unknown action: %r", entry)
        return None
    if not isinstance(modifiers, list) or not all(name in MODIFIERS for name in modifiers):
        logger.warning("Ignoring key binding with unknown modifiers: %r", entry)
        return None
    return KeyBinding(
        key=key,
        action=action,
        modifiers=frozenset(modifiers),
        require_no_modifiers=bool(entry.get("require_no_modifiers", False)),
    )
