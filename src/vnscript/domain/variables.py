"""Variable storage semantics for playback."""
from __future__ import annotations

from typing import Dict, Mapping, Tuple

from vnscript.core.types import Value

Variables = Dict[str, Value]


def is_value(value: object) -> bool:
    """Return True for the value types a script may store."""
    return isinstance(value, (bool, int, float, str))


def values_equal(left: object, right: object) -> bool:
    """Compare two script values.

    Booleans only equal booleans, so ``True`` never matches ``1``. Integers and
    floats compare numerically and strings compare exactly.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return False


def variable_equals(variables: Mapping[str, Value], name: str, expected: Value) -> bool:
    if name not in variables:
        return False
    return values_equal(variables[name], expected)


def snapshot(variables: Mapping[str, Value]) -> Variables:
    return dict(variables)


def fingerprint(variables: Mapping[str, Value]) -> Tuple[Tuple[str, str, Value], ...]:
    """Hashable, type-aware key for a set of variables."""
    return tuple(sorted((name, type(value).__name__, value) for name, value in variables.items()))
