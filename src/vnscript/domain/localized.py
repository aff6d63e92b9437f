"""Helpers for strings that may be plain or keyed by language code."""
from __future__ import annotations

from vnscript.core.types import LocalizedString

DEFAULT_LANGUAGE = "en"


def resolve_localized(value: LocalizedString | None, language: str = DEFAULT_LANGUAGE) -> str:
    """Pick the best string for ``language``.

    Plain strings are returned as-is. Maps fall back to English, then to the
    first entry; an empty map resolves to an empty string.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if language in value:
        return value[language]
    if DEFAULT_LANGUAGE in value:
        return value[DEFAULT_LANGUAGE]
    for text in value.values():
        return text
    return ""
