"""CLI configuration helpers for options persistence."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict

from vnscript.services.controllers.playback_controller import DEFAULT_AUTO_DELAY, DEFAULT_SKIP_TICK
from vnscript.services.input_bindings import PLAYTEST_KEYBINDINGS, bindings_from_config, bindings_to_config
from vnscript.services.playback_service import DEFAULT_MAX_HISTORY

logger = logging.getLogger(__name__)

_DEFAULT_LANGUAGE = "en"


def get_user_data_dir() -> Path:
    """Return the per-user data directory."""
    if os.name == "nt":
        base = os.environ.get("APPDATA")
        if base:
            return Path(base) / "vnscript"
        return Path.home() / "vnscript"
    return Path.home() / ".config" / "vnscript"


def get_default_config_path() -> Path:
    """Return the default per-user config path."""
    return get_user_data_dir() / "config.json"


def default_config() -> Dict[str, object]:
    return {
        "language": _DEFAULT_LANGUAGE,
        "auto_delay": DEFAULT_AUTO_DELAY,
        "skip_tick": DEFAULT_SKIP_TICK,
        "max_history": DEFAULT_MAX_HISTORY,
        "keybindings": bindings_to_config(PLAYTEST_KEYBINDINGS),
    }


def _normalize_positive(value: object, fallback: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return fallback
    return float(value)


def normalize_config(raw: object) -> Dict[str, object]:
    """Coerce a raw mapping into a complete config, replacing bad values with defaults."""
    config = default_config()
    if not isinstance(raw, dict):
        return config
    language = raw.get("language")
    if isinstance(language, str) and language:
        config["language"] = language
    config["auto_delay"] = _normalize_positive(raw.get("auto_delay"), DEFAULT_AUTO_DELAY)
    config["skip_tick"] = _normalize_positive(raw.get("skip_tick"), DEFAULT_SKIP_TICK)
    max_history = raw.get("max_history")
    if isinstance(max_history, int) and not isinstance(max_history, bool) and max_history > 0:
        config["max_history"] = max_history
    if "keybindings" in raw:
        config["keybindings"] = bindings_to_config(bindings_from_config(raw.get("keybindings")))
    return config


def load_config(path: Path | None = None) -> Dict[str, object]:
    """Load config from disk or return defaults."""
    config_path = path or get_default_config_path()
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return default_config()
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", config_path, exc)
        return default_config()
    return normalize_config(raw)


def save_config(config: Dict[str, object], path: Path | None = None) -> None:
    """Persist config to disk."""
    config_path = path or get_default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    payload = normalize_config(config)
    config_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
