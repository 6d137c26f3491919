"""User settings loaded from ``settings.json`` in the config directory."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

logger = logging.getLogger(__name__)

SETTINGS_FILE = "settings.json"

SOUND_TYPES = ("beep", "bell", "chime", "digital", "tick")
VIBRATION_PATTERNS = ("short", "long", "pulse")

_MIN_TICK_INTERVAL_MS = 100
_MAX_TICK_INTERVAL_MS = 1000


@dataclass
class CompletionSettings:
    """Which feedback collaborators fire when a session completes."""

    sound_enabled: bool = True
    sound_type: str = "beep"
    sound_volume: int = 70
    vibration_enabled: bool = True
    vibration_pattern: str = "short"
    notifications_enabled: bool = True
    notification_message: str = "Timer completed!"


@dataclass
class TimerSettings:
    completion: CompletionSettings = field(default_factory=CompletionSettings)
    tick_interval_ms: int = 250
    history_enabled: bool = True

    @classmethod
    def load(cls, config_dir: Path) -> TimerSettings:
        """Read settings from *config_dir*, falling back to defaults.

        Unknown keys are ignored and invalid values are replaced by their
        default with a logged warning.
        """
        path = config_dir / SETTINGS_FILE
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
            return cls()
        if not isinstance(data, dict):
            logger.warning("Ignoring settings file %s: not a JSON object", path)
            return cls()
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> TimerSettings:
        settings = cls()
        raw_completion = data.get("completion", {})
        if isinstance(raw_completion, dict):
            settings.completion = _completion_from_dict(raw_completion)

        interval = data.get("tick_interval_ms", settings.tick_interval_ms)
        if isinstance(interval, int) and not isinstance(interval, bool):
            settings.tick_interval_ms = min(
                _MAX_TICK_INTERVAL_MS, max(_MIN_TICK_INTERVAL_MS, interval)
            )
        else:
            logger.warning("Invalid tick_interval_ms %r, using default", interval)

        history = data.get("history_enabled", settings.history_enabled)
        if isinstance(history, bool):
            settings.history_enabled = history
        else:
            logger.warning("Invalid history_enabled %r, using default", history)
        return settings

    def save(self, config_dir: Path) -> None:
        config_dir.mkdir(parents=True, exist_ok=True)
        (config_dir / SETTINGS_FILE).write_text(
            json.dumps(asdict(self), indent=2), encoding="utf-8"
        )


def _completion_from_dict(data: dict) -> CompletionSettings:
    defaults = CompletionSettings()
    values = {}
    for f in fields(CompletionSettings):
        if f.name not in data:
            continue
        value = data[f.name]
        if _valid_completion_value(f.name, value):
            values[f.name] = value
        else:
            logger.warning(
                "Invalid %s %r, using default %r", f.name, value, getattr(defaults, f.name)
            )
    return CompletionSettings(**values)


def _valid_completion_value(name: str, value: object) -> bool:
    if name.endswith("_enabled"):
        return isinstance(value, bool)
    if name == "sound_type":
        return value in SOUND_TYPES
    if name == "vibration_pattern":
        return value in VIBRATION_PATTERNS
    if name == "sound_volume":
        return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 100
    if name == "notification_message":
        return isinstance(value, str) and bool(value.strip())
    return False
