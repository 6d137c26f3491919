"""External collaborator interfaces and best-effort completion feedback."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from flowclock.core.models import MS_PER_SECOND, SessionSummary
from flowclock.core.settings import CompletionSettings

logger = logging.getLogger(__name__)


class SoundPlayer(Protocol):
    def play(self, kind: str, volume: int) -> None: ...


class VibrationDriver(Protocol):
    def vibrate(self, pattern: str) -> None: ...


class Notifier(Protocol):
    def show_completion(self, message: str, mode_label: str, duration_seconds: int) -> None: ...


class HistoryStore(Protocol):
    def record(self, summary: SessionSummary) -> None: ...


class PersistentStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class NullSoundPlayer:
    def play(self, kind: str, volume: int) -> None:
        logger.debug("Sound %s at volume %d (no player)", kind, volume)


class NullVibrationDriver:
    def vibrate(self, pattern: str) -> None:
        logger.debug("Vibration %s (no driver)", pattern)


class NullNotifier:
    def show_completion(self, message: str, mode_label: str, duration_seconds: int) -> None:
        logger.debug("Notification %r for %s (no notifier)", message, mode_label)


class NullHistoryStore:
    def record(self, summary: SessionSummary) -> None:
        logger.debug("Dropping history record %r", summary)


class MemoryStore:
    """In-process :class:`PersistentStore`."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class CompletionFeedback:
    """Fires sound, vibration and notification for a finished session.

    Each collaborator runs in isolation: a failure is logged and the
    remaining collaborators still run.
    """

    def __init__(
        self,
        sound: SoundPlayer | None = None,
        vibration: VibrationDriver | None = None,
        notifier: Notifier | None = None,
        settings: CompletionSettings | None = None,
    ) -> None:
        self.sound = sound or NullSoundPlayer()
        self.vibration = vibration or NullVibrationDriver()
        self.notifier = notifier or NullNotifier()
        self.settings = settings or CompletionSettings()

    def fire(self, mode_label: str, duration: float) -> list[str]:
        """Run every enabled collaborator; return the names that failed."""
        s = self.settings
        failed = []
        if s.sound_enabled:
            if not _attempt("sound", self.sound.play, s.sound_type, s.sound_volume):
                failed.append("sound")
        if s.vibration_enabled:
            if not _attempt("vibration", self.vibration.vibrate, s.vibration_pattern):
                failed.append("vibration")
        if s.notifications_enabled:
            seconds = int(duration // MS_PER_SECOND)
            if not _attempt(
                "notification",
                self.notifier.show_completion,
                s.notification_message,
                mode_label,
                seconds,
            ):
                failed.append("notification")
        return failed


def _attempt(name: str, func, *args) -> bool:
    try:
        func(*args)
    except Exception:
        logger.exception("Completion %s failed", name)
        return False
    return True
