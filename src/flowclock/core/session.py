"""Session manager: drives the timer engine with JSON persistence."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from flowclock.core.feedback import (
    CompletionFeedback,
    Notifier,
    PersistentStore,
    SoundPlayer,
    VibrationDriver,
)
from flowclock.core.models import (
    CountdownConfig,
    DisplayState,
    IntervalsConfig,
    Lap,
    Lifecycle,
    Segment,
    StopwatchConfig,
    TimerMode,
)
from flowclock.core.settings import TimerSettings
from flowclock.core.snapshot import RestoreOutcome, RestoreStatus
from flowclock.core.store import JsonFileStore, JsonlHistoryStore
from flowclock.core.timer import Clock, TimerEngine

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "flowclock"
_SNAPSHOT_KEY = "session"
_HISTORY_FILE = "history.jsonl"


def format_clock(ms: float) -> str:
    """Format *ms* as ``M:SS``, or ``H:MM:SS`` from one hour up."""
    total = int(max(0.0, ms) // 1000)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def describe(state: DisplayState) -> str:
    """One-line description of a non-idle display state."""
    if state.mode is TimerMode.STOPWATCH:
        text = f"{format_clock(state.elapsed)} elapsed"
    elif state.mode is TimerMode.COUNTDOWN:
        text = f"{format_clock(state.remaining)} remaining"
    else:
        segment = "Work" if state.segment is Segment.WORK else "Break"
        cycle = state.completed_cycles + 1
        total = f"/{state.target_cycles}" if state.target_cycles else ""
        text = f"{segment} {format_clock(state.remaining)} remaining, cycle {cycle}{total}"
        if state.session_label:
            text = f"{state.session_label}: {text}"
    if state.lifecycle is Lifecycle.PAUSED:
        text += " (paused)"
    return text


class Session:
    """Orchestrates one timer session across process invocations.

    The engine state is written to ``<config_dir>/session.json`` after every
    mutation and restored on construction, so a timer keeps running while no
    process is alive.
    """

    def __init__(
        self,
        config_dir: Path | None = None,
        clock: Clock | None = None,
        sound: SoundPlayer | None = None,
        vibration: VibrationDriver | None = None,
        notifier: Notifier | None = None,
        store: PersistentStore | None = None,
    ) -> None:
        self._config_dir: Path = config_dir if config_dir is not None else DEFAULT_CONFIG_DIR
        self.settings = TimerSettings.load(self._config_dir)
        self._store: PersistentStore = store if store is not None else JsonFileStore(self._config_dir)
        self.history = JsonlHistoryStore(self._config_dir / _HISTORY_FILE)
        self.engine = TimerEngine(
            feedback=CompletionFeedback(sound, vibration, notifier, self.settings.completion),
            history=self.history,
            clock=clock,
            history_enabled=self.settings.history_enabled,
        )
        self._last_written: Any = None
        self.restore_outcome: RestoreOutcome = self._load()

    # -- public API ----------------------------------------------------------

    def start_stopwatch(self) -> str:
        self.engine.start(StopwatchConfig())
        self._save()
        return "Stopwatch started"

    def start_countdown(self, minutes: float, seconds: float = 0) -> str:
        config = CountdownConfig.from_hms(minutes=minutes, seconds=seconds)
        self.engine.start(config)
        self._save()
        return f"Countdown started: {format_clock(config.duration)}"

    def start_intervals(
        self,
        work_minutes: float,
        break_minutes: float,
        loops: int | None = None,
        label: str | None = None,
    ) -> str:
        self.engine.start(IntervalsConfig(work_minutes, break_minutes, loops, label))
        self._save()
        message = f"Intervals started: {work_minutes:g} min work / {break_minutes:g} min break"
        if loops:
            message += f", {loops} loops"
        return message

    def status(self) -> tuple[str, int]:
        """Return ``(message, exit_code)``."""
        if self.engine.lifecycle is Lifecycle.IDLE:
            if self.restore_outcome.status is RestoreStatus.COMPLETED_WHILE_AWAY:
                return "Timer completed while you were away", 1
            return "No active session", 1
        return describe(self.engine.display()), 0

    def pause(self) -> str:
        self.engine.pause()
        self._save()
        return f"Paused: {describe(self.engine.display())}"

    def resume(self) -> str:
        self.engine.resume()
        self._save()
        return f"Resumed: {describe(self.engine.display())}"

    def lap(self) -> str:
        lap = self.engine.add_lap()
        self._save()
        return _format_lap(lap)

    def laps(self) -> list[str]:
        return [_format_lap(lap) for lap in self.engine.session.laps]

    def stop(self, save: bool = True) -> str:
        """Stop the session, recording it in history unless *save* is false."""
        if self.engine.lifecycle is Lifecycle.IDLE:
            return "No active session"
        result = self.engine.kill(save_to_history=save)
        self._save()
        message = f"Stopped after {format_clock(result.duration)}"
        if self.engine.mode is TimerMode.INTERVALS:
            message += f" ({result.completed_cycles} cycles)"
        if not save:
            message += " (not saved)"
        return message

    def reset(self) -> str:
        self.engine.reset()
        self._save()
        return "Session discarded"

    def tick(self) -> DisplayState | None:
        """Advance the engine once and persist the result.

        If another process changed the stored session since this one last
        wrote it, the stored session wins: the engine is reloaded, nothing is
        ticked and ``None`` is returned.
        """
        if self._reload_if_changed():
            return None
        state = self.engine.tick()
        if state is not None:
            self._save()
        return state

    def save(self) -> None:
        """Persist the engine unless another process changed the store."""
        if not self._reload_if_changed():
            self._save()

    # -- persistence ---------------------------------------------------------

    def _save(self) -> None:
        """Write the current snapshot, or clear it when idle."""
        data = self.engine.snapshot()
        if data is None:
            self._store.delete(_SNAPSHOT_KEY)
        else:
            self._store.set(_SNAPSHOT_KEY, data)
        self._last_written = data

    def _load(self) -> RestoreOutcome:
        data = self._store.get(_SNAPSHOT_KEY)
        outcome = self.engine.restore(data)
        if outcome.status in (RestoreStatus.DISCARDED, RestoreStatus.COMPLETED_WHILE_AWAY):
            logger.info("Clearing stored session: %s", outcome.reason)
            self._store.delete(_SNAPSHOT_KEY)
            data = None
        self._last_written = data
        return outcome

    def _reload_if_changed(self) -> bool:
        """Reload the engine if the stored snapshot is not the one we wrote."""
        if self._store.get(_SNAPSHOT_KEY) == self._last_written:
            return False
        logger.info("Stored session changed by another process; reloading")
        self.engine.reset()
        self.restore_outcome = self._load()
        return True


def _format_lap(lap: Lap) -> str:
    return (
        f"Lap {lap.ordinal}: {format_clock(lap.elapsed_at_lap)} "
        f"(split {format_clock(lap.split_from_previous)})"
    )
