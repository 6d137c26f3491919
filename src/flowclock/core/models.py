"""Data model shared by the engine, the mode strategies and the reconciler."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE


class TimerMode(Enum):
    """The three supported timing modes."""

    STOPWATCH = "Stopwatch"
    COUNTDOWN = "Countdown"
    INTERVALS = "Intervals"


class Lifecycle(Enum):
    """Lifecycle of a timer session."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class Segment(Enum):
    """Kind of segment in an Intervals session."""

    WORK = "work"
    BREAK = "break"


@dataclass(frozen=True)
class Lap:
    """One stopwatch lap; ``ordinal`` starts at 1."""

    ordinal: int
    elapsed_at_lap: float
    split_from_previous: float


@dataclass
class TimerSession:
    """Live, in-memory state of the single active session.

    ``anchor_start`` is set only while running.  ``paused_at`` is the
    wall-clock instant of the most recent pause and is set only while paused.
    """

    mode: TimerMode = TimerMode.STOPWATCH
    lifecycle: Lifecycle = Lifecycle.IDLE
    anchor_start: float | None = None
    paused_elapsed_at_freeze: float = 0.0
    paused_at: float | None = None
    session_start: float | None = None
    total_paused_duration: float = 0.0
    segment_target_duration: float | None = None
    work_duration: float | None = None
    break_duration: float | None = None
    current_segment: Segment | None = None
    completed_cycles: int = 0
    target_cycles: int | None = None
    session_label: str | None = None
    laps: list[Lap] = field(default_factory=list)

    @classmethod
    def idle(cls, mode: TimerMode = TimerMode.STOPWATCH) -> TimerSession:
        """Return an empty session in the IDLE lifecycle."""
        return cls(mode=mode)


@dataclass(frozen=True)
class SessionSummary:
    """Result of a finished or stopped session, as handed to history."""

    duration: float
    mode: TimerMode
    completed_cycles: int | None = None
    session_label: str | None = None
    target_cycles: int | None = None

    def to_dict(self) -> dict:
        return {
            "duration": self.duration,
            "mode": self.mode.value,
            "completed_cycles": self.completed_cycles,
            "session_label": self.session_label,
            "target_cycles": self.target_cycles,
        }


@dataclass(frozen=True)
class DisplayState:
    """Everything a renderer needs for one frame."""

    mode: TimerMode
    lifecycle: Lifecycle
    elapsed: float
    remaining: float | None
    progress: float
    segment: Segment | None = None
    completed_cycles: int = 0
    target_cycles: int | None = None
    session_label: str | None = None


# -- start configurations ---------------------------------------------------


@dataclass(frozen=True)
class StopwatchConfig:
    mode = TimerMode.STOPWATCH


@dataclass(frozen=True)
class CountdownConfig:
    """Countdown of *duration* milliseconds."""

    duration: float

    mode = TimerMode.COUNTDOWN

    @classmethod
    def from_hms(cls, hours: float = 0, minutes: float = 0, seconds: float = 0) -> CountdownConfig:
        return cls(hours * MS_PER_HOUR + minutes * MS_PER_MINUTE + seconds * MS_PER_SECOND)


@dataclass(frozen=True)
class IntervalsConfig:
    """Work/break cycles; durations are given in minutes."""

    work_minutes: float
    break_minutes: float
    target_cycles: int | None = None
    session_label: str | None = None

    mode = TimerMode.INTERVALS


StartConfig = StopwatchConfig | CountdownConfig | IntervalsConfig
