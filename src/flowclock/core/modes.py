"""Mode strategies: per-mode targets, progress and segment completion."""

from __future__ import annotations

import logging
import math
from enum import Enum

from flowclock.core import accumulator
from flowclock.core.errors import InvalidCycleCount, InvalidDuration, UnsupportedOperation
from flowclock.core.models import (
    MS_PER_HOUR,
    MS_PER_MINUTE,
    CountdownConfig,
    IntervalsConfig,
    Lap,
    Segment,
    StartConfig,
    StopwatchConfig,
    TimerMode,
    TimerSession,
)

logger = logging.getLogger(__name__)

MAX_SEGMENT_DURATION = 24 * MS_PER_HOUR
MAX_TARGET_CYCLES = 1000
MAX_LABEL_LENGTH = 500


class SegmentOutcome(Enum):
    """What happened when a segment ran out."""

    SWITCHED = "switched"
    FINISHED = "finished"


def _validate_duration(name: str, value: object, scale: float = 1.0) -> float:
    """Return *value* converted to milliseconds by *scale*, or raise."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidDuration(f"{name} must be a number, got {type(value).__name__}")
    if math.isnan(value) or math.isinf(value) or value <= 0:
        raise InvalidDuration(f"{name} must be positive and finite, got {value}")
    duration = float(value) * scale
    if duration > MAX_SEGMENT_DURATION:
        raise InvalidDuration(f"{name} must be at most 24 hours, got {value}")
    return duration


def _validate_cycles(value: object) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidCycleCount(f"target_cycles must be an integer, got {value!r}")
    if not (1 <= value <= MAX_TARGET_CYCLES):
        raise InvalidCycleCount(
            f"target_cycles must be between 1 and {MAX_TARGET_CYCLES}, got {value}"
        )
    return value


def clean_label(label: str | None) -> str | None:
    """Strip *label* and cap its length; blank labels become ``None``."""
    if label is None:
        return None
    label = str(label).strip()[:MAX_LABEL_LENGTH]
    return label or None


class ModeStrategy:
    """Base strategy.  Subclasses answer the per-tick questions for one mode."""

    mode: TimerMode
    config_type: type

    def configure(self, session: TimerSession, config: StartConfig) -> None:
        """Validate *config* and write the mode fields onto *session*.

        Must raise before mutating anything when the config is invalid.
        """
        raise NotImplementedError

    def remaining(self, session: TimerSession, elapsed: float) -> float | None:
        """Remaining milliseconds of the active segment, ``None`` if unbounded."""
        if session.segment_target_duration is None:
            return None
        return max(0.0, session.segment_target_duration - elapsed)

    def progress(self, session: TimerSession, elapsed: float) -> float:
        """Fraction of the active segment that has passed, in ``[0, 1]``."""
        target = session.segment_target_duration
        if not target:
            return 0.0
        return min(1.0, max(0.0, elapsed / target))

    def advance(self, session: TimerSession, now: float) -> SegmentOutcome:
        """Handle a segment whose remaining time reached zero."""
        raise NotImplementedError

    def _check_config(self, config: StartConfig) -> None:
        if not isinstance(config, self.config_type):
            raise TypeError(
                f"{self.mode.value} expects {self.config_type.__name__}, "
                f"got {type(config).__name__}"
            )


class StopwatchStrategy(ModeStrategy):
    """Free-running clock.  Never completes on its own."""

    mode = TimerMode.STOPWATCH
    config_type = StopwatchConfig

    def configure(self, session: TimerSession, config: StartConfig) -> None:
        self._check_config(config)
        session.segment_target_duration = None
        session.laps = []

    def remaining(self, session: TimerSession, elapsed: float) -> float | None:
        return None

    def progress(self, session: TimerSession, elapsed: float) -> float:
        return 0.0

    def advance(self, session: TimerSession, now: float) -> SegmentOutcome:
        raise UnsupportedOperation("a stopwatch segment never runs out")

    def add_lap(self, session: TimerSession, elapsed: float) -> Lap:
        """Record a lap at *elapsed*; laps are kept most-recent-first."""
        previous = session.laps[0].elapsed_at_lap if session.laps else 0.0
        lap = Lap(
            ordinal=len(session.laps) + 1,
            elapsed_at_lap=elapsed,
            split_from_previous=elapsed - previous,
        )
        session.laps.insert(0, lap)
        return lap


class CountdownStrategy(ModeStrategy):
    """Single fixed-target segment that ends the session."""

    mode = TimerMode.COUNTDOWN
    config_type = CountdownConfig

    def configure(self, session: TimerSession, config: StartConfig) -> None:
        self._check_config(config)
        session.segment_target_duration = _validate_duration("duration", config.duration)

    def advance(self, session: TimerSession, now: float) -> SegmentOutcome:
        return SegmentOutcome.FINISHED


class IntervalsStrategy(ModeStrategy):
    """Alternating work and break segments with an optional cycle target.

    A cycle is one work segment followed by one break.  The cycle target is
    checked only when a break ends, never on the work-to-break switch.
    """

    mode = TimerMode.INTERVALS
    config_type = IntervalsConfig

    def configure(self, session: TimerSession, config: StartConfig) -> None:
        self._check_config(config)
        work = _validate_duration("work_minutes", config.work_minutes, MS_PER_MINUTE)
        rest = _validate_duration("break_minutes", config.break_minutes, MS_PER_MINUTE)
        target = _validate_cycles(config.target_cycles)

        session.work_duration = work
        session.break_duration = rest
        session.segment_target_duration = work
        session.current_segment = Segment.WORK
        session.completed_cycles = 0
        session.target_cycles = target
        session.session_label = clean_label(config.session_label)

    def advance(self, session: TimerSession, now: float) -> SegmentOutcome:
        if session.current_segment is Segment.WORK:
            session.current_segment = Segment.BREAK
            session.segment_target_duration = session.break_duration
            accumulator.restart_span(session, now)
            return SegmentOutcome.SWITCHED

        if (
            session.target_cycles is not None
            and session.completed_cycles + 1 >= session.target_cycles
        ):
            session.completed_cycles += 1
            return SegmentOutcome.FINISHED

        session.completed_cycles += 1
        session.current_segment = Segment.WORK
        session.segment_target_duration = session.work_duration
        accumulator.restart_span(session, now)
        logger.debug("Cycle %d complete, starting work", session.completed_cycles)
        return SegmentOutcome.SWITCHED


_STRATEGIES: dict[TimerMode, ModeStrategy] = {
    TimerMode.STOPWATCH: StopwatchStrategy(),
    TimerMode.COUNTDOWN: CountdownStrategy(),
    TimerMode.INTERVALS: IntervalsStrategy(),
}


def strategy_for(mode: TimerMode) -> ModeStrategy:
    """Return the shared strategy instance for *mode*."""
    return _STRATEGIES[mode]
