"""Timer engine: the idle/running/paused state machine for one session."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from flowclock.core import accumulator, events, snapshot
from flowclock.core.errors import (
    AlreadyRunning,
    InvalidStateError,
    NotPaused,
    NotRunning,
    UnsupportedOperation,
)
from flowclock.core.events import EventHub
from flowclock.core.feedback import CompletionFeedback, HistoryStore, NullHistoryStore
from flowclock.core.models import (
    DisplayState,
    Lap,
    Lifecycle,
    SessionSummary,
    StartConfig,
    TimerMode,
    TimerSession,
)
from flowclock.core.modes import SegmentOutcome, StopwatchStrategy, strategy_for
from flowclock.core.snapshot import RestoreOutcome

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

_ERRORS: dict[Lifecycle, type[InvalidStateError]] = {
    Lifecycle.RUNNING: NotRunning,
    Lifecycle.PAUSED: NotPaused,
    Lifecycle.IDLE: AlreadyRunning,
}


def wall_clock_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000.0


@dataclass(frozen=True)
class StopResult:
    """What ``kill()`` hands back to the caller."""

    duration: float
    completed_cycles: int
    session_label: str | None


class TimerEngine:
    """A single-session timer driven by explicit commands and ticks.

    Elapsed time is always derived from wall-clock timestamps, never from
    tick counts, so throttled or missed ticks do not skew it.  The engine has
    no threads: a caller samples the clock periodically and calls
    :meth:`tick`.  Every operation accepts an optional ``now`` in epoch
    milliseconds and falls back to the injected clock.
    """

    def __init__(
        self,
        feedback: CompletionFeedback | None = None,
        history: HistoryStore | None = None,
        clock: Clock | None = None,
        history_enabled: bool = True,
    ) -> None:
        self._session: TimerSession = TimerSession.idle()
        self._clock: Clock = clock or wall_clock_ms
        self.feedback = feedback or CompletionFeedback()
        self.history = history or NullHistoryStore()
        self.history_enabled = history_enabled
        self.events = EventHub()

    # -- read-only views ------------------------------------------------------

    @property
    def session(self) -> TimerSession:
        return self._session

    @property
    def lifecycle(self) -> Lifecycle:
        return self._session.lifecycle

    @property
    def mode(self) -> TimerMode:
        return self._session.mode

    def on(self, event: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        """Shortcut for ``engine.events.subscribe``."""
        return self.events.subscribe(event, handler)

    def elapsed(self, now: float | None = None) -> float:
        """Elapsed milliseconds of the active segment."""
        return accumulator.elapsed_now(self._session, self._now(now))

    def display(self, now: float | None = None) -> DisplayState:
        """Build the render state for *now* without changing anything."""
        s = self._session
        if s.lifecycle is Lifecycle.IDLE:
            return DisplayState(
                mode=s.mode, lifecycle=s.lifecycle, elapsed=0.0, remaining=None, progress=0.0
            )
        strategy = strategy_for(s.mode)
        elapsed = accumulator.elapsed_now(s, self._now(now))
        return DisplayState(
            mode=s.mode,
            lifecycle=s.lifecycle,
            elapsed=elapsed,
            remaining=strategy.remaining(s, elapsed),
            progress=strategy.progress(s, elapsed),
            segment=s.current_segment,
            completed_cycles=s.completed_cycles,
            target_cycles=s.target_cycles,
            session_label=s.session_label,
        )

    # -- commands -------------------------------------------------------------

    def start(self, config: StartConfig, now: float | None = None) -> None:
        """Start a new session described by *config*.

        Valid only from IDLE.  The configuration is validated before any
        state changes, so a rejected start leaves the engine idle.
        """
        self._require_state("start", Lifecycle.IDLE)
        now = self._now(now)

        session = TimerSession(mode=config.mode)
        strategy_for(config.mode).configure(session, config)
        session.lifecycle = Lifecycle.RUNNING
        session.session_start = now
        session.anchor_start = now
        self._session = session
        logger.info("Started %s session", session.mode.value)

    def pause(self, now: float | None = None) -> None:
        """Freeze the running session.  Valid only from RUNNING."""
        self._require_state("pause", Lifecycle.RUNNING)
        accumulator.on_pause(self._session, self._now(now))
        self._session.lifecycle = Lifecycle.PAUSED
        logger.debug("Paused at %.0f ms elapsed", self._session.paused_elapsed_at_freeze)

    def resume(self, now: float | None = None) -> None:
        """Continue a paused session.  Valid only from PAUSED."""
        self._require_state("resume", Lifecycle.PAUSED)
        now = self._now(now)
        s = self._session
        gap = max(0.0, now - s.paused_at) if s.paused_at is not None else 0.0
        accumulator.on_resume(s, now)
        s.total_paused_duration += gap
        s.lifecycle = Lifecycle.RUNNING
        logger.debug("Resumed after %.0f ms paused", gap)

    def tick(self, now: float | None = None) -> DisplayState | None:
        """Sample the clock and advance the session if a segment ran out.

        Returns ``None`` unless the session is running.  When the active
        segment has run out, the segment switch or session completion happens
        here and a second tick at the same instant sees the new state.
        """
        if self._session.lifecycle is not Lifecycle.RUNNING:
            return None
        now = self._now(now)
        s = self._session
        strategy = strategy_for(s.mode)
        remaining = strategy.remaining(s, accumulator.elapsed_now(s, now))

        if remaining is None or remaining > 0:
            state = self.display(now)
            self.events.emit(events.TICK, state)
            return state

        if strategy.advance(s, now) is SegmentOutcome.SWITCHED:
            logger.info("Switched to %s segment", s.current_segment.value)
            self.events.emit(events.SEGMENT_SWITCH, s.current_segment)
            state = self.display(now)
            self.events.emit(events.TICK, state)
            return state

        self._complete(now)
        return self.display(now)

    def add_lap(self, now: float | None = None) -> Lap:
        """Record a stopwatch lap.  Valid only for a running stopwatch."""
        strategy = strategy_for(self._session.mode)
        if not isinstance(strategy, StopwatchStrategy):
            raise UnsupportedOperation(f"add_lap() is not available in {self._session.mode.value} mode")
        self._require_state("add_lap", Lifecycle.RUNNING)
        return strategy.add_lap(self._session, accumulator.elapsed_now(self._session, self._now(now)))

    def kill(self, save_to_history: bool = True, now: float | None = None) -> StopResult:
        """Stop the session manually and return its duration.

        From IDLE this is a no-op returning a zero-duration result.
        """
        s = self._session
        if s.lifecycle is Lifecycle.IDLE:
            return StopResult(duration=0.0, completed_cycles=0, session_label=None)

        summary = self._summary(self._now(now))
        self._session = TimerSession.idle(s.mode)
        logger.info("Stopped %s session after %.0f ms", summary.mode.value, summary.duration)

        self.events.emit(events.MANUAL_STOP, summary)
        if save_to_history:
            self._record(summary)
        return StopResult(
            duration=summary.duration,
            completed_cycles=s.completed_cycles,
            session_label=summary.session_label,
        )

    def reset(self) -> None:
        """Discard the session without computing a duration."""
        self._session = TimerSession.idle(self._session.mode)
        logger.debug("Reset to idle")

    # -- persistence ------------------------------------------------------------

    def snapshot(self, now: float | None = None) -> dict | None:
        return snapshot.serialize(self._session, self._now(now))

    def restore(self, data: Any, now: float | None = None) -> RestoreOutcome:
        """Replace the idle session with one rebuilt from *data*."""
        self._require_state("restore", Lifecycle.IDLE)
        outcome = snapshot.restore(data, self._now(now))
        self._session = outcome.session
        return outcome

    # -- private helpers --------------------------------------------------------

    def _now(self, now: float | None) -> float:
        return self._clock() if now is None else now

    def _require_state(self, method: str, valid: Lifecycle) -> None:
        """Raise the matching ``InvalidStateError`` if not in *valid*."""
        if self._session.lifecycle is not valid:
            raise _ERRORS[valid](
                f"{method}() is not valid from {self._session.lifecycle.value} state"
            )

    def _duration(self, now: float) -> float:
        """Session-wide duration, excluding every pause.

        While paused, the pause instant stands in for *now* so the duration
        does not grow during the pause.
        """
        s = self._session
        if s.session_start is None:
            return 0.0
        if s.lifecycle is Lifecycle.PAUSED and s.paused_at is not None:
            end = s.paused_at
        else:
            end = now
        return max(0.0, end - s.session_start - s.total_paused_duration)

    def _summary(self, now: float) -> SessionSummary:
        s = self._session
        intervals = s.mode is TimerMode.INTERVALS
        return SessionSummary(
            duration=self._duration(now),
            mode=s.mode,
            completed_cycles=s.completed_cycles if intervals else None,
            session_label=s.session_label,
            target_cycles=s.target_cycles,
        )

    def _complete(self, now: float) -> None:
        """Finish the session naturally; side effects run after the transition."""
        summary = self._summary(now)
        self._session = TimerSession.idle(summary.mode)
        logger.info("%s session complete after %.0f ms", summary.mode.value, summary.duration)

        self.events.emit(events.SESSION_COMPLETE, summary)
        self.feedback.fire(summary.mode.value, summary.duration)
        self._record(summary)

    def _record(self, summary: SessionSummary) -> None:
        if not self.history_enabled or summary.duration <= 0:
            return
        try:
            self.history.record(summary)
        except Exception:
            logger.exception("Failed to record %s session in history", summary.mode.value)
