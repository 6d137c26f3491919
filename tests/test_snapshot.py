"""Tests for snapshot serialisation and stale-state reconciliation."""

import json
import math

import pytest

from flowclock.core import snapshot
from flowclock.core.errors import AlreadyRunning
from flowclock.core.models import (
    MS_PER_HOUR,
    MS_PER_MINUTE,
    CountdownConfig,
    IntervalsConfig,
    Lifecycle,
    Segment,
    StopwatchConfig,
    TimerMode,
    TimerSession,
)
from flowclock.core.snapshot import RestoreStatus
from flowclock.core.timer import TimerEngine

T0 = 1_700_000_000_000.0
WORK = 25 * MS_PER_MINUTE
BREAK = 5 * MS_PER_MINUTE


def _snapshot_of(config, saved_at: float, pause_at: float | None = None) -> dict:
    engine = TimerEngine()
    engine.start(config, now=T0)
    if pause_at is not None:
        engine.pause(now=pause_at)
    return engine.snapshot(now=saved_at)


def _restore(data, now: float):
    engine = TimerEngine()
    outcome = engine.restore(data, now=now)
    return engine, outcome


# ---------------------------------------------------------------------------
# serialize()
# ---------------------------------------------------------------------------


class TestSerialize:
    def test_idle_session_serialises_to_none(self) -> None:
        assert snapshot.serialize(TimerSession.idle(), T0) is None

    def test_running_session_stores_absolute_anchor(self) -> None:
        data = _snapshot_of(CountdownConfig(60_000), saved_at=T0 + 5000)
        assert data["version"] == snapshot.SCHEMA_VERSION
        assert data["saved_at"] == T0 + 5000
        assert data["mode"] == "Countdown"
        assert data["lifecycle"] == "running"
        assert data["anchor_start"] == T0
        assert data["segment_target"] == 60_000

    def test_paused_session_stores_frozen_elapsed(self) -> None:
        data = _snapshot_of(StopwatchConfig(), saved_at=T0 + 9000, pause_at=T0 + 7000)
        assert data["lifecycle"] == "paused"
        assert data["anchor_start"] is None
        assert data["paused_elapsed"] == 7000
        assert data["paused_at"] == T0 + 7000

    def test_snapshot_is_json_serialisable(self) -> None:
        data = _snapshot_of(IntervalsConfig(25, 5, 3, "Study"), saved_at=T0 + 1)
        assert json.loads(json.dumps(data)) == data


# ---------------------------------------------------------------------------
# restore()
# ---------------------------------------------------------------------------


class TestRestore:
    def test_nothing_stored_is_empty(self) -> None:
        engine, outcome = _restore(None, now=T0)
        assert outcome.status == RestoreStatus.EMPTY
        assert engine.lifecycle == Lifecycle.IDLE

    def test_stale_countdown_restores_idle(self) -> None:
        """Elapsed 50s at save plus 20s away exceeds the 60s target."""
        data = _snapshot_of(CountdownConfig(60_000), saved_at=T0 + 50_000)
        engine, outcome = _restore(data, now=T0 + 70_000)
        assert outcome.status == RestoreStatus.COMPLETED_WHILE_AWAY
        assert engine.lifecycle == Lifecycle.IDLE
        assert engine.elapsed(now=T0 + 70_000) == 0.0

    def test_stale_countdown_fires_no_completion(self) -> None:
        data = _snapshot_of(CountdownConfig(60_000), saved_at=T0 + 50_000)
        engine = TimerEngine()
        completions = []
        engine.on("session_complete", completions.append)
        engine.restore(data, now=T0 + 70_000)
        engine.tick(now=T0 + 70_000)
        assert completions == []

    def test_fresh_countdown_keeps_running(self) -> None:
        data = _snapshot_of(CountdownConfig(60_000), saved_at=T0 + 50_000)
        engine, outcome = _restore(data, now=T0 + 55_000)
        assert outcome.resumed
        assert engine.lifecycle == Lifecycle.RUNNING
        assert engine.elapsed(now=T0 + 55_000) == 55_000
        assert engine.display(now=T0 + 55_000).remaining == 5000

    def test_paused_session_restored_unchanged(self) -> None:
        data = _snapshot_of(CountdownConfig(60_000), saved_at=T0 + 10_000, pause_at=T0 + 10_000)
        engine, outcome = _restore(data, now=T0 + MS_PER_HOUR)
        assert outcome.resumed
        assert engine.lifecycle == Lifecycle.PAUSED
        assert engine.session.anchor_start is None
        assert engine.elapsed(now=T0 + MS_PER_HOUR) == 10_000
        assert engine.kill(now=T0 + 2 * MS_PER_HOUR).duration == 10_000

    def test_restored_paused_session_can_resume(self) -> None:
        data = _snapshot_of(CountdownConfig(60_000), saved_at=T0 + 10_000, pause_at=T0 + 10_000)
        engine, _ = _restore(data, now=T0 + 20_000)
        engine.resume(now=T0 + 30_000)
        assert engine.session.total_paused_duration == 20_000
        assert engine.display(now=T0 + 30_000).remaining == 50_000

    def test_stopwatch_always_resumes(self) -> None:
        engine = TimerEngine()
        engine.start(StopwatchConfig(), now=T0)
        engine.add_lap(now=T0 + 1000)
        data = engine.snapshot(now=T0 + 2000)

        restored, outcome = _restore(data, now=T0 + 5 * MS_PER_HOUR)
        assert outcome.resumed
        assert restored.elapsed(now=T0 + 5 * MS_PER_HOUR) == 5 * MS_PER_HOUR
        assert len(restored.session.laps) == 1
        assert restored.session.laps[0].elapsed_at_lap == 1000

    def test_intervals_session_start_is_preserved(self) -> None:
        engine = TimerEngine()
        engine.start(IntervalsConfig(25, 5), now=T0)
        engine.tick(now=T0 + WORK)
        engine.tick(now=T0 + WORK + BREAK)
        assert engine.session.completed_cycles == 1
        cycle_end = T0 + WORK + BREAK
        data = engine.snapshot(now=cycle_end + 60_000)

        restored, outcome = _restore(data, now=cycle_end + 120_000)

        assert outcome.resumed
        assert restored.session.current_segment == Segment.WORK
        assert restored.session.completed_cycles == 1
        assert restored.session.session_start == T0
        assert restored.session.total_paused_duration == 0.0
        assert restored.kill(now=cycle_end + 120_000).duration == WORK + BREAK + 120_000

    def test_inconsistent_accounting_is_estimated_from_finished_segments(self) -> None:
        engine = TimerEngine()
        engine.start(IntervalsConfig(25, 5), now=T0)
        engine.tick(now=T0 + WORK)  # into break
        data = engine.snapshot(now=T0 + WORK + 60_000)
        data["session_start"] = T0 + 10 * WORK

        restored, outcome = _restore(data, now=T0 + WORK + 120_000)

        assert outcome.resumed
        assert restored.session.session_start == T0
        assert restored.session.total_paused_duration == 0.0
        assert restored.kill(now=T0 + WORK + 120_000).duration == WORK + 120_000

    def test_pause_history_survives_restore(self) -> None:
        engine = TimerEngine()
        engine.start(CountdownConfig(60_000), now=T0)
        engine.pause(now=T0 + 10_000)
        engine.resume(now=T0 + 70_000)
        data = engine.snapshot(now=T0 + 80_000)

        restored, _ = _restore(data, now=T0 + 90_000)

        assert restored.session.total_paused_duration == 60_000
        assert restored.kill(now=T0 + 90_000).duration == 30_000

    def test_intervals_segment_expired_while_away(self) -> None:
        engine = TimerEngine()
        engine.start(IntervalsConfig(25, 5, target_cycles=4), now=T0)
        engine.tick(now=T0 + WORK)  # into break
        data = engine.snapshot(now=T0 + WORK + 1000)
        restored, outcome = _restore(data, now=T0 + WORK + BREAK + 1)
        assert outcome.status == RestoreStatus.COMPLETED_WHILE_AWAY
        assert restored.lifecycle == Lifecycle.IDLE
        assert restored.mode == TimerMode.INTERVALS

    def test_restore_into_active_engine_raises(self) -> None:
        data = _snapshot_of(StopwatchConfig(), saved_at=T0)
        engine = TimerEngine()
        engine.start(StopwatchConfig(), now=T0)
        with pytest.raises(AlreadyRunning):
            engine.restore(data, now=T0)


# ---------------------------------------------------------------------------
# Malformed and suspicious snapshots
# ---------------------------------------------------------------------------


class TestRestoreRejects:
    @pytest.mark.parametrize("data", ["garbage", 42, [], {}])
    def test_non_snapshot_values_discarded(self, data) -> None:
        engine, outcome = _restore(data, now=T0)
        assert outcome.status == RestoreStatus.DISCARDED
        assert engine.lifecycle == Lifecycle.IDLE

    def test_unknown_mode_discarded(self) -> None:
        data = _snapshot_of(StopwatchConfig(), saved_at=T0)
        data["mode"] = "Metronome"
        assert _restore(data, now=T0)[1].status == RestoreStatus.DISCARDED

    def test_newer_schema_discarded(self) -> None:
        data = _snapshot_of(StopwatchConfig(), saved_at=T0)
        data["version"] = snapshot.SCHEMA_VERSION + 1
        assert _restore(data, now=T0)[1].status == RestoreStatus.DISCARDED

    def test_non_finite_anchor_discarded(self) -> None:
        data = _snapshot_of(StopwatchConfig(), saved_at=T0)
        data["anchor_start"] = math.nan
        assert _restore(data, now=T0)[1].status == RestoreStatus.DISCARDED

    @pytest.mark.parametrize("key", ["total_paused", "anchor_start", "saved_at"])
    def test_integer_too_large_for_float_discarded(self, key: str) -> None:
        data = _snapshot_of(StopwatchConfig(), saved_at=T0 + 1000)
        data[key] = 10**400
        engine, outcome = _restore(data, now=T0 + 2000)
        assert outcome.status == RestoreStatus.DISCARDED
        assert engine.lifecycle == Lifecycle.IDLE

    def test_future_snapshot_discarded(self) -> None:
        """A save time after *now* means the system clock went backwards."""
        data = _snapshot_of(StopwatchConfig(), saved_at=T0 + 60_000)
        outcome = _restore(data, now=T0)[1]
        assert outcome.status == RestoreStatus.DISCARDED
        assert "backwards" in outcome.reason

    def test_day_old_snapshot_discarded(self) -> None:
        data = _snapshot_of(StopwatchConfig(), saved_at=T0)
        outcome = _restore(data, now=T0 + 25 * MS_PER_HOUR)[1]
        assert outcome.status == RestoreStatus.DISCARDED

    def test_malformed_laps_are_dropped(self) -> None:
        engine = TimerEngine()
        engine.start(StopwatchConfig(), now=T0)
        engine.add_lap(now=T0 + 1000)
        data = engine.snapshot(now=T0 + 2000)
        data["laps"].append({"ordinal": "x"})
        data["laps"].append("not a lap")
        data["laps"].append({"ordinal": 10**400, "elapsed_at_lap": 1, "split_from_previous": 1})

        restored, outcome = _restore(data, now=T0 + 3000)
        assert outcome.resumed
        assert len(restored.session.laps) == 1

    def test_oversized_cycle_target_is_clamped(self) -> None:
        data = _snapshot_of(IntervalsConfig(25, 5, 3), saved_at=T0)
        data["target_cycles"] = 10**9
        restored, outcome = _restore(data, now=T0 + 1000)
        assert outcome.resumed
        assert restored.session.target_cycles == 1000
