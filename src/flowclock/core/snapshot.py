"""Snapshot reconciler: TimerSession <-> JSON-serialisable dict.

Running sessions are stored with an absolute ``anchor_start`` so that a
later restore yields the correct elapsed time without any extra bookkeeping.
Restoring never raises: malformed or stale data degrades to an idle session.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from flowclock.core.models import (
    MS_PER_HOUR,
    Lap,
    Lifecycle,
    Segment,
    TimerMode,
    TimerSession,
)
from flowclock.core.modes import MAX_SEGMENT_DURATION, MAX_TARGET_CYCLES, clean_label

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
MAX_SNAPSHOT_AGE = 24 * MS_PER_HOUR
MAX_LAPS = 10_000


class RestoreStatus(Enum):
    RESUMED = "resumed"
    COMPLETED_WHILE_AWAY = "completed_while_away"
    DISCARDED = "discarded"
    EMPTY = "empty"


@dataclass(frozen=True)
class RestoreOutcome:
    status: RestoreStatus
    session: TimerSession
    reason: str = ""

    @property
    def resumed(self) -> bool:
        return self.status is RestoreStatus.RESUMED


class SnapshotError(ValueError):
    """Internal: the snapshot cannot be interpreted."""


def serialize(session: TimerSession, now: float) -> dict[str, Any] | None:
    """Return the persistable form of *session*, or ``None`` when idle."""
    if session.lifecycle is Lifecycle.IDLE:
        return None
    return {
        "version": SCHEMA_VERSION,
        "saved_at": now,
        "mode": session.mode.value,
        "lifecycle": session.lifecycle.value,
        "anchor_start": session.anchor_start,
        "paused_elapsed": session.paused_elapsed_at_freeze,
        "paused_at": session.paused_at,
        "session_start": session.session_start,
        "total_paused": session.total_paused_duration,
        "segment_target": session.segment_target_duration,
        "work_duration": session.work_duration,
        "break_duration": session.break_duration,
        "current_segment": session.current_segment.value if session.current_segment else None,
        "completed_cycles": session.completed_cycles,
        "target_cycles": session.target_cycles,
        "session_label": session.session_label,
        "laps": [
            {
                "ordinal": lap.ordinal,
                "elapsed_at_lap": lap.elapsed_at_lap,
                "split_from_previous": lap.split_from_previous,
            }
            for lap in session.laps
        ],
    }


def restore(data: Any, now: float) -> RestoreOutcome:
    """Rebuild a live session from *data* as observed at *now*."""
    if data is None:
        return RestoreOutcome(RestoreStatus.EMPTY, TimerSession.idle())
    try:
        session, saved_at = _parse(data)
    except SnapshotError as exc:
        logger.warning("Discarding snapshot: %s", exc)
        return _discard(str(exc))

    age = now - saved_at
    if age < 0:
        logger.warning("Discarding snapshot saved %.0f ms in the future", -age)
        return _discard("system clock went backwards", session.mode)
    if age > MAX_SNAPSHOT_AGE:
        logger.warning("Discarding snapshot older than 24 hours")
        return _discard("snapshot is more than 24 hours old", session.mode)

    if session.lifecycle is Lifecycle.PAUSED:
        elapsed = session.paused_elapsed_at_freeze
    else:
        elapsed = max(0.0, now - session.anchor_start)

    if session.mode is not TimerMode.STOPWATCH:
        remaining = session.segment_target_duration - elapsed
        if remaining <= 0:
            logger.info("%s finished while the snapshot was stale", session.mode.value)
            return RestoreOutcome(
                RestoreStatus.COMPLETED_WHILE_AWAY,
                TimerSession.idle(session.mode),
                "timer completed while away",
            )

    if session.lifecycle is Lifecycle.RUNNING:
        session.anchor_start = now - elapsed
        if session.session_start + session.total_paused_duration > session.anchor_start + 1.0:
            logger.info("Stored session accounting is inconsistent; estimating it")
            # Pauses inside earlier segments are lost.
            session.session_start = session.anchor_start - _finished_segments(session)
            session.total_paused_duration = 0.0

    logger.info("Restored %s session (%s)", session.mode.value, session.lifecycle.value)
    return RestoreOutcome(RestoreStatus.RESUMED, session)


def _finished_segments(session: TimerSession) -> float:
    """Duration of the interval segments completed before the current one."""
    if session.mode is not TimerMode.INTERVALS:
        return 0.0
    work = session.work_duration or 0.0
    total = session.completed_cycles * (work + (session.break_duration or 0.0))
    if session.current_segment is Segment.BREAK:
        total += work
    return total


def _discard(reason: str, mode: TimerMode = TimerMode.STOPWATCH) -> RestoreOutcome:
    return RestoreOutcome(RestoreStatus.DISCARDED, TimerSession.idle(mode), reason)


# -- parsing -----------------------------------------------------------------


def _number(data: dict, key: str, *, low: float = 0.0, high: float | None = None) -> float:
    raw = data.get(key)
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise SnapshotError(f"{key} must be a finite number, got {raw!r}")
    try:
        value = float(raw)
    except OverflowError:
        raise SnapshotError(f"{key} is out of range") from None
    if not math.isfinite(value):
        raise SnapshotError(f"{key} must be a finite number, got {raw!r}")
    value = max(low, value)
    if high is not None:
        value = min(high, value)
    return value


def _optional_number(data: dict, key: str, **kwargs) -> float | None:
    if data.get(key) is None:
        return None
    return _number(data, key, **kwargs)


def _enum(enum_type: type[Enum], value: Any, key: str) -> Any:
    try:
        return enum_type(value)
    except ValueError:
        raise SnapshotError(f"unknown {key} {value!r}") from None


def _parse(data: Any) -> tuple[TimerSession, float]:
    if not isinstance(data, dict):
        raise SnapshotError(f"expected an object, got {type(data).__name__}")
    version = data.get("version")
    if not isinstance(version, int) or isinstance(version, bool) or version > SCHEMA_VERSION:
        raise SnapshotError(f"unsupported schema version {version!r}")

    saved_at = _number(data, "saved_at")
    mode = _enum(TimerMode, data.get("mode"), "mode")
    lifecycle = _enum(Lifecycle, data.get("lifecycle"), "lifecycle")
    if lifecycle is Lifecycle.IDLE:
        raise SnapshotError("idle sessions are not persisted")

    session = TimerSession(mode=mode, lifecycle=lifecycle)
    session.session_start = _number(data, "session_start")
    session.total_paused_duration = _number(data, "total_paused")

    if lifecycle is Lifecycle.RUNNING:
        session.anchor_start = _number(data, "anchor_start")
    else:
        session.paused_elapsed_at_freeze = _number(data, "paused_elapsed")
        session.paused_at = _optional_number(data, "paused_at")
        if session.paused_at is None:
            session.paused_at = (
                session.session_start
                + session.total_paused_duration
                + session.paused_elapsed_at_freeze
            )

    if mode is TimerMode.STOPWATCH:
        session.laps = _parse_laps(data.get("laps"))
    else:
        target = _number(data, "segment_target", high=MAX_SEGMENT_DURATION)
        if target <= 0:
            raise SnapshotError("segment_target must be positive")
        session.segment_target_duration = target

    if mode is TimerMode.INTERVALS:
        session.work_duration = _number(data, "work_duration", high=MAX_SEGMENT_DURATION)
        session.break_duration = _number(data, "break_duration", high=MAX_SEGMENT_DURATION)
        session.current_segment = _enum(Segment, data.get("current_segment"), "segment")
        session.completed_cycles = int(
            _number(data, "completed_cycles", high=MAX_TARGET_CYCLES)
        )
        target_cycles = _optional_number(data, "target_cycles", low=1, high=MAX_TARGET_CYCLES)
        session.target_cycles = int(target_cycles) if target_cycles is not None else None
        label = data.get("session_label")
        session.session_label = clean_label(label) if isinstance(label, str) else None

    return session, saved_at


def _parse_laps(raw: Any) -> list[Lap]:
    """Keep well-formed laps, drop the rest."""
    if not isinstance(raw, list):
        return []
    laps = []
    for item in raw[:MAX_LAPS]:
        if not isinstance(item, dict):
            continue
        try:
            laps.append(
                Lap(
                    ordinal=int(_number(item, "ordinal", low=1)),
                    elapsed_at_lap=_number(item, "elapsed_at_lap", high=MAX_SEGMENT_DURATION),
                    split_from_previous=_number(
                        item, "split_from_previous", high=MAX_SEGMENT_DURATION
                    ),
                )
            )
        except SnapshotError as exc:
            logger.debug("Dropping malformed lap %r: %s", item, exc)
    return laps
