"""Elapsed-time accumulator.

Elapsed time for the current span is derived from two stored values only:
``anchor_start`` while running and ``paused_elapsed_at_freeze`` while
paused.  Resuming shifts the anchor forward by the frozen elapsed time, which
absorbs every earlier pause gap without keeping a running total.
"""

from __future__ import annotations

import logging

from flowclock.core.models import Lifecycle, TimerSession

logger = logging.getLogger(__name__)


def elapsed_now(session: TimerSession, now: float) -> float:
    """Return the elapsed milliseconds of the current span at *now*."""
    if session.lifecycle is Lifecycle.RUNNING and session.anchor_start is not None:
        return max(0.0, now - session.anchor_start)
    return max(0.0, session.paused_elapsed_at_freeze)


def on_pause(session: TimerSession, now: float) -> bool:
    """Freeze the running span.  Returns ``False`` (and logs) if not running."""
    if session.lifecycle is not Lifecycle.RUNNING or session.anchor_start is None:
        logger.debug("on_pause ignored: session is %s", session.lifecycle.value)
        return False
    session.paused_elapsed_at_freeze = max(0.0, now - session.anchor_start)
    session.paused_at = now
    session.anchor_start = None
    return True


def on_resume(session: TimerSession, now: float) -> bool:
    """Re-anchor a paused span.  Returns ``False`` (and logs) if not paused."""
    if session.lifecycle is not Lifecycle.PAUSED:
        logger.debug("on_resume ignored: session is %s", session.lifecycle.value)
        return False
    session.anchor_start = now - session.paused_elapsed_at_freeze
    session.paused_elapsed_at_freeze = 0.0
    session.paused_at = None
    return True


def restart_span(session: TimerSession, now: float) -> None:
    """Begin a fresh span at *now* (used when a new segment starts)."""
    session.anchor_start = now
    session.paused_elapsed_at_freeze = 0.0
    session.paused_at = None
