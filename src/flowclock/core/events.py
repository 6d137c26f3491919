"""Synchronous event hub for engine notifications."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

TICK = "tick"
SEGMENT_SWITCH = "segment_switch"
SESSION_COMPLETE = "session_complete"
MANUAL_STOP = "manual_stop"

EVENTS = frozenset({TICK, SEGMENT_SWITCH, SESSION_COMPLETE, MANUAL_STOP})

Handler = Callable[[Any], None]


class EventHub:
    """Dispatches engine events to subscribed handlers.

    Handlers run in subscription order.  A handler that raises is logged and
    skipped; it never affects the engine or the remaining handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        """Register *handler* for *event* and return an unsubscribe callable."""
        if event not in EVENTS:
            raise ValueError(f"unknown event {event!r}")
        self._handlers[event].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event]:
                self._handlers[event].remove(handler)

        return unsubscribe

    def emit(self, event: str, payload: Any) -> None:
        for handler in list(self._handlers[event]):
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler %r for %s event failed", handler, event)
