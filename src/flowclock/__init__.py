"""flowclock: stopwatch, countdown and interval timers that survive restarts."""

__version__ = "0.1.0"
