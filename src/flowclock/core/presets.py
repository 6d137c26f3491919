"""Built-in countdown and interval presets."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CountdownPreset:
    label: str
    minutes: int
    description: str


@dataclass(frozen=True)
class IntervalPreset:
    label: str
    work: int
    rest: int
    loops: int
    description: str


COUNTDOWN_PRESETS = (
    CountdownPreset("Focus", 25, "Pomodoro focus session"),
    CountdownPreset("Break", 5, "Short break"),
    CountdownPreset("Nap", 20, "Power nap"),
    CountdownPreset("Meditate", 10, "Mindfulness session"),
)

INTERVAL_PRESETS = (
    IntervalPreset("Pomodoro", 25, 5, 3, "Classic Pomodoro technique"),
    IntervalPreset("Extended", 50, 10, 2, "Longer focus sessions"),
    IntervalPreset("Short", 15, 3, 5, "Quick sprints"),
    IntervalPreset("Work", 45, 15, 3, "Standard work blocks"),
)


def find_countdown_preset(label: str) -> CountdownPreset:
    """Look up a countdown preset by case-insensitive label."""
    for preset in COUNTDOWN_PRESETS:
        if preset.label.lower() == label.lower():
            return preset
    raise KeyError(label)


def find_interval_preset(label: str) -> IntervalPreset:
    """Look up an interval preset by case-insensitive label."""
    for preset in INTERVAL_PRESETS:
        if preset.label.lower() == label.lower():
            return preset
    raise KeyError(label)
