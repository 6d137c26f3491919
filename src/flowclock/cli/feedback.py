"""Terminal implementations of the completion collaborators."""

from __future__ import annotations

import click

from flowclock.core.models import MS_PER_SECOND
from flowclock.core.session import format_clock


class TerminalBell:
    """Rings the terminal bell; the terminal decides whether it is audible."""

    def play(self, kind: str, volume: int) -> None:
        if volume > 0:
            click.echo("\a", nl=False)


class TerminalNotifier:
    def show_completion(self, message: str, mode_label: str, duration_seconds: int) -> None:
        click.echo()
        click.secho(
            f"{message} {mode_label} finished after "
            f"{format_clock(duration_seconds * MS_PER_SECOND)}",
            fg="green",
            bold=True,
        )
