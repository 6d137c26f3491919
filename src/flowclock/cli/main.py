"""CLI entry point for flowclock.

Uses Click to expose the ``flowclock`` command group with subcommands
that delegate to the Session manager.
"""

from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import Callable, TypeVar

import click

import flowclock
from flowclock.cli.feedback import TerminalBell, TerminalNotifier
from flowclock.core import events
from flowclock.core.errors import TimerError
from flowclock.core.models import Lifecycle, Segment
from flowclock.core.presets import (
    COUNTDOWN_PRESETS,
    INTERVAL_PRESETS,
    find_countdown_preset,
    find_interval_preset,
)
from flowclock.core.session import DEFAULT_CONFIG_DIR, Session, describe, format_clock
from flowclock.log import configure_logging

T = TypeVar("T")


def _run(action: Callable[[], T]) -> T:
    """Execute *action*, converting engine errors to a CLI error.

    On ``TimerError`` the message is printed to stderr and the process exits
    with code 1.
    """
    try:
        return action()
    except TimerError as exc:
        click.echo(str(exc), err=True)
        sys.exit(1)


def _session(ctx: click.Context) -> Session:
    return Session(
        config_dir=ctx.obj["config_dir"],
        sound=TerminalBell(),
        notifier=TerminalNotifier(),
    )


@click.group()
@click.version_option(version=flowclock.__version__, prog_name="flowclock")
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="FLOWCLOCK_CONFIG_DIR",
    default=DEFAULT_CONFIG_DIR,
    show_default=True,
    help="Directory holding session state, settings and history.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def cli(ctx: click.Context, config_dir: Path, verbose: bool) -> None:
    """flowclock: stopwatch, countdown and interval timers for the terminal."""
    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = config_dir
    configure_logging(config_dir, verbose=verbose)


# ---------------------------------------------------------------------------
# start
# ---------------------------------------------------------------------------


@cli.group()
def start() -> None:
    """Start a new timer session."""


@start.command("stopwatch")
@click.pass_context
def start_stopwatch(ctx: click.Context) -> None:
    """Start a stopwatch."""
    session = _session(ctx)
    click.echo(_run(session.start_stopwatch))


@start.command("countdown")
@click.argument("minutes", type=float, required=False)
@click.option("--seconds", "-s", type=float, default=0.0, help="Extra seconds.")
@click.option("--preset", "-p", help="Use a countdown preset instead of MINUTES.")
@click.pass_context
def start_countdown(
    ctx: click.Context, minutes: float | None, seconds: float, preset: str | None
) -> None:
    """Start a countdown of MINUTES minutes."""
    if preset is not None:
        try:
            minutes = find_countdown_preset(preset).minutes
        except KeyError:
            raise click.BadParameter(f"unknown preset {preset!r}", param_hint="--preset")
    elif minutes is None:
        raise click.UsageError("MINUTES or --preset is required")
    session = _session(ctx)
    click.echo(_run(lambda: session.start_countdown(minutes, seconds)))


@start.command("intervals")
@click.option("--work", "-w", type=float, default=25.0, show_default=True, help="Work minutes.")
@click.option("--break", "-b", "rest", type=float, default=5.0, show_default=True, help="Break minutes.")
@click.option("--loops", "-n", type=int, default=None, help="Stop after this many cycles.")
@click.option("--label", "-l", default=None, help="Name shown with the session.")
@click.option("--preset", "-p", help="Use an interval preset.")
@click.pass_context
def start_intervals(
    ctx: click.Context,
    work: float,
    rest: float,
    loops: int | None,
    label: str | None,
    preset: str | None,
) -> None:
    """Start alternating work and break intervals."""
    if preset is not None:
        try:
            found = find_interval_preset(preset)
        except KeyError:
            raise click.BadParameter(f"unknown preset {preset!r}", param_hint="--preset")
        work, rest, loops = found.work, found.rest, found.loops
        label = label or found.label
    session = _session(ctx)
    click.echo(_run(lambda: session.start_intervals(work, rest, loops, label)))


# ---------------------------------------------------------------------------
# session control
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the current session status."""
    session = _session(ctx)
    message, exit_code = session.status()
    click.echo(message)
    sys.exit(exit_code)


@cli.command()
@click.pass_context
def pause(ctx: click.Context) -> None:
    """Pause the running session."""
    session = _session(ctx)
    click.echo(_run(session.pause))


@cli.command()
@click.pass_context
def resume(ctx: click.Context) -> None:
    """Resume a paused session."""
    session = _session(ctx)
    click.echo(_run(session.resume))


@cli.command()
@click.pass_context
def lap(ctx: click.Context) -> None:
    """Record a stopwatch lap."""
    session = _session(ctx)
    click.echo(_run(session.lap))


@cli.command()
@click.pass_context
def laps(ctx: click.Context) -> None:
    """List stopwatch laps, most recent first."""
    session = _session(ctx)
    lines = session.laps()
    if not lines:
        click.echo("No laps recorded")
        return
    for line in lines:
        click.echo(line)


@cli.command()
@click.option("--discard", is_flag=True, help="Do not record the session in history.")
@click.pass_context
def stop(ctx: click.Context, discard: bool) -> None:
    """Stop the session and record it in history."""
    session = _session(ctx)
    click.echo(_run(lambda: session.stop(save=not discard)))


@cli.command()
@click.pass_context
def reset(ctx: click.Context) -> None:
    """Abandon the session without recording it."""
    session = _session(ctx)
    click.echo(session.reset())


@cli.command()
@click.pass_context
def watch(ctx: click.Context) -> None:
    """Follow the running session live until it completes."""
    session = _session(ctx)
    if session.engine.lifecycle is not Lifecycle.RUNNING:
        message, _ = session.status()
        click.echo(message)
        sys.exit(1)

    completed = []
    session.engine.on(events.SESSION_COMPLETE, completed.append)
    session.engine.on(events.SEGMENT_SWITCH, _announce_segment)
    interval = session.settings.tick_interval_ms / 1000.0

    try:
        while session.engine.lifecycle is Lifecycle.RUNNING:
            state = session.tick()
            if state is not None and state.lifecycle is not Lifecycle.IDLE:
                click.echo(f"\r{describe(state)}   ", nl=False)
            time.sleep(interval)
    except KeyboardInterrupt:
        session.save()
        click.echo("\nStopped watching; the timer keeps running")
        return

    if completed:
        click.echo(f"\nSession complete: {format_clock(completed[0].duration)}")
    else:
        message, _ = session.status()
        click.echo(f"\nSession changed elsewhere: {message}")


def _announce_segment(segment: Segment) -> None:
    click.echo()
    click.secho("Break time" if segment is Segment.BREAK else "Back to work", fg="yellow")


# ---------------------------------------------------------------------------
# presets & history
# ---------------------------------------------------------------------------


@cli.command()
def presets() -> None:
    """List the built-in presets."""
    click.echo("Countdown:")
    for p in COUNTDOWN_PRESETS:
        click.echo(f"  {p.label:<10} {p.minutes:>3} min  {p.description}")
    click.echo("Intervals:")
    for p in INTERVAL_PRESETS:
        click.echo(f"  {p.label:<10} {p.work}/{p.rest} x{p.loops}  {p.description}")


@cli.command()
@click.option("--limit", "-n", type=click.IntRange(min=1), default=10, show_default=True)
@click.pass_context
def history(ctx: click.Context, limit: int) -> None:
    """Show recently finished sessions."""
    session = _session(ctx)
    records = session.history.recent(limit)
    if not records:
        click.echo("No sessions recorded")
        return
    for record in records:
        line = f"{record.get('mode', '?'):<10} {format_clock(record['duration'])}"
        if record.get("completed_cycles") is not None:
            line += f"  {record['completed_cycles']} cycles"
        if record.get("session_label"):
            line += f"  {record['session_label']}"
        click.echo(line)
