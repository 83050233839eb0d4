"""Command-line interface for the focus engine."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from .config import EngineSettings
from .engine import Command, FocusEngine
from .errors import StoreError
from .models import FocusStats
from .paths import get_db_path
from .server_runner import run_server

app = typer.Typer(help="Local focus tracking and distraction reminders.")

T = TypeVar("T")


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the service."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the service."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the focus SQLite database."
    ),
    assess_seconds: float = typer.Option(
        30.0,
        "--interval",
        min=1.0,
        help="Seconds between distraction assessments.",
    ),
    dispatch_timeout: float = typer.Option(
        2.0,
        "--dispatch-timeout",
        min=0.1,
        help="Seconds allowed for each reminder delivery attempt.",
    ),
) -> None:
    """Run the focus engine and its local API until interrupted."""
    settings = EngineSettings.from_intervals(
        assess_seconds=assess_seconds,
        dispatch_timeout_seconds=dispatch_timeout,
    )
    run_server(host=host, port=port, db_path=db_path or get_db_path(), settings=settings)


@app.command()
def stats(
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the focus SQLite database."
    ),
) -> None:
    """Print focus statistics for the last 24 hours."""
    from .reporting import StatsPrinter

    payload = _with_engine(db_path, lambda engine: engine.handle(Command.GET_STATS))
    StatsPrinter().print_stats(
        FocusStats(
            total_focused_ms=payload["totalFocusedMs"],
            distraction_count=payload["distractionCount"],
            samples=payload["samples"],
        )
    )


@app.command()
def reset(
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the focus SQLite database."
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Delete every recorded focus interval."""
    if not yes:
        typer.confirm("Delete all recorded focus data?", abort=True)
    _with_engine(db_path, lambda engine: engine.handle(Command.RESET_DATA))
    typer.echo("Focus data cleared.")


@app.command()
def config(
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the focus SQLite database."
    ),
    productive_domains: Optional[str] = typer.Option(
        None,
        "--productive-domains",
        help="Comma-separated hostname fragments that count as productive.",
    ),
    switch_threshold: Optional[int] = typer.Option(
        None,
        "--switch-threshold",
        min=1,
        help="Tab switches that count as a distraction signal.",
    ),
    cooldown_ms: Optional[int] = typer.Option(
        None,
        "--cooldown-ms",
        min=0,
        help="Minimum milliseconds between two reminders.",
    ),
    idle_seconds: Optional[int] = typer.Option(
        None,
        "--idle-threshold",
        min=0,
        help="Seconds of inactivity the browser treats as idle.",
    ),
) -> None:
    """Show the stored configuration, updating it when options are given."""
    from .reporting import StatsPrinter

    overrides = {
        "productive_domains": productive_domains,
        "distraction_switch_threshold": switch_threshold,
        "reminder_cooldown_ms": cooldown_ms,
        "idle_threshold_seconds": idle_seconds,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}

    async def _apply(engine: FocusEngine) -> dict[str, Any]:
        await engine.load_config()
        if overrides:
            await engine.update_config(overrides)
        return engine.settings.to_payload()

    try:
        payload = _with_engine(db_path, _apply)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    StatsPrinter().print_config(payload)


def _with_engine(
    db_path: Optional[Path], action: Callable[[FocusEngine], Awaitable[T]]
) -> T:
    async def _run() -> T:
        engine = FocusEngine(db_path or get_db_path())
        try:
            return await action(engine)
        finally:
            await engine.stop()

    try:
        return asyncio.run(_run())
    except StoreError as exc:
        typer.echo(f"Storage error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
