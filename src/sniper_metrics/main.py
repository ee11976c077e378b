"""CLI entrypoint for sniper-metrics."""

from __future__ import annotations

import time

import typer
from rich import print

from sniper_metrics.cli import CliMetricsHandler
from sniper_metrics.config import settings
from sniper_metrics.errors import StorageError
from sniper_metrics.host import StaticServerHost
from sniper_metrics.scheduler import MetricsScheduler
from sniper_metrics.telemetry import configure_logging

app = typer.Typer(name=settings.app_name, help="MCStats plugin metrics reporter")


def _build_handler(config_path: str | None) -> CliMetricsHandler:
    host = StaticServerHost(version=settings.server_version, players=settings.players_online)
    try:
        scheduler = MetricsScheduler(
            settings.plugin_name,
            settings.plugin_version,
            host,
            config_path=config_path or settings.config_path,
        )
    except StorageError as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)
    return CliMetricsHandler(scheduler, settings.plugin_name)


@app.command()
def status(config_path: str = typer.Option(None, help="Path to the metrics config file")) -> None:
    """Show the persisted metrics configuration."""
    print(_build_handler(config_path).status().as_dict())


@app.command()
def enable(config_path: str = typer.Option(None, help="Path to the metrics config file")) -> None:
    """Clear the opt-out flag."""
    handler = _build_handler(config_path)
    try:
        current = handler.enable()
    except StorageError as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)
    print(current.as_dict())


@app.command()
def disable(config_path: str = typer.Option(None, help="Path to the metrics config file")) -> None:
    """Opt out of reporting."""
    handler = _build_handler(config_path)
    try:
        current = handler.disable()
    except StorageError as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)
    print(current.as_dict())


@app.command()
def preview(
    config_path: str = typer.Option(None, help="Path to the metrics config file"),
    ping: bool = typer.Option(False, help="Render an interval ping instead of the first post"),
) -> None:
    """Print the JSON document the next report would carry."""
    print(_build_handler(config_path).preview(ping=ping))


@app.command()
def run(
    config_path: str = typer.Option(None, help="Path to the metrics config file"),
    duration: float = typer.Option(0.0, help="Seconds to keep reporting; 0 runs until interrupted"),
) -> None:
    """Run the reporting loop in the foreground."""
    configure_logging(settings.log_level)
    handler = _build_handler(config_path)
    if not handler.scheduler.start():
        print({"metrics": "opted-out"})
        raise typer.Exit(code=1)

    print({"metrics": "started", "plugin": settings.plugin_name})
    deadline = time.monotonic() + duration if duration > 0 else None
    try:
        while handler.scheduler.is_running:
            if deadline is not None and time.monotonic() >= deadline:
                break
            time.sleep(settings.tick_seconds)
    except KeyboardInterrupt:
        pass
    finally:
        handler.scheduler.stop(timeout=5)
    print({"metrics": "stopped"})


if __name__ == "__main__":
    app()
