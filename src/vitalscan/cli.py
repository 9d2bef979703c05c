"""Command-line interface."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click
import structlog
from rich.console import Console
from rich.live import Live
from rich.table import Table

from vitalscan.config import AppConfig, configure_logging, get_config

logger = structlog.get_logger(__name__)
console = Console()


def _status_table(
	modality: str,
	state: str,
	progress: float,
	phase: int | None,
	samples: int,
	readout: dict | None = None,
) -> Table:
	t = Table(title=f"{modality.capitalize()} Scan")
	t.add_column("Metric", style="cyan")
	t.add_column("Value", style="green")
	t.add_row("State", state)
	t.add_row("Progress", f"{progress:.0f}%")
	if phase is not None:
		t.add_row("Phase", f"{phase} of 2")
	t.add_row("Samples", str(samples))
	if readout and readout.get("last_value") is not None:
		t.add_row("Signal", f"{readout['last_value']:.1f}")
	if readout and "cycle_count" in readout:
		t.add_row("Breaths", str(readout["cycle_count"]))
	return t


def _print_result(result) -> None:
	t = Table(title="Scan Result")
	t.add_column("Metric", style="cyan")
	t.add_column("Value", style="green")
	unit = "BPM" if result.modality.value == "pulse" else "breaths/min"
	t.add_row("Rate", f"{result.bpm} {unit}")
	t.add_row("Samples", str(result.sample_count))
	t.add_row("Duration", f"{result.duration_ms / 1000:.1f} s")
	console.print(t)


async def _run_scan(app_config: AppConfig, modality: str, overrides: dict) -> object:
	from vitalscan.sensor import create_provider
	from vitalscan.session import SessionController, SessionState

	controller = SessionController(create_provider(app_config), app_config=app_config)
	with Live(_status_table(modality, "idle", 0.0, None, 0), refresh_per_second=4, console=console) as live:

		def on_event(event) -> None:
			session = controller.current
			samples = session.samples_taken if session else 0
			live.update(_status_table(
				modality,
				event.state.value,
				event.progress_percent if event.progress_percent is not None else 0.0,
				event.phase,
				samples,
				event.extra,
			))

		controller.subscribe(on_event)
		session = await controller.start_session(modality, **overrides)
		try:
			await session.wait()
		finally:
			controller.shutdown()

	if session.state is SessionState.COMPLETE:
		return session.result
	return session.error


@click.group()
@click.version_option(package_name="vitalscan")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Config file (JSON)")
@click.pass_context
def main(ctx: click.Context, log_level: str | None, config_path: str | None) -> None:
	"""vitalscan - pulse and breath-rate scans from a camera and a microphone."""
	app_config = AppConfig.from_file(config_path) if config_path else get_config()
	configure_logging(log_level or app_config.api.log_level)
	ctx.obj = app_config


@main.command()
@click.argument("modality", type=click.Choice(["pulse", "breath"]))
@click.option("--mock", is_flag=True, help="Use synthetic sensors instead of hardware")
@click.option("--duration-ms", type=int, default=None, help="Observation window (default: per modality)")
@click.option("--facing", type=click.Choice(["user", "environment"]), default=None, help="Preferred camera")
@click.option("--phases", type=click.IntRange(1, 2), default=None, help="Two-phase protocol labels")
@click.option("--record", is_flag=True, help="Record samples to the data directory")
@click.option("-o", "--output", type=click.Path(), help="Write the result as JSON")
@click.pass_obj
def scan(
	app_config: AppConfig,
	modality: str,
	mock: bool,
	duration_ms: int | None,
	facing: str | None,
	phases: int | None,
	record: bool,
	output: str | None,
) -> None:
	"""Run one pulse or breath scan."""
	from vitalscan.errors import SessionError

	if mock:
		app_config.mock_sensors = True
	errors = app_config.validate()
	if errors:
		for e in errors:
			console.print(f"[red]{e}[/]")
		sys.exit(1)
	if record:
		app_config.ensure_dirs()

	if modality == "pulse":
		console.print("[bold green]vitalscan[/] - Cover the rear camera with a fingertip and hold still...")
	else:
		console.print("[bold green]vitalscan[/] - Breathe normally near the microphone...")

	overrides = {"duration_ms": duration_ms, "facing": facing, "phases": phases, "record": record or None}
	try:
		outcome = asyncio.run(_run_scan(app_config, modality, overrides))
	except KeyboardInterrupt:
		console.print("\n[yellow]Cancelled[/]")
		sys.exit(130)

	if isinstance(outcome, SessionError):
		logger.warning("scan_failed", modality=modality, reason=outcome.reason.value)
		console.print(f"[red]Scan failed: {outcome.reason.value}[/] {outcome.message}")
		sys.exit(1)
	if outcome is None:
		console.print("[yellow]Scan cancelled[/]")
		sys.exit(1)

	_print_result(outcome)
	if output:
		Path(output).write_text(json.dumps(outcome.to_dict(), indent=2))
		console.print(f"Result written to: {output}")


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def replay(path: str) -> None:
	"""Re-run the estimators over a recorded scan."""
	from vitalscan.storage import RecordingReader, replay_recording

	try:
		reader = RecordingReader(path)
		recorded = reader.result
		session = replay_recording(path)
	except (OSError, ValueError) as e:
		console.print(f"[red]Cannot replay {path}: {e}[/]")
		sys.exit(1)

	t = Table(title=f"Replay: {Path(path).name}")
	t.add_column("Property", style="cyan")
	t.add_column("Value", style="green")
	t.add_row("Modality", reader.modality)
	t.add_row("Recorded status", reader.status)
	t.add_row("Recorded rate", str(recorded.bpm) if recorded else "---")
	t.add_row("Replay state", session.state.value)
	t.add_row("Replay rate", str(session.result.bpm) if session.result else "---")
	t.add_row("Samples", str(session.samples_taken))
	if session.error:
		t.add_row("Error", f"{session.error.reason.value}: {session.error.message}")
	console.print(t)


@main.command()
@click.option("--host", default=None, help="Host to bind to")
@click.option("--port", type=int, default=None, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
@click.option("--mock", is_flag=True, help="Use synthetic sensors instead of hardware")
@click.pass_obj
def serve(app_config: AppConfig, host: str | None, port: int | None, reload: bool, mock: bool) -> None:
	"""Run the HTTP/WebSocket API server."""
	import os

	import uvicorn

	if mock:
		# The server builds its own config from the environment
		os.environ["VITALSCAN_MOCK_SENSORS"] = "true"
	app_config.ensure_dirs()

	uvicorn.run(
		"vitalscan.api.main:app",
		host=host or app_config.api.host,
		port=port or app_config.api.port,
		reload=reload,
		log_level=app_config.api.log_level.lower(),
	)


@main.command()
@click.option("--mock", is_flag=True, help="List the synthetic devices")
@click.pass_obj
def devices(app_config: AppConfig, mock: bool) -> None:
	"""List cameras and microphones."""
	from vitalscan.sensor import create_provider

	if mock:
		app_config.mock_sensors = True
	found = create_provider(app_config).list_devices()
	if not found:
		console.print("[yellow]No cameras or microphones found[/]")
		return

	t = Table(title="Devices")
	t.add_column("Kind", style="cyan")
	t.add_column("Index", style="green")
	t.add_column("Name")
	for d in found:
		t.add_row(d["kind"], str(d["index"]), d["name"])
	console.print(t)


@main.command("config")
@click.pass_obj
def show_config(app_config: AppConfig) -> None:
	"""Show the effective configuration and any validation errors."""
	console.print_json(json.dumps(app_config.to_dict(), default=str))
	errors = app_config.validate()
	if errors:
		console.print("[red]Invalid configuration:[/]")
		for e in errors:
			console.print(f"  [red]{e}[/]")
		sys.exit(1)
	console.print("[green]Configuration valid[/]")


if __name__ == "__main__":
	main()
