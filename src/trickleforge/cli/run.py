"""``trickleforge run``: build a configuration, confirm, and trickle."""

from __future__ import annotations

import dataclasses
import logging

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from trickleforge._internal.config import load_config
from trickleforge._internal.errors import TrickleForgeError
from trickleforge.engine.pool import RunOutcome
from trickleforge.engine.runner import run_trickle
from trickleforge.request.configuration import Configuration, TrickleMode, build_configuration

console = Console(stderr=True)
output_console = Console(highlight=False)

DEFAULT_HEADERS = "Host: localhost\\nContent-Type: text/html"
DEFAULT_BODY = "trickleforge - resilience and performance testing"


# ---------------------------------------------------------------------------
# Input helpers
# ---------------------------------------------------------------------------


def _parse_mode(value: str) -> TrickleMode:
    """Map a ``--mode`` value such as ``http-body`` to a TrickleMode.

    Raises:
        typer.BadParameter: If the name is unknown.
    """
    key = value.strip().upper().replace("-", "_")
    try:
        return TrickleMode[key]
    except KeyError:
        choices = ", ".join(m.name.lower().replace("_", "-") for m in TrickleMode)
        msg = f"Unknown mode: {value}. Choose from: {choices}"
        raise typer.BadParameter(msg) from None


def _split_headers(raw: str) -> list[str]:
    """Split ``--headers`` on real newlines and on a literal ``\\n``."""
    return raw.replace("\\n", "\n").split("\n")


# ---------------------------------------------------------------------------
# Rich output
# ---------------------------------------------------------------------------


def _make_config_table(config: Configuration, workers: int, parallelism: int) -> Table:
    """Build a table describing the run about to start."""
    table = Table(show_header=False, expand=True)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    dest = config.destination
    table.add_row("Test Mode", config.mode.name)
    table.add_row("Request Line", f"{config.verb} {dest.path} {config.protocol}")
    table.add_row("Destination", f"{dest.scheme}://{dest.host}:{dest.port}")
    for line in config.headers:
        count = config.headers.count(line)
        table.add_row("Header", line if count == 1 else f"{line} (x{count})")
    if config.sends_body:
        table.add_row("Body", config.body_template.decode("utf-8", errors="replace"))
        table.add_row("Repeat", str(config.body_template_repeat))
    table.add_row("Trickle Wait Time", f"{config.trickle_wait_time}s ({config.byte_delay:.3f}s per byte)")
    table.add_row("Countdown", f"{config.countdown}s")
    table.add_row("Workers", str(workers))
    table.add_row("Parallelism", str(parallelism))
    return table


def _echo_diagnostic(text: str) -> None:
    """Print diagnostic worker output verbatim to stdout."""
    output_console.print(text, end="", markup=False, soft_wrap=True)


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def run_cmd(
    destination: str = typer.Option(
        "http://localhost:80/",
        "--destination",
        "-d",
        help="Destination URL. The port is required.",
    ),
    workers: int = typer.Option(
        1,
        "--workers",
        "-w",
        help="Number of concurrent workers.",
        min=1,
    ),
    verb: str = typer.Option("GET", "--verb", help="HTTP verb to use."),
    protocol: str = typer.Option("HTTP/1.1", "--protocol", help="HTTP protocol token."),
    headers: str = typer.Option(
        DEFAULT_HEADERS,
        "--headers",
        "-H",
        help="Header lines separated by \\n. Content-Length is added for POST/PUT.",
    ),
    body: str = typer.Option(DEFAULT_BODY, "--body", "-b", help="Payload sent to the server."),
    repeat_body: int = typer.Option(
        1,
        "--repeat-body",
        help="Declared number of body repetitions (feeds Content-Length).",
        min=1,
    ),
    apply_body_repeat: bool = typer.Option(
        False,
        "--apply-body-repeat",
        help="Also repeat the trickled body, not just the declared length.",
    ),
    trickle_wait_time: float = typer.Option(
        1.0,
        "--trickle-wait-time",
        "-t",
        help="Trickle wait time in seconds; each byte waits a tenth of it.",
        min=0.0,
    ),
    countdown: float = typer.Option(
        60.0,
        "--countdown",
        "-c",
        help="Maximum run time in seconds.",
        min=0.001,
    ),
    parallelism: int | None = typer.Option(
        None,
        "--parallelism",
        "-p",
        help="Workers allowed to do socket I/O at once (default: TRICKLEFORGE_PARALLELISM or 4).",
        min=1,
    ),
    mode: str = typer.Option("http-body", "--mode", help="Test mode. Only http-body is implemented."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Launch without the confirmation prompt."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose (DEBUG) logging."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines."),
) -> None:
    """Trickle a request to the destination from many concurrent workers."""
    try:
        settings = load_config()
        if parallelism is not None:
            settings = dataclasses.replace(settings, max_parallelism=parallelism)

        config = build_configuration(
            destination,
            verb=verb,
            protocol=protocol,
            header_lines=_split_headers(headers),
            body=body,
            body_repeat=repeat_body,
            trickle_wait_time=trickle_wait_time,
            countdown=countdown,
            mode=_parse_mode(mode),
            apply_body_repeat=apply_body_repeat,
        )
    except TrickleForgeError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(
        Panel(
            _make_config_table(config, workers, settings.max_parallelism),
            title="Test Configuration",
            border_style="cyan",
        )
    )

    if not yes:
        typer.prompt(
            "Press ENTER to launch or CTRL+C to cancel",
            default="",
            show_default=False,
            prompt_suffix="",
        )

    log_level = logging.DEBUG if verbose else logging.INFO

    try:
        outcome = run_trickle(
            config,
            workers,
            settings=settings,
            on_output=_echo_diagnostic,
            log_level=log_level,
            json_logs=json_logs,
        )
    except TrickleForgeError as exc:
        console.print(f"[red]Trickle run failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    if outcome is RunOutcome.COUNTDOWN_EXPIRED:
        console.print("\n[yellow]Countdown expired. Shutting down... Done[/yellow]")
    elif outcome is RunOutcome.STOPPED:
        console.print("\n[yellow]Stopped.[/yellow]")
    else:
        console.print("[green]Complete.[/green]")
