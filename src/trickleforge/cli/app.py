"""Command tree for the ``trickleforge`` executable.

There is one working command, ``run``. Engine tuning that rarely changes
between runs (backoff, parallelism, watchdog interval, connect timeout) is
read from ``TRICKLEFORGE_*`` environment variables rather than flags.
"""

from __future__ import annotations

import typer

from trickleforge import __version__
from trickleforge.cli.run import run_cmd

SETTINGS_EPILOG = (
    "Engine settings come from the environment: TRICKLEFORGE_BACKOFF, "
    "TRICKLEFORGE_PARALLELISM, TRICKLEFORGE_WATCHDOG_INTERVAL, "
    "TRICKLEFORGE_CONNECT_TIMEOUT."
)

app = typer.Typer(
    name="trickleforge",
    help="Send HTTP requests one byte at a time and hold connections open.",
    epilog=SETTINGS_EPILOG,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command(
    "run",
    help="Trickle a request at a destination from N workers until done or the countdown ends.",
    epilog=SETTINGS_EPILOG,
)(run_cmd)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"trickleforge {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Print the trickleforge version.",
        callback=_show_version,
        is_eager=True,
    ),
) -> None:
    """Slow-client load against HTTP servers.

    Use ``trickleforge run -d URL`` to start a test; it prints the request
    it will send and waits for ENTER unless ``--yes`` is given.
    """
