"""Slow GET: hold connections open by trickling a GET request.

Ten workers each send the request line and headers one byte every 0.2s
against a local server for at most two minutes. Run it with:

    python examples/slow_get.py

The same test from the command line:

    trickleforge run -d http://localhost:8080/ -w 10 -t 2 -c 120 --yes
"""

from __future__ import annotations

from trickleforge import build_configuration, run_trickle

config = build_configuration(
    "http://localhost:8080/",
    verb="GET",
    header_lines=["Host: localhost", "User-Agent: trickleforge", "Accept: */*"],
    trickle_wait_time=2,
    countdown=120,
)


def _print(text: str) -> None:
    print(text, end="", flush=True)


if __name__ == "__main__":
    outcome = run_trickle(config, 10, on_output=_print)
    print(f"\n{outcome.value}")
