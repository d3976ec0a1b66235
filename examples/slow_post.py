"""Slow POST: trickle a request body with a lower parallelism ceiling.

Fifty workers share two I/O slots, so at most two single-byte writes are in
flight at any moment. Run with:

    TRICKLEFORGE_BACKOFF=2 python examples/slow_post.py
"""

from __future__ import annotations

import dataclasses
import json

from trickleforge import build_configuration, load_config, run_trickle

payload = json.dumps({"name": "slow-client", "tags": ["resilience"]})

config = build_configuration(
    "http://localhost:8080/items",
    verb="POST",
    header_lines=["Host: localhost", "Content-Type: application/json"],
    body=payload,
    trickle_wait_time=1,
    countdown=300,
)

settings = dataclasses.replace(load_config(), max_parallelism=2)


if __name__ == "__main__":
    print(run_trickle(config, 50, settings=settings).value)
