"""Tests for the request assembler."""

from __future__ import annotations

import pytest

from trickleforge.request.assembler import assemble_body, assemble_head, assemble_request
from trickleforge.request.configuration import (
    Configuration,
    Destination,
    HeaderSet,
    build_configuration,
)


def _config(verb: str = "GET", **kwargs: object) -> Configuration:
    return Configuration(
        verb=verb,
        destination=Destination("http", "example.test", 80, "/"),
        headers=HeaderSet.from_lines(["Host: x"]),
        **kwargs,  # type: ignore[arg-type]
    )


class TestAssembleHead:
    def test_wire_format(self) -> None:
        assert assemble_head(_config()) == b"GET / HTTP/1.1\nHost: x\n\n\n"

    def test_headers_in_insertion_order(self) -> None:
        config = Configuration(
            verb="GET",
            destination=Destination("http", "example.test", 80, "/a/b"),
            protocol="HTTP/1.0",
            headers=HeaderSet.from_lines(["Z: 1", "A: 2", "Z: 1", "M: 3"]),
        )
        assert assemble_head(config) == b"GET /a/b HTTP/1.0\nZ: 1\nA: 2\nM: 3\n\n\n"

    def test_deterministic_across_calls(self) -> None:
        config = build_configuration(
            "http://example.test:80/",
            verb="POST",
            header_lines=["Host: h", "Accept: */*", "X-Trace: 1"],
            body="payload",
        )
        assert assemble_request(config) == assemble_request(config)

    def test_no_headers(self) -> None:
        config = Configuration(verb="GET", destination=Destination("http", "h", 80, "/"))
        assert assemble_head(config) == b"GET / HTTP/1.1\n\n\n"


class TestAssembleBody:
    @pytest.mark.parametrize("verb", ["GET", "HEAD", "DELETE", "OPTIONS"])
    def test_bodyless_verbs_never_get_body(self, verb: str) -> None:
        request = assemble_request(_config(verb, body_template=b"data"))
        assert request.body is None
        assert request.total_length == len(request.head)

    @pytest.mark.parametrize("verb", ["POST", "PUT"])
    def test_body_verbs_send_template(self, verb: str) -> None:
        assert assemble_body(_config(verb, body_template=b"data")) == b"data"

    def test_repeat_is_declared_but_not_trickled(self) -> None:
        config = build_configuration(
            "http://example.test:80/", verb="POST", header_lines=["Host: x"], body="ab", body_repeat=3
        )
        request = assemble_request(config)

        assert b"Content-Length: 6\n" in request.head
        assert request.body == b"ab"

    def test_apply_body_repeat_trickles_every_copy(self) -> None:
        config = build_configuration(
            "http://example.test:80/",
            verb="PUT",
            body="ab",
            body_repeat=3,
            apply_body_repeat=True,
        )
        request = assemble_request(config)

        assert request.body == b"ababab"
        assert b"Content-Length: 6\n" in request.head
