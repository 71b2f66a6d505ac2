"""
Unit tests for HTTP request parsing.
"""

import dataclasses

import pytest

from weehttp import Method, Protocol
from weehttp.errors import (
    InvalidEncoding,
    InvalidMethod,
    InvalidProtocol,
    MalformedHeaderLine,
    MalformedRequestError,
    MalformedRequestLine,
    MissingBodySeparator,
    ParseError,
)
from weehttp.http.request import Request, RequestParser, normalize_path, parse_request


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method is Method.GET
        assert request.path == "/api/users"
        assert request.protocol is Protocol.HTTP_1_1
        assert request.client_address == ("127.0.0.1", 12345)
        assert request.body == ""

    def test_parse_headers(self, sample_get_request: bytes):
        """Test that headers are parsed with their names as sent."""
        request = parse_request(sample_get_request)

        assert request.headers == {
            "Host": "localhost:8080",
            "User-Agent": "pytest",
            "Accept": "application/json",
        }
        assert request.header("Host") == "localhost:8080"
        assert request.header("host") is None
        assert request.header("X-Missing", "fallback") == "fallback"

    def test_parse_post_with_body(self, sample_post_request: bytes):
        """Test parsing POST request with JSON body."""
        request = parse_request(sample_post_request)

        assert request.method is Method.POST
        assert request.path == "/api/users"
        assert request.body == '{"name": "Nessie", "loch": "Ness"}'
        assert request.json == {"name": "Nessie", "loch": "Ness"}

    def test_root_with_host_header(self):
        """Test the canonical root request."""
        request = parse_request(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")

        assert request.method is Method.GET
        assert request.path == ""
        assert request.protocol is Protocol.HTTP_1_1
        assert request.headers == {"Host": "x"}
        assert request.body == ""

    def test_post_without_body(self):
        """Test that nothing after the separator is an empty body, not an error."""
        request = parse_request(b"POST /a HTTP/1.1\r\n\r\n")

        assert request.method is Method.POST
        assert request.path == "/a"
        assert request.headers == {}
        assert request.body == ""

    def test_body_is_taken_verbatim(self):
        """Test that the body is everything after the first blank line."""
        request = parse_request(
            b"POST /echo HTTP/1.0\r\nContent-Length: 99\r\n\r\nline1\r\n\r\nline2"
        )

        assert request.body == "line1\r\n\r\nline2"
        assert request.protocol is Protocol.HTTP_1_0

    def test_case_insensitive_method_and_protocol(self):
        """Test that verb and version are matched case-insensitively."""
        request = parse_request(b"get /x http/0.9\r\n\r\n")

        assert request.method is Method.GET
        assert request.protocol is Protocol.HTTP_0_9

    def test_header_whitespace_trimmed(self):
        """Test that names and values are trimmed around the first colon."""
        request = parse_request(b"GET / HTTP/1.1\r\n  X-Id :  a:b:c  \r\n\r\n")

        assert request.headers == {"X-Id": "a:b:c"}

    def test_empty_header_value(self):
        """Test a header with nothing after the colon."""
        request = parse_request(b"GET / HTTP/1.1\r\nX-Empty:\r\n\r\n")

        assert request.headers == {"X-Empty": ""}

    def test_duplicate_header_last_wins(self):
        """Test that a repeated header keeps its last value."""
        request = parse_request(b"GET / HTTP/1.1\r\nX-A: 1\r\nX-A: 2\r\n\r\n")

        assert request.headers == {"X-A": "2"}

    def test_utf8_body(self):
        """Test that a UTF-8 body decodes to text."""
        request = parse_request("POST / HTTP/1.1\r\n\r\nhéllo ☃".encode("utf-8"))

        assert request.body == "héllo ☃"

    def test_request_line_tokens_round_trip(self):
        """Test that method, path and protocol render back to what was sent."""
        line = "POST /a/b HTTP/1.0"
        request = parse_request(f"{line}\r\n\r\n".encode())

        assert f"{request.method} {request.path} {request.protocol}" == line

    @pytest.mark.parametrize("line", [
        b"GET /users HTTP/1.1 ",
        b"GET /users HTTP/1.1 extra",
    ])
    def test_tokens_after_protocol_ignored(self, line):
        request = parse_request(line + b"\r\n\r\n")

        assert request.method == Method.GET
        assert request.path == "/users"
        assert request.protocol == Protocol.HTTP_1_1

    def test_bare_lf_line_breaks(self):
        """Test that header lines may end in "\\n" as well as "\\r\\n"."""
        request = parse_request(b"GET /a HTTP/1.1\nHost: x\nAccept: */*\r\n\r\nbody")

        assert request.path == "/a"
        assert request.headers == {"Host": "x", "Accept": "*/*"}
        assert request.body == "body"


class TestParseErrors:
    """Tests for every way a request can fail to parse."""

    def test_missing_separator(self):
        """Test that a request with no blank line fails."""
        with pytest.raises(MissingBodySeparator):
            parse_request(b"GET / HTTP/1.1\r\nHost: x\r\n")

    def test_missing_separator_is_malformed_request(self):
        """Test that every parse failure is a MalformedRequestError."""
        with pytest.raises(MalformedRequestError):
            parse_request(b"GET / HTTP/1.1")

    def test_invalid_utf8(self):
        with pytest.raises(InvalidEncoding):
            parse_request(b"GET /\xff\xfe HTTP/1.1\r\n\r\n")

    @pytest.mark.parametrize("line", [
        b"GET /",
        b"GET",
        b"",
    ])
    def test_malformed_request_line(self, line):
        """Test that the request line needs at least three tokens."""
        with pytest.raises(MalformedRequestLine):
            parse_request(line + b"\r\n\r\n")

    def test_doubled_space_shifts_tokens(self):
        """Test that "GET  / HTTP/1.1" reads "/" as the protocol."""
        with pytest.raises(InvalidProtocol):
            parse_request(b"GET  / HTTP/1.1\r\n\r\n")

    def test_unknown_method(self):
        with pytest.raises(InvalidMethod):
            parse_request(b"DELETE / HTTP/1.1\r\n\r\n")

    def test_unknown_protocol(self):
        with pytest.raises(InvalidProtocol):
            parse_request(b"GET / HTTP/2.0\r\n\r\n")

    def test_method_checked_before_protocol(self):
        """Test that a request wrong on both counts reports the method."""
        with pytest.raises(InvalidMethod):
            parse_request(b"PUT / HTTP/3\r\n\r\n")

    def test_header_without_colon(self):
        with pytest.raises(MalformedHeaderLine):
            parse_request(b"GET / HTTP/1.1\r\nHost x\r\n\r\n")

    def test_parse_errors_carry_400(self):
        """Test that parse errors know the status a hardened server answers with."""
        with pytest.raises(ParseError) as exc_info:
            parse_request(b"GET / HTTP/1.1\r\nbroken\r\n\r\n")
        assert exc_info.value.status_code == 400

    def test_invalid_json_body(self):
        request = parse_request(b"POST / HTTP/1.1\r\n\r\n{not json")
        with pytest.raises(ParseError):
            request.json


class TestNormalizePath:
    """Tests for normalize_path()."""

    @pytest.mark.parametrize("raw,normalized", [
        ("/", ""),
        ("", ""),
        ("/foo", "/foo"),
        ("/foo/", "/foo"),
        ("/foo//", "/foo"),
        ("/a/b/", "/a/b"),
    ])
    def test_normalize(self, raw, normalized):
        assert normalize_path(raw) == normalized

    @pytest.mark.parametrize("path", ["/", "/foo/", "/foo//", "", "/a/b"])
    def test_idempotent(self, path):
        """Test that normalizing twice changes nothing."""
        once = normalize_path(path)
        assert normalize_path(once) == once

    def test_trailing_slash_collapses(self):
        assert normalize_path("/foo/") == normalize_path("/foo")


class TestRequest:
    """Tests for the Request value."""

    def test_immutable(self):
        """Test that neither fields nor headers can be changed."""
        request = parse_request(b"GET /a HTTP/1.1\r\nHost: x\r\n\r\n")

        with pytest.raises(dataclasses.FrozenInstanceError):
            request.path = "/b"
        with pytest.raises(TypeError):
            request.headers["Host"] = "y"

    def test_headers_copied_on_construction(self):
        """Test that mutating the source dict does not leak into the Request."""
        headers = {"A": "1"}
        request = Request(Protocol.HTTP_1_1, Method.GET, "/", headers=headers)
        headers["A"] = "2"

        assert request.headers["A"] == "1"
