"""
Unit tests for message framing (LineCodec, Body, Request, Response).
"""

import pytest

from bufconn.bufio import BufferedReader
from bufconn.errors import EndOfStream, FrameError, UnexpectedEOFError
from bufconn.persist import Body, FramingCodec, LineCodec, Request, Response
from bufconn.streams import BytesBuffer, BytesReader


def reader_over(data: bytes, size: int = 4096) -> BufferedReader:
    return BufferedReader(BytesReader(data), size)


class TestReadRequest:
    """Tests for LineCodec.read_request."""

    def test_get(self, sample_get_request: bytes):
        req = LineCodec().read_request(reader_over(sample_get_request))
        assert req.method == "GET"
        assert req.target == "/api/users?page=1"
        assert req.version == "HTTP/1.1"
        assert req.host == "localhost:8080"
        assert req.get_header("User-Agent") == "pytest"
        assert req.close is False
        assert req.body.read() == b""

    def test_post_body(self, sample_post_request: bytes):
        req = LineCodec().read_request(reader_over(sample_post_request))
        assert req.method == "POST"
        assert req.headers["content-type"] == "application/json"
        assert req.body.remaining == 16
        assert req.body.read() == b'{"name": "John"}'

    def test_bare_lf_lines(self):
        req = LineCodec().read_request(reader_over(b"GET / HTTP/1.1\nHost: x\n\n"))
        assert req.host == "x"

    def test_connection_close(self):
        data = b"GET / HTTP/1.1\r\nConnection: close\r\n\r\n"
        assert LineCodec().read_request(reader_over(data)).close is True

    def test_http10_closes_by_default(self):
        assert LineCodec().read_request(reader_over(b"GET / HTTP/1.0\r\n\r\n")).close is True
        keep = b"GET / HTTP/1.0\r\nConnection: keep-alive\r\n\r\n"
        assert LineCodec().read_request(reader_over(keep)).close is False

    def test_clean_end_of_stream(self):
        with pytest.raises(EndOfStream):
            LineCodec().read_request(reader_over(b""))

    def test_truncated_header(self):
        with pytest.raises(UnexpectedEOFError):
            LineCodec().read_request(reader_over(b"GET / HTTP/1.1\r\nHost: x"))

    def test_invalid_request_line(self):
        with pytest.raises(FrameError, match="invalid request line"):
            LineCodec().read_request(reader_over(b"NONSENSE\r\n\r\n"))

    def test_malformed_header(self):
        with pytest.raises(FrameError, match="malformed header"):
            LineCodec().read_request(reader_over(b"GET / HTTP/1.1\r\nno colon here\r\n\r\n"))

    def test_invalid_content_length(self):
        data = b"POST / HTTP/1.1\r\nContent-Length: lots\r\n\r\n"
        with pytest.raises(FrameError, match="Content-Length"):
            LineCodec().read_request(reader_over(data))

    def test_line_too_long(self):
        data = b"GET /" + b"a" * 100 + b" HTTP/1.1\r\n\r\n"
        codec = LineCodec(max_line_length=32)
        with pytest.raises(FrameError, match="line too long"):
            codec.read_request(reader_over(data, 16))

    def test_long_line_across_small_buffer(self):
        data = b"GET /" + b"a" * 100 + b" HTTP/1.1\r\n\r\n"
        req = LineCodec().read_request(reader_over(data, 16))
        assert req.target == "/" + "a" * 100

    def test_too_many_headers(self):
        headers = b"".join(f"X-H{i}: v\r\n".encode() for i in range(5))
        data = b"GET / HTTP/1.1\r\n" + headers + b"\r\n"
        with pytest.raises(FrameError, match="too many headers"):
            LineCodec(max_headers=4).read_request(reader_over(data))


class TestReadResponse:
    """Tests for LineCodec.read_response."""

    def test_with_length(self):
        data = b"HTTP/1.1 404 Not Found\r\nContent-Length: 4\r\n\r\nnope"
        resp = LineCodec().read_response(reader_over(data))
        assert resp.status == 404
        assert resp.reason == "Not Found"
        assert resp.body.read() == b"nope"
        assert resp.close is False

    def test_without_length_reads_to_eof(self):
        data = b"HTTP/1.1 200 OK\r\n\r\nuntil the end"
        resp = LineCodec().read_response(reader_over(data))
        assert resp.close is True
        assert resp.body.remaining is None
        assert resp.body.read() == b"until the end"

    def test_head_has_no_body(self):
        req = Request("HEAD", "/")
        data = b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\n\r\n"
        resp = LineCodec().read_response(reader_over(data), req)
        assert resp.body.read() == b""
        assert resp.request is req

    @pytest.mark.parametrize("status", [204, 304, 100])
    def test_bodyless_status(self, status: int):
        data = f"HTTP/1.1 {status} X\r\n\r\n".encode()
        resp = LineCodec().read_response(reader_over(data))
        assert resp.body.remaining == 0
        assert resp.close is False

    def test_invalid_status_line(self):
        with pytest.raises(FrameError, match="invalid status line"):
            LineCodec().read_response(reader_over(b"HTTP/1.1 OK\r\n\r\n"))


class TestWrite:
    """Tests for LineCodec.write_request / write_response."""

    def test_write_request(self):
        out = BytesBuffer()
        req = Request("POST", "/submit", headers={"host": "example.com"}, body=b"data")
        LineCodec().write_request(out, req)
        assert out.getvalue() == (
            b"POST /submit HTTP/1.1\r\n"
            b"Host: example.com\r\n"
            b"Content-Length: 4\r\n"
            b"\r\n"
            b"data"
        )

    def test_write_request_proxy_form(self):
        out = BytesBuffer()
        req = Request("GET", "/index.html", headers={"host": "example.com"})
        LineCodec().write_request(out, req, proxy=True)
        assert out.getvalue().startswith(b"GET http://example.com/index.html HTTP/1.1\r\n")

    def test_proxy_form_needs_host(self):
        with pytest.raises(FrameError, match="Host"):
            LineCodec().write_request(BytesBuffer(), Request("GET", "/"), proxy=True)

    def test_write_response_defaults(self):
        out = BytesBuffer()
        LineCodec().write_response(out, Response(status=201))
        assert out.getvalue() == b"HTTP/1.1 201 Created\r\nContent-Length: 0\r\n\r\n"

    def test_write_response_close(self):
        out = BytesBuffer()
        LineCodec().write_response(out, Response(body=b"bye", close=True))
        text = out.getvalue()
        assert b"Connection: close\r\n" in text
        assert text.endswith(b"\r\n\r\nbye")

    def test_streamed_body(self):
        out = BytesBuffer()
        resp = Response(headers={"Content-Length": "5"}, body=BytesReader(b"streamed"))
        LineCodec().write_response(out, resp)
        assert out.getvalue().endswith(b"\r\n\r\nstrea")

    def test_streamed_body_needs_length(self):
        resp = Response(body=BytesReader(b"streamed"))
        with pytest.raises(FrameError, match="Content-Length"):
            LineCodec().write_response(BytesBuffer(), resp)

    def test_header_injection(self):
        resp = Response(headers={"x-evil": "a\r\nSet-Cookie: b"})
        with pytest.raises(FrameError, match="CR or LF"):
            LineCodec().write_response(BytesBuffer(), resp)

    def test_round_trip_request(self):
        out = BytesBuffer()
        sent = Request("PUT", "/x", headers={"host": "h", "x-trace": "42"}, body=b"payload")
        LineCodec().write_request(out, sent)
        got = LineCodec().read_request(reader_over(out.getvalue()))
        assert (got.method, got.target, got.host) == ("PUT", "/x", "h")
        assert got.get_header("x-trace") == "42"
        assert got.body.read() == b"payload"

    def test_codec_protocol(self):
        assert isinstance(LineCodec(), FramingCodec)


class TestBody:
    """Tests for Body."""

    def test_close_skips_rest(self):
        br = reader_over(b"0123456789NEXT")
        body = Body(br, 10)
        assert body.readinto(bytearray(3)) == 3
        body.close()
        assert body.closed
        assert br.read() == b"NEXT"

    def test_close_is_idempotent(self):
        body = Body(reader_over(b"abc"), 3)
        body.close()
        body.close()

    def test_close_truncated(self):
        body = Body(reader_over(b"abc"), 10)
        with pytest.raises(UnexpectedEOFError):
            body.close()
        with pytest.raises(UnexpectedEOFError):
            body.close()

    def test_read_truncated(self):
        body = Body(reader_over(b"abc"), 10)
        with pytest.raises(UnexpectedEOFError):
            body.read()

    def test_read_after_close(self):
        body = Body(reader_over(b"abc"), 3)
        body.close()
        with pytest.raises(ValueError):
            body.readinto(bytearray(1))

    def test_unknown_length_close_drains(self):
        br = reader_over(b"x" * 10000)
        Body(br, None).close()
        assert br.read() == b""
