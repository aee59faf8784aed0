"""
Unit tests for persistent connection endpoints and the pipeline.
"""

import threading
import time

import pytest

from bufconn.errors import (
    ClosedByUserError,
    FrameError,
    MisuseError,
    PersistentEOFError,
    PipelineError,
    UnexpectedEOFError,
)
from bufconn.config import StreamConfig
from bufconn.persist import (
    ClientConn,
    Pipeline,
    ProxyClientConn,
    ReadState,
    Request,
    Response,
    Sequencer,
    ServerConn,
    new_client_conn,
    new_server_conn,
)

from conftest import ScriptedStream


def response_bytes(body: bytes, extra: str = "") -> bytes:
    return (
        f"HTTP/1.1 200 OK\r\nContent-Length: {len(body)}\r\n{extra}\r\n".encode() + body
    )


def request_bytes(target: str, body: bytes = b"", extra: str = "") -> bytes:
    return (
        f"POST {target} HTTP/1.1\r\nHost: test\r\nContent-Length: {len(body)}\r\n{extra}\r\n".encode()
        + body
    )


class TestSequencer:
    """Tests for Sequencer and Pipeline."""

    def test_in_order(self):
        seq = Sequencer("test")
        seq.start(0)
        seq.end(0)
        seq.start(1)
        seq.end(1)
        assert seq.current == 2

    def test_end_out_of_sync(self):
        seq = Sequencer("test")
        with pytest.raises(MisuseError, match="out of sync"):
            seq.end(3)

    def test_start_waits_for_turn(self):
        seq = Sequencer("test")
        order = []

        def second():
            seq.start(1)
            order.append(1)
            seq.end(1)

        t = threading.Thread(target=second, daemon=True)
        t.start()
        time.sleep(0.05)
        assert order == []
        seq.start(0)
        order.append(0)
        seq.end(0)
        t.join(5)
        assert order == [0, 1]

    def test_pipeline_ids(self):
        p = Pipeline()
        assert [p.next(), p.next(), p.next()] == [0, 1, 2]
        p.start_request(0)
        p.end_request(0)
        assert p.request.current == 1
        assert p.response.current == 0


class TestClientConn:
    """Tests for ClientConn."""

    def test_pipelined_requests(self):
        """Write A, write B, read A, read B; an unwritten request fails."""
        stream = ScriptedStream(response_bytes(b"for a") + response_bytes(b"for b"))
        conn = ClientConn(stream)
        a = Request("GET", "/a", headers={"host": "test"})
        b = Request("GET", "/b", headers={"host": "test"})

        conn.write(a)
        conn.write(b)
        assert conn.pending() == 2

        resp_a = conn.read(a)
        assert resp_a.body.read() == b"for a"
        assert resp_a.request is a
        resp_b = conn.read(b)
        assert resp_b.body.read() == b"for b"
        assert conn.pending() == 0

        with pytest.raises(PipelineError):
            conn.read(Request("GET", "/c"))

        written = stream.written
        assert written.index(b"GET /a HTTP/1.1") < written.index(b"GET /b HTTP/1.1")

    def test_read_same_request_twice(self):
        stream = ScriptedStream(response_bytes(b"x"))
        conn = ClientConn(stream)
        a = Request("GET", "/a", headers={"host": "test"})
        conn.write(a)
        conn.read(a)
        with pytest.raises(PipelineError):
            conn.read(a)

    def test_unread_body_is_skipped(self):
        stream = ScriptedStream(response_bytes(b"skip me") + response_bytes(b"keep"))
        conn = ClientConn(stream)
        a, b = Request("GET", "/a"), Request("GET", "/b")
        conn.write(a)
        conn.write(b)
        conn.read(a)
        assert conn.state == ReadState.BODY_OUTSTANDING
        assert conn.read(b).body.read() == b"keep"

    def test_response_close(self):
        stream = ScriptedStream(response_bytes(b"last", "Connection: close\r\n"))
        conn = ClientConn(stream)
        a, b = Request("GET", "/a"), Request("GET", "/b")
        conn.write(a)
        conn.write(b)

        resp = conn.read(a)
        assert resp.close is True
        assert resp.body.read() == b"last"
        assert conn.state == ReadState.TERMINAL

        with pytest.raises(PersistentEOFError):
            conn.read(b)
        with pytest.raises(PersistentEOFError):
            conn.write(Request("GET", "/c"))

    def test_request_close(self):
        stream = ScriptedStream(response_bytes(b"ok"))
        conn = ClientConn(stream)
        a = Request("GET", "/a", close=True)
        conn.write(a)
        assert b"Connection: close\r\n" in stream.written

        # The response to a request already sent can still be read.
        assert conn.read(a).body.read() == b"ok"
        with pytest.raises(PersistentEOFError):
            conn.write(Request("GET", "/b"))

    def test_server_hangs_up(self):
        stream = ScriptedStream(response_bytes(b"one"))
        conn = ClientConn(stream)
        a, b = Request("GET", "/a"), Request("GET", "/b")
        conn.write(a)
        conn.write(b)
        conn.read(a)
        with pytest.raises(PersistentEOFError):
            conn.read(b)
        assert conn.state == ReadState.TERMINAL

    def test_truncated_response(self):
        stream = ScriptedStream(b"HTTP/1.1 200 OK\r\nContent-Le")
        conn = ClientConn(stream)
        a = Request("GET", "/a")
        conn.write(a)
        with pytest.raises(UnexpectedEOFError):
            conn.read(a)

    def test_hijack(self):
        stream = ScriptedStream(response_bytes(b"x") + b"extra bytes")
        conn = ClientConn(stream)
        a = Request("GET", "/a")
        conn.write(a)

        got_stream, reader = conn.hijack()
        assert got_stream is stream

        with pytest.raises(ClosedByUserError):
            conn.read(a)
        with pytest.raises(ClosedByUserError):
            conn.write(Request("GET", "/b"))
        assert conn.hijack() == (None, None)
        assert reader is not None

    def test_hijack_keeps_buffered_data(self):
        stream = ScriptedStream(response_bytes(b"x") + b"extra bytes")
        conn = ClientConn(stream)
        a = Request("GET", "/a")
        conn.write(a)
        conn.read(a).body.read()
        _, reader = conn.hijack()
        assert reader.read() == b"extra bytes"

    def test_write_failure_is_sticky(self):
        class BrokenStream(ScriptedStream):
            def write(self, b):
                raise OSError("broken pipe")

        conn = ClientConn(BrokenStream())
        with pytest.raises(OSError, match="broken pipe"):
            conn.write(Request("GET", "/a"))
        with pytest.raises(OSError, match="broken pipe"):
            conn.write(Request("GET", "/b"))

    def test_do(self):
        stream = ScriptedStream(response_bytes(b"done"))
        conn = new_client_conn(stream)
        assert conn.do(Request("GET", "/")).body.read() == b"done"

    def test_proxy_form(self):
        stream = ScriptedStream()
        conn = ProxyClientConn(stream)
        conn.write(Request("GET", "/index.html", headers={"host": "example.com"}))
        assert stream.written.startswith(b"GET http://example.com/index.html HTTP/1.1\r\n")

    def test_proxy_without_host(self):
        conn = ProxyClientConn(ScriptedStream())
        with pytest.raises(FrameError):
            conn.write(Request("GET", "/"))

    def test_close(self):
        stream = ScriptedStream()
        with ClientConn(stream) as conn:
            assert conn.state == ReadState.IDLE
        assert stream.closed
        conn.close()


class TestServerConn:
    """Tests for ServerConn."""

    def test_read_then_write_in_order(self):
        stream = ScriptedStream(request_bytes("/one", b"1") + request_bytes("/two", b"22"))
        conn = ServerConn(stream)

        one = conn.read()
        two = conn.read()
        assert (one.target, two.target) == ("/one", "/two")
        assert conn.pending() == 2
        assert two.body.read() == b"22"

        conn.write(one, Response(body=b"first"))
        conn.write(two, Response(body=b"second"))
        assert conn.pending() == 0

        written = stream.written
        assert written.index(b"first") < written.index(b"second")

    def test_write_before_read(self):
        conn = ServerConn(ScriptedStream(request_bytes("/x")))
        with pytest.raises(PipelineError):
            conn.write(Request("GET", "/x"), Response())

    def test_write_twice(self):
        conn = ServerConn(ScriptedStream(request_bytes("/x")))
        req = conn.read()
        conn.write(req, Response())
        with pytest.raises(PipelineError):
            conn.write(req, Response())

    def test_body_drained_between_requests(self, sample_post_request: bytes, sample_get_request: bytes):
        conn = ServerConn(ScriptedStream(sample_post_request + sample_get_request))
        post = conn.read()
        conn.write(post, Response())
        get = conn.read()
        assert post.body.closed
        assert get.method == "GET"

    def test_end_of_stream(self):
        conn = ServerConn(ScriptedStream(request_bytes("/only")))
        req = conn.read()
        conn.write(req, Response())
        with pytest.raises(PersistentEOFError):
            conn.read()
        with pytest.raises(PersistentEOFError):
            conn.read()
        assert conn.state == ReadState.TERMINAL

    def test_client_asks_to_close(self):
        data = request_bytes("/bye", extra="Connection: close\r\n") + request_bytes("/ignored")
        conn = ServerConn(ScriptedStream(data))
        req = conn.read()
        assert req.close is True
        conn.write(req, Response(body=b"bye"))
        with pytest.raises(PersistentEOFError):
            conn.read()

    def test_response_close(self):
        stream = ScriptedStream(request_bytes("/a") + request_bytes("/b"))
        conn = ServerConn(stream)
        req = conn.read()
        conn.write(req, Response(close=True))
        assert b"Connection: close\r\n" in stream.written
        with pytest.raises(PersistentEOFError):
            conn.read()

    def test_malformed_request_is_sticky(self):
        conn = ServerConn(ScriptedStream(b"BROKEN\r\n\r\n"))
        with pytest.raises(FrameError):
            conn.read()
        with pytest.raises(FrameError):
            conn.read()

    def test_write_failure_stops_reads(self):
        class BrokenStream(ScriptedStream):
            def write(self, b):
                raise OSError("reset")

        conn = ServerConn(BrokenStream(request_bytes("/a") + request_bytes("/b")))
        req = conn.read()
        with pytest.raises(OSError):
            conn.write(req, Response())
        with pytest.raises(OSError):
            conn.read()

    def test_hijack(self):
        stream = ScriptedStream(request_bytes("/a") + b"raw tail")
        conn = new_server_conn(stream)
        req = conn.read()
        req.body.close()

        got_stream, reader = conn.hijack()
        assert got_stream is stream
        assert reader.read() == b"raw tail"

        with pytest.raises(ClosedByUserError):
            conn.write(req, Response())
        with pytest.raises(ClosedByUserError):
            conn.read()

    def test_hijack_before_read(self):
        conn = ServerConn(ScriptedStream(request_bytes("/a")))
        conn.hijack()
        with pytest.raises(ClosedByUserError):
            conn.read()

    def test_responses_wait_for_their_turn(self):
        """A response to the second request is held until the first is out."""
        stream = ScriptedStream(request_bytes("/1") + request_bytes("/2"))
        conn = ServerConn(stream)
        first, second = conn.read(), conn.read()

        t = threading.Thread(
            target=conn.write, args=(second, Response(body=b"second")), daemon=True
        )
        t.start()
        time.sleep(0.1)
        assert stream.written == b""

        conn.write(first, Response(body=b"first"))
        t.join(5)
        assert not t.is_alive()
        written = stream.written
        assert written.index(b"first") < written.index(b"second")

    def test_uses_config(self):
        config = StreamConfig(reader_buffer_size=32, writer_buffer_size=16)
        stream = ScriptedStream(request_bytes("/" + "p" * 100))
        conn = ServerConn(stream, config=config)
        req = conn.read()
        assert req.target == "/" + "p" * 100
        conn.write(req, Response(body=b"z" * 50))
        assert stream.written.endswith(b"z" * 50)


class TestOverStreams:
    """Client and server talking over real duplex streams."""

    def test_over_socket_pair(self, socket_pair):
        client_side, server_side = socket_pair
        served = []

        def serve():
            conn = ServerConn(server_side)
            while True:
                try:
                    req = conn.read()
                except PersistentEOFError:
                    break
                body = req.body.read()
                served.append(req.target)
                conn.write(req, Response(body=body.upper(), close=req.close))

        t = threading.Thread(target=serve, daemon=True)
        t.start()

        client = ClientConn(client_side)
        reqs = [
            Request("POST", f"/{i}", headers={"host": "local"}, body=f"msg{i}".encode())
            for i in range(3)
        ]
        reqs[-1].close = True
        for req in reqs:
            client.write(req)
        bodies = [client.read(req).body.read() for req in reqs]

        t.join(5)
        assert not t.is_alive()
        assert bodies == [b"MSG0", b"MSG1", b"MSG2"]
        assert served == ["/0", "/1", "/2"]

    def test_over_pipe(self, pipe_pair):
        a, b = pipe_pair
        result = {}

        def serve():
            conn = ServerConn(b)
            req = conn.read()
            result["target"] = req.target
            conn.write(req, Response(body=b"piped"))

        t = threading.Thread(target=serve, daemon=True)
        t.start()

        client = ClientConn(a)
        req = Request("GET", "/pipe", headers={"host": "mem"})
        client.write(req)
        assert client.read(req).body.read() == b"piped"
        t.join(5)
        assert result["target"] == "/pipe"
