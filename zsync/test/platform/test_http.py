"""Tests for zsync.platform.http module."""

from __future__ import annotations

import json
import threading
import time
from collections.abc import Iterator
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

from zsync.core.result import Err, Ok
from zsync.platform.http import HttpClient, HttpError, HttpResponse, MockHttpClient, RealHttpClient


class TestHttpError:
    def test_network_flag(self) -> None:
        assert HttpError(url="u", status=0, message="refused").is_network
        assert not HttpError(url="u", status=500, message="boom").is_network

    def test_api_message(self) -> None:
        error = HttpError(url="u", status=400, message="Bad", body='{"message": "Validation error"}')
        assert error.api_message() == "Validation error"

    @pytest.mark.parametrize("body", ["", "<html>", "[1]", '{"status": 400}'])
    def test_api_message_absent(self, body: str) -> None:
        assert HttpError(url="u", status=400, message="Bad", body=body).api_message() is None

    def test_str(self) -> None:
        assert str(HttpError(url="u", status=404, message="Not Found")) == "HTTP 404: Not Found (u)"
        assert str(HttpError(url="u", status=0, message="refused")) == "refused (u)"


class TestHttpResponse:
    def test_json(self) -> None:
        assert HttpResponse(url="u", status=200, body=b'{"id": 1}').json() == Ok({"id": 1})

    def test_invalid_json(self) -> None:
        result = HttpResponse(url="u", status=200, body=b"nope").json()
        assert isinstance(result, Err)
        assert "JSON parse error" in result.error.message


class TestMockHttpClient:
    def test_implements_protocol(self) -> None:
        assert isinstance(MockHttpClient(), HttpClient)

    def test_unknown_route_is_404(self) -> None:
        result = MockHttpClient().request("GET", "https://x/y")
        assert isinstance(result, Err)
        assert result.error.status == 404

    def test_single_response_is_sticky(self) -> None:
        http = MockHttpClient()
        http.add("GET", "https://x", json={"n": 1})

        first = http.request("GET", "https://x")
        second = http.request("GET", "https://x")

        assert first == second
        assert len(http.calls) == 2

    def test_queued_responses_in_order(self) -> None:
        http = MockHttpClient()
        http.add("GET", "https://x", status=500)
        http.add("GET", "https://x", json={"ok": True})

        assert isinstance(http.request("GET", "https://x"), Err)
        assert isinstance(http.request("GET", "https://x"), Ok)
        assert isinstance(http.request("GET", "https://x"), Ok)

    def test_fail_and_reset(self) -> None:
        http = MockHttpClient()
        http.add("PUT", "https://x", status=201)
        http.reset("PUT", "https://x")
        http.fail("PUT", "https://x", message="Connection reset")

        result = http.request("PUT", "https://x")

        assert isinstance(result, Err)
        assert result.error.is_network

    def test_records_calls(self, tmp_path: Path) -> None:
        http = MockHttpClient()
        src = tmp_path / "a.zip"
        http.request("PUT", "https://x/meta", headers={"A": "1"}, json_body={"k": "v"})
        http.upload("PUT", "https://x/bucket/a.zip", src)

        assert http.calls[0].json_body == {"k": "v"}
        assert http.calls[0].headers == {"A": "1"}
        assert http.calls[1].source == src
        assert [c.url for c in http.calls_to("PUT", "https://x/bucket")] == ["https://x/bucket/a.zip"]

    def test_download_writes_body(self, tmp_path: Path) -> None:
        http = MockHttpClient()
        http.add("GET", "https://x/a.txt", body=b"hello")

        result = http.download("https://x/a.txt", tmp_path / "sub" / "a.txt", timeout=5)

        assert result == Ok(tmp_path / "sub" / "a.txt")
        assert (tmp_path / "sub" / "a.txt").read_bytes() == b"hello"
        assert http.calls[0].timeout == 5


class _Handler(BaseHTTPRequestHandler):
    def log_message(self, format: str, *args: object) -> None:
        pass

    def _reply(self, status: int, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _truncated(self, status: int = 200) -> None:
        self.send_response(status)
        self.send_header("Content-Length", "1000")
        self.end_headers()
        self.wfile.write(b"cut short\n")
        self.close_connection = True

    def _trickle(self) -> None:
        self.send_response(200)
        self.send_header("Content-Length", "1000")
        self.end_headers()
        self.wfile.write(b"x" * 10)
        self.wfile.flush()
        time.sleep(2)
        try:
            self.wfile.write(b"x" * 990)
        except ConnectionError:
            pass

    def do_GET(self) -> None:
        if self.path == "/file":
            self._reply(200, b"x" * 100_000)
        elif self.path == "/short":
            self._truncated()
        elif self.path == "/slow":
            self._trickle()
        elif self.path == "/auth":
            self._reply(200, json.dumps({"auth": self.headers.get("Authorization")}).encode())
        else:
            self._reply(404, b'{"message": "Not Found"}')

    def do_PUT(self) -> None:
        length = int(self.headers.get("Content-Length", "0"))
        data = self.rfile.read(length)
        if self.path == "/short":
            self._truncated(201)
            return
        payload = {"received": len(data), "type": self.headers.get("Content-Type")}
        self._reply(201, json.dumps(payload).encode())


@pytest.fixture
def server() -> Iterator[str]:
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{httpd.server_address[1]}"
    finally:
        httpd.shutdown()
        httpd.server_close()


class TestRealHttpClient:
    def test_sends_headers(self, server: str) -> None:
        result = RealHttpClient(timeout=5).request(
            "GET", f"{server}/auth", headers={"Authorization": "Bearer t"}
        )

        assert isinstance(result, Ok)
        assert result.value.json() == Ok({"auth": "Bearer t"})

    def test_error_status_keeps_body(self, server: str) -> None:
        result = RealHttpClient(timeout=5).request("GET", f"{server}/missing")

        assert isinstance(result, Err)
        assert result.error.status == 404
        assert result.error.api_message() == "Not Found"

    def test_json_body(self, server: str) -> None:
        result = RealHttpClient(timeout=5).request("PUT", f"{server}/meta", json_body={"a": 1})

        assert isinstance(result, Ok)
        assert result.value.status == 201
        assert result.value.json() == Ok({"received": 8, "type": "application/json"})

    def test_upload_streams_file(self, server: str, tmp_path: Path) -> None:
        src = tmp_path / "a.bin"
        src.write_bytes(b"\0" * 4096)

        result = RealHttpClient(timeout=5).upload(
            "PUT", f"{server}/bucket/a.bin", src, headers={"Content-Type": "application/octet-stream"}
        )

        assert isinstance(result, Ok)
        assert result.value.json() == Ok({"received": 4096, "type": "application/octet-stream"})

    def test_upload_missing_file(self, server: str, tmp_path: Path) -> None:
        result = RealHttpClient(timeout=5).upload("PUT", f"{server}/x", tmp_path / "absent")

        assert isinstance(result, Err)
        assert result.error.is_network

    def test_download(self, server: str, tmp_path: Path) -> None:
        dest = tmp_path / "out" / "file"

        result = RealHttpClient(timeout=5).download(f"{server}/file", dest, timeout=10)

        assert result == Ok(dest)
        assert dest.stat().st_size == 100_000

    def test_connection_refused(self, tmp_path: Path) -> None:
        result = RealHttpClient(timeout=2).request("GET", "http://127.0.0.1:9/")

        assert isinstance(result, Err)
        assert result.error.is_network

    def test_truncated_body_is_network_error(self, server: str) -> None:
        result = RealHttpClient(timeout=5).request("GET", f"{server}/short")

        assert isinstance(result, Err)
        assert result.error.is_network
        assert "IncompleteRead" in result.error.message

    def test_truncated_upload_answer_is_network_error(self, server: str, tmp_path: Path) -> None:
        src = tmp_path / "a.bin"
        src.write_bytes(b"\0" * 64)

        result = RealHttpClient(timeout=5).upload("PUT", f"{server}/short", src)

        assert isinstance(result, Err)
        assert result.error.is_network

    def test_truncated_download_removes_partial_file(self, server: str, tmp_path: Path) -> None:
        dest = tmp_path / "short"

        result = RealHttpClient(timeout=5).download(f"{server}/short", dest, timeout=5)

        assert isinstance(result, Err)
        assert result.error.is_network
        assert not dest.exists()

    def test_download_deadline_covers_stalled_reads(self, server: str, tmp_path: Path) -> None:
        dest = tmp_path / "slow"
        started = time.monotonic()

        result = RealHttpClient(timeout=30).download(f"{server}/slow", dest, timeout=0.5)

        assert isinstance(result, Err)
        assert "timed out" in result.error.message
        assert time.monotonic() - started < 1.5
        assert not dest.exists()
