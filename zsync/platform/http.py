"""HTTP transport for the GitHub and Zenodo APIs.

This module provides:
- HttpClient: Protocol for HTTP operations (injectable for tests)
- RealHttpClient: Real implementation using urllib
- MockHttpClient: Scripted implementation for testing

Any non-2xx response is returned as ``Err(HttpError)`` carrying the status
code and the response body; ``status == 0`` marks a network-level failure
where no response was received at all.
"""

from __future__ import annotations

import functools
import http.client
import json
import socket
import ssl
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from zsync import __version__
from zsync.core.result import Err, Ok, Result
from zsync.core.structured import as_str_dict, get_str

__all__ = [
    "HttpClient",
    "HttpError",
    "HttpResponse",
    "MockHttpClient",
    "RealHttpClient",
    "RecordedCall",
]

_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message
        body: Response body, if any (APIs put details there)
    """

    url: str
    status: int
    message: str
    body: str = ""

    @property
    def is_network(self) -> bool:
        return self.status == 0

    def api_message(self) -> str | None:
        """Return the ``message`` field of a JSON error body, if present."""
        try:
            obj: object = json.loads(self.body)
        except (json.JSONDecodeError, TypeError):
            return None
        data = as_str_dict(obj)
        if data is None:
            return None
        return get_str(data, "message")

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


@dataclass(frozen=True, slots=True)
class HttpResponse:
    url: str
    status: int
    body: bytes = b""

    def json(self) -> Result[object, HttpError]:
        try:
            return Ok(json.loads(self.body.decode("utf-8")))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(
                HttpError(url=self.url, status=self.status, message=f"JSON parse error: {e}")
            )


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for HTTP operations."""

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: object = None,
        timeout: float | None = None,
    ) -> Result[HttpResponse, HttpError]:
        """Send a request, optionally with a JSON body.

        Returns:
            Ok with the response for 2xx statuses, or Err with HttpError
        """
        ...

    def upload(
        self,
        method: str,
        url: str,
        source: Path,
        *,
        headers: dict[str, str] | None = None,
    ) -> Result[HttpResponse, HttpError]:
        """Stream a local file as the request body."""
        ...

    def download(
        self,
        url: str,
        dest: Path,
        *,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Result[Path, HttpError]:
        """Stream a response body to ``dest``.

        ``timeout`` bounds the whole transfer, not a single socket read.
        """
        ...


def _read_error_body(e: urllib.error.HTTPError) -> str:
    try:
        return e.read().decode("utf-8", errors="replace")
    except OSError:
        return ""


def _status_error(url: str, e: urllib.error.HTTPError) -> HttpError:
    return HttpError(url=url, status=e.code, message=e.reason, body=_read_error_body(e))


def _broken_response(url: str, e: http.client.HTTPException) -> HttpError:
    # Truncated bodies and malformed status lines: no usable response arrived.
    return HttpError(url=url, status=0, message=f"Broken response: {e!r}")


class _TrackedHTTPConnection(http.client.HTTPConnection):
    def __init__(self, *args: object, sockets: list[socket.socket], **kwargs: object) -> None:
        super().__init__(*args, **kwargs)  # type: ignore[arg-type]
        self._sockets = sockets

    def connect(self) -> None:
        super().connect()
        self._sockets.append(self.sock)


class _TrackedHTTPSConnection(http.client.HTTPSConnection):
    def __init__(self, *args: object, sockets: list[socket.socket], **kwargs: object) -> None:
        super().__init__(*args, **kwargs)  # type: ignore[arg-type]
        self._sockets = sockets

    def connect(self) -> None:
        super().connect()
        self._sockets.append(self.sock)


class _TrackedHTTPHandler(urllib.request.HTTPHandler):
    def __init__(self, sockets: list[socket.socket]) -> None:
        super().__init__()
        self._sockets = sockets

    def http_open(self, req: urllib.request.Request) -> http.client.HTTPResponse:
        conn = functools.partial(_TrackedHTTPConnection, sockets=self._sockets)
        return self.do_open(conn, req)  # type: ignore[arg-type]


class _TrackedHTTPSHandler(urllib.request.HTTPSHandler):
    def __init__(self, context: ssl.SSLContext, sockets: list[socket.socket]) -> None:
        super().__init__(context=context)
        self._tls = context
        self._sockets = sockets

    def https_open(self, req: urllib.request.Request) -> http.client.HTTPResponse:
        conn = functools.partial(_TrackedHTTPSConnection, sockets=self._sockets)
        return self.do_open(conn, req, context=self._tls)  # type: ignore[arg-type]


def _remaining(deadline: float) -> float:
    left = deadline - time.monotonic()
    if left <= 0:
        raise TimeoutError
    return left


class RealHttpClient:
    """Real HTTP client using urllib.

    Handles:
    - HTTPS with system certificates
    - JSON request bodies
    - Streaming uploads and downloads
    - Per-request and whole-transfer timeouts
    """

    def __init__(self, timeout: float = 60.0, user_agent: str = f"zsync/{__version__}") -> None:
        """Initialize HTTP client.

        Args:
            timeout: Default socket timeout in seconds
            user_agent: User-Agent header value
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        out = {"User-Agent": self.user_agent}
        if headers:
            out.update(headers)
        return out

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: object = None,
        timeout: float | None = None,
    ) -> Result[HttpResponse, HttpError]:
        all_headers = self._headers(headers)
        data: bytes | None = None
        if json_body is not None:
            data = json.dumps(json_body).encode("utf-8")
            all_headers["Content-Type"] = "application/json"
        elif method in ("POST", "PUT", "PATCH"):
            data = b""

        req = urllib.request.Request(url, data=data, headers=all_headers, method=method)
        try:
            with urllib.request.urlopen(
                req,
                timeout=timeout or self.timeout,
                context=self._ssl_context,
            ) as response:
                return Ok(HttpResponse(url=url, status=response.status, body=response.read()))
        except urllib.error.HTTPError as e:
            return Err(_status_error(url, e))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except http.client.HTTPException as e:
            return Err(_broken_response(url, e))
        except (ValueError, OSError) as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

    def upload(
        self,
        method: str,
        url: str,
        source: Path,
        *,
        headers: dict[str, str] | None = None,
    ) -> Result[HttpResponse, HttpError]:
        all_headers = self._headers(headers)
        try:
            size = source.stat().st_size
        except OSError as e:
            return Err(HttpError(url=url, status=0, message=f"cannot read {source}: {e}"))
        all_headers["Content-Length"] = str(size)

        try:
            with source.open("rb") as fh:
                req = urllib.request.Request(url, data=fh, headers=all_headers, method=method)
                with urllib.request.urlopen(
                    req,
                    timeout=self.timeout,
                    context=self._ssl_context,
                ) as response:
                    return Ok(
                        HttpResponse(url=url, status=response.status, body=response.read())
                    )
        except urllib.error.HTTPError as e:
            return Err(_status_error(url, e))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Upload timed out"))
        except http.client.HTTPException as e:
            return Err(_broken_response(url, e))
        except (ValueError, OSError) as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

    def download(
        self,
        url: str,
        dest: Path,
        *,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Result[Path, HttpError]:
        deadline = time.monotonic() + timeout if timeout is not None else None
        # Redirects open new connections; the last tracked socket is the live one.
        sockets: list[socket.socket] = []
        opener = urllib.request.build_opener(
            _TrackedHTTPHandler(sockets),
            _TrackedHTTPSHandler(self._ssl_context, sockets),
        )
        req = urllib.request.Request(url, headers=self._headers(headers))
        try:
            open_timeout = self.timeout
            if deadline is not None:
                open_timeout = min(open_timeout, _remaining(deadline))
            with opener.open(req, timeout=open_timeout) as response:
                dest.parent.mkdir(parents=True, exist_ok=True)
                with open(dest, "wb") as f:
                    while True:
                        if deadline is not None and sockets:
                            sockets[-1].settimeout(_remaining(deadline))
                        # read1 issues at most one socket read per call
                        chunk = response.read1(_CHUNK_SIZE)
                        if not chunk:
                            break
                        f.write(chunk)
                missing = getattr(response, "length", None)
                if missing:
                    raise http.client.IncompleteRead(b"", missing)
                return Ok(dest)
        except urllib.error.HTTPError as e:
            return Err(_status_error(url, e))
        except urllib.error.URLError as e:
            dest.unlink(missing_ok=True)
            if isinstance(e.reason, TimeoutError):
                return Err(HttpError(url=url, status=0, message="Download timed out"))
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            dest.unlink(missing_ok=True)
            return Err(HttpError(url=url, status=0, message="Download timed out"))
        except http.client.HTTPException as e:
            dest.unlink(missing_ok=True)
            return Err(_broken_response(url, e))
        except (ValueError, OSError) as e:
            dest.unlink(missing_ok=True)
            return Err(HttpError(url=url, status=0, message=str(e)))


@dataclass(frozen=True, slots=True)
class RecordedCall:
    """One request seen by MockHttpClient."""

    method: str
    url: str
    headers: dict[str, str]
    json_body: object = None
    source: Path | None = None
    timeout: float | None = None


def _empty_calls() -> list[RecordedCall]:
    return []


def _empty_routes() -> dict[tuple[str, str], list[HttpResponse | HttpError]]:
    return {}


@dataclass
class MockHttpClient:
    """Mock HTTP client for testing.

    Responses are queued per (method, url). When a queue holds a single
    response it is replayed for every further call.

    Usage:
        client = MockHttpClient()
        client.add("GET", "https://zenodo.org/api/deposit/depositions/1", json={"id": 1})
        client.add("DELETE", url, status=404)
        client.fail("PUT", url, message="Connection reset")
    """

    calls: list[RecordedCall] = field(default_factory=_empty_calls)
    _routes: dict[tuple[str, str], list[HttpResponse | HttpError]] = field(
        default_factory=_empty_routes
    )

    def add(
        self,
        method: str,
        url: str,
        *,
        status: int = 200,
        json: object = None,
        body: bytes = b"",
    ) -> None:
        """Queue a response; statuses >= 400 are returned as Err(HttpError)."""
        payload = body
        if json is not None:
            import json as _json

            payload = _json.dumps(json).encode("utf-8")
        response: HttpResponse | HttpError
        if status >= 400:
            response = HttpError(
                url=url,
                status=status,
                message="mock error",
                body=payload.decode("utf-8"),
            )
        else:
            response = HttpResponse(url=url, status=status, body=payload)
        self._routes.setdefault((method, url), []).append(response)

    def fail(self, method: str, url: str, *, message: str = "Connection refused") -> None:
        """Queue a network-level failure (no HTTP response)."""
        self._routes.setdefault((method, url), []).append(
            HttpError(url=url, status=0, message=message)
        )

    def reset(self, method: str, url: str) -> None:
        """Forget every response queued for (method, url)."""
        self._routes.pop((method, url), None)

    def _next(self, method: str, url: str) -> HttpResponse | HttpError:
        queue = self._routes.get((method, url))
        if not queue:
            return HttpError(url=url, status=404, message="Not found (mock)")
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0]

    def calls_to(self, method: str, url_prefix: str = "") -> list[RecordedCall]:
        return [c for c in self.calls if c.method == method and c.url.startswith(url_prefix)]

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: object = None,
        timeout: float | None = None,
    ) -> Result[HttpResponse, HttpError]:
        self.calls.append(
            RecordedCall(method, url, dict(headers or {}), json_body=json_body, timeout=timeout)
        )
        response = self._next(method, url)
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)

    def upload(
        self,
        method: str,
        url: str,
        source: Path,
        *,
        headers: dict[str, str] | None = None,
    ) -> Result[HttpResponse, HttpError]:
        self.calls.append(RecordedCall(method, url, dict(headers or {}), source=source))
        response = self._next(method, url)
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)

    def download(
        self,
        url: str,
        dest: Path,
        *,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Result[Path, HttpError]:
        self.calls.append(RecordedCall("GET", url, dict(headers or {}), timeout=timeout))
        response = self._next("GET", url)
        if isinstance(response, HttpError):
            return Err(response)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(response.body)
        return Ok(dest)
