"""One POST of a Conversions API request body, over requests or a raw socket."""

import json
import logging
import socket
import ssl
from typing import Any, Dict, Tuple
from urllib.parse import urlsplit

import requests

from . import __version__
from .errors import ApiError, ConfigError, NetworkError, ParseError


logger = logging.getLogger(__name__)

USER_AGENT = f"meta-tracking/{__version__}"
RECV_BUFFER = 65536


def default_headers() -> Dict[str, str]:
    return {
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }


def _error_details(text: str) -> Tuple[str | None, str | None]:
    try:
        parsed = json.loads(text)
    except ValueError:
        return None, None
    error = parsed.get("error") if isinstance(parsed, dict) else None
    if not isinstance(error, dict):
        return None, None
    return error.get("message"), error.get("fbtrace_id")


def interpret_response(status: int, body: bytes) -> Dict[str, Any]:
    """Shared by every transport so callers see the same result shape."""

    text = body.decode("utf-8", errors="replace") if body else ""

    if not 200 <= status < 300:
        message, trace_id = _error_details(text)
        raise ApiError(message or f"HTTP {status}", status=status, trace_id=trace_id, details=text[:1000])

    if not text.strip():
        return {}

    try:
        parsed = json.loads(text)
    except ValueError as exc:
        raise ParseError(f"Failed to parse response: {text[:200]}", details=text) from exc

    if not isinstance(parsed, dict):
        raise ParseError(f"Expected a JSON object, got {type(parsed).__name__}", details=text)

    return parsed


class Transport:
    name = "base"

    def __init__(self, url: str, *, timeout: float = 6, headers: Dict[str, str] | None = None):
        self.url = url
        self.timeout = timeout
        self.headers = headers or default_headers()

    def send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError


class RequestsTransport(Transport):
    name = "requests"

    def send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = requests.post(self.url, json=payload, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise NetworkError(f"Request to {urlsplit(self.url).netloc} failed: {exc}", details=exc) from exc

        return interpret_response(response.status_code, response.content)


class SocketTransport(Transport):
    """HTTP/1.1 over a plain or TLS socket, framed by hand.

    Pass ``ssl_context`` to control certificate verification.
    """

    name = "socket"

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 6,
        headers: Dict[str, str] | None = None,
        ssl_context: ssl.SSLContext | None = None,
    ):
        super().__init__(url, timeout=timeout, headers=headers)
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ConfigError(f"Unsupported endpoint URL: {url}")

        self.use_tls = parts.scheme == "https"
        self.host = parts.hostname
        default_port = 443 if self.use_tls else 80
        self.port = parts.port or default_port
        self.host_header = self.host if self.port == default_port else f"{self.host}:{self.port}"
        self.path = (parts.path or "/") + (f"?{parts.query}" if parts.query else "")
        self.ssl_context = ssl_context or ssl.create_default_context()

    def frame_request(self, body: bytes) -> bytes:
        lines = [f"POST {self.path} HTTP/1.1", f"Host: {self.host_header}"]
        lines.extend(f"{name}: {value}" for name, value in self.headers.items())
        lines.append(f"Content-Length: {len(body)}")
        lines.append("Connection: close")
        return ("\r\n".join(lines) + "\r\n\r\n").encode("iso-8859-1") + body

    def send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        request = self.frame_request(json.dumps(payload).encode("utf-8"))

        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout) as raw:
                if self.use_tls:
                    with self.ssl_context.wrap_socket(raw, server_hostname=self.host) as sock:
                        raw_response = self._exchange(sock, request)
                else:
                    raw_response = self._exchange(raw, request)
        except OSError as exc:
            raise NetworkError(f"Request to {self.host_header} failed: {exc}", details=exc) from exc

        status, _, body = parse_http_response(raw_response)
        return interpret_response(status, body)

    @staticmethod
    def _exchange(sock: socket.socket, request: bytes) -> bytes:
        sock.sendall(request)
        chunks = []
        while True:
            chunk = sock.recv(RECV_BUFFER)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)


def parse_http_response(raw: bytes) -> Tuple[int, Dict[str, str], bytes]:
    head, separator, body = raw.partition(b"\r\n\r\n")
    if not separator:
        raise NetworkError("Connection closed before a complete HTTP response was received")

    lines = head.decode("iso-8859-1").split("\r\n")
    status_parts = lines[0].split(" ", 2)
    if len(status_parts) < 2 or not status_parts[0].startswith("HTTP/"):
        raise NetworkError(f"Malformed HTTP status line: {lines[0][:100]}")
    try:
        status = int(status_parts[1])
    except ValueError as exc:
        raise NetworkError(f"Malformed HTTP status line: {lines[0][:100]}") from exc

    headers: Dict[str, str] = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()

    if "chunked" in headers.get("transfer-encoding", "").lower():
        body = _dechunk(body)
    elif "content-length" in headers:
        try:
            body = body[: int(headers["content-length"])]
        except ValueError:
            pass

    return status, headers, body


def _dechunk(data: bytes) -> bytes:
    out = bytearray()
    pos = 0
    while True:
        line_end = data.find(b"\r\n", pos)
        if line_end == -1:
            raise NetworkError("Truncated chunked response")
        try:
            size = int(data[pos:line_end].split(b";")[0].strip() or b"0", 16)
        except ValueError as exc:
            raise NetworkError("Malformed chunk size in response") from exc
        if size == 0:
            return bytes(out)
        start = line_end + 2
        end = start + size
        if end > len(data):
            raise NetworkError("Truncated chunked response")
        out += data[start:end]
        pos = end + 2


TRANSPORTS = {
    "auto": RequestsTransport,
    "requests": RequestsTransport,
    "socket": SocketTransport,
}


def select_transport(config) -> Transport:
    """Pick the transport once, from ``config.transport``."""

    try:
        transport_cls = TRANSPORTS[config.transport]
    except KeyError as exc:
        raise ConfigError(f"Unknown transport: {config.transport}") from exc

    transport = transport_cls(config.endpoint_url, timeout=config.timeout, headers=default_headers())
    logger.debug("Meta CAPI transport selected: %s", transport.name)
    return transport
