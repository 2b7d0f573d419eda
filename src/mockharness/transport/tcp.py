from __future__ import annotations
import socket
import time
from dataclasses import dataclass
from enum import Enum

@dataclass(frozen=True)
class TcpEndpoint:
    host: str
    port: int

class ProbeOutcome(str, Enum):
    RESPONSE = "response"   # a status line came back
    RESET = "reset"         # peer sent RST
    CLOSED = "closed"       # orderly close, nothing (complete) received
    TIMEOUT = "timeout"     # nothing at all within the probe timeout

@dataclass(frozen=True)
class ProbeResult:
    outcome: ProbeOutcome
    status_line: str | None
    received: bytes
    elapsed_s: float

class HttpProbe:
    """
    Speaks just enough HTTP/1.1 over a raw socket to tell apart what the
    server did at transport level, which an HTTP client library hides.
    """

    def __init__(self, endpoint: TcpEndpoint, timeout_s: float = 2.0):
        self._endpoint = endpoint
        self._timeout_s = timeout_s

    def _request_bytes(self, method: str, path: str) -> bytes:
        return (
            f"{method} {path} HTTP/1.1\r\n"
            f"Host: {self._endpoint.host}:{self._endpoint.port}\r\n"
            "User-Agent: mockharness-probe\r\n"
            "Content-Length: 0\r\n"
            "Connection: close\r\n"
            "\r\n"
        ).encode("ascii")

    def probe(self, method: str = "GET", path: str = "/api") -> ProbeResult:
        buf = bytearray()
        start = time.monotonic()

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(self._timeout_s)
            sock.connect((self._endpoint.host, self._endpoint.port))
            sock.sendall(self._request_bytes(method, path))

            # read until the status line is complete or the connection ends
            try:
                while b"\r\n" not in buf:
                    chunk = sock.recv(4096)
                    if not chunk:
                        return self._result(ProbeOutcome.CLOSED, buf, start)
                    buf.extend(chunk)
            except ConnectionResetError:
                return self._result(ProbeOutcome.RESET, buf, start)
            except socket.timeout:
                return self._result(ProbeOutcome.TIMEOUT, buf, start)

        return self._result(ProbeOutcome.RESPONSE, buf, start)

    @staticmethod
    def _result(outcome: ProbeOutcome, buf: bytearray, start: float) -> ProbeResult:
        status_line = None
        if outcome is ProbeOutcome.RESPONSE:
            status_line = bytes(buf).split(b"\r\n", 1)[0].decode("latin-1")
        return ProbeResult(
            outcome=outcome,
            status_line=status_line,
            received=bytes(buf),
            elapsed_s=time.monotonic() - start,
        )
