from __future__ import annotations
import asyncio
import logging
import socket
import struct

from starlette.types import ASGIApp, Receive, Scope, Send
from uvicorn.protocols.http.h11_impl import H11Protocol

log = logging.getLogger(__name__)

TRANSPORT_SCOPE_KEY = "mock_api.transport"

# l_onoff=1, l_linger=0: close() sends RST instead of FIN
_LINGER_RESET = struct.pack("ii", 1, 0)


class TransportUnavailable(RuntimeError):
    pass


def bind_transport(app: ASGIApp, transport: asyncio.Transport) -> ASGIApp:
    """Wrap `app` so every HTTP scope on this connection carries its transport."""

    async def app_with_transport(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            scope.setdefault("extensions", {})[TRANSPORT_SCOPE_KEY] = transport
        await app(scope, receive, send)

    return app_with_transport


class FaultAwareH11Protocol(H11Protocol):
    """
    uvicorn's h11 protocol, plus access to the raw connection from the app.

    ASGI gives an application no handle on the socket, yet the reset/refuse
    faults have to tear the TCP connection down themselves.
    """

    def connection_made(self, transport: asyncio.Transport) -> None:
        super().connection_made(transport)
        self.app = bind_transport(self.app, transport)


def transport_from_scope(scope: Scope) -> asyncio.Transport | None:
    return (scope.get("extensions") or {}).get(TRANSPORT_SCOPE_KEY)


def abort_connection(transport: asyncio.Transport) -> None:
    """Hard-close the connection: no pending writes flushed, peer sees a reset."""
    sock = transport.get_extra_info("socket")
    if sock is not None:
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, _LINGER_RESET)
        except OSError as e:
            # peer already gone; abort() below still frees the transport
            log.debug("could not set SO_LINGER before abort: %s", e)
    transport.abort()
