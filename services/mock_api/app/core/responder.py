from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from starlette.responses import JSONResponse, Response
from starlette.types import Receive, Scope, Send

from ..transport import TransportUnavailable, abort_connection, transport_from_scope
from .faults import MockConfig, NetworkFault
from .state import ConfigStore

log = logging.getLogger(__name__)

# statuses that must not carry a body on the wire
_BODYLESS = (204, 304)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_envelope(config: MockConfig, method: str, path: str, timestamp: str) -> dict[str, Any]:
    message = f"Response with status {config.status_code}"
    if config.delay_ms > 0:
        message += f" after {config.delay_ms}ms delay"
    return {
        "status": config.outcome,
        "code": config.status_code,
        "delay": config.delay_ms,
        "networkError": config.network_fault.value,
        "message": message,
        "timestamp": timestamp,
        "method": method,
        "path": path,
    }


async def wait_for_disconnect(receive: Receive) -> None:
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            return


async def sleep_unless_disconnected(delay_s: float, receive: Receive) -> bool:
    """
    Sleep for `delay_s` without blocking the loop.

    Returns False if the peer disconnected first; the sleep is abandoned then.
    """
    sleeper = asyncio.ensure_future(asyncio.sleep(delay_s))
    watcher = asyncio.ensure_future(wait_for_disconnect(receive))
    try:
        done, _ = await asyncio.wait({sleeper, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        sleeper.cancel()
        watcher.cancel()
    return sleeper in done


class EnvelopeResponse(JSONResponse):
    """The normal reply, optionally held back by the configured delay."""

    def __init__(self, content: dict[str, Any], status_code: int, delay_s: float = 0.0):
        self.delay_s = delay_s
        super().__init__(content, status_code=status_code)

    def render(self, content: Any) -> bytes:
        if self.status_code in _BODYLESS:
            return b""
        return super().render(content)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self.delay_s > 0 and not await sleep_unless_disconnected(self.delay_s, receive):
            log.debug("peer left during %.3fs delay on %s; nothing sent", self.delay_s, scope.get("path"))
            return
        await super().__call__(scope, receive, send)


class HangResponse(Response):
    """Never writes anything. The request stays parked until the peer goes away."""

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await wait_for_disconnect(receive)
        log.debug("hung request on %s released by peer disconnect", scope.get("path"))


class AbortResponse(Response):
    """Tears the connection down at TCP level instead of answering."""

    def __init__(self, fault: NetworkFault):
        super().__init__()
        self.fault = fault

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        transport = transport_from_scope(scope)
        if transport is None:
            raise TransportUnavailable(
                f"cannot simulate '{self.fault.value}': server exposes no connection transport"
            )
        abort_connection(transport)
        # connection_lost arrives on the next loop iteration; don't send before it
        await wait_for_disconnect(receive)
        log.debug("connection for %s aborted (%s)", scope.get("path"), self.fault.value)


class MockResponder:
    def __init__(self, store: ConfigStore):
        self._store = store

    def respond(
        self,
        method: str,
        path: str,
        client: str | None = None,
        user_agent: str | None = None,
    ) -> Response:
        received_at = utc_timestamp()
        # one snapshot per request; later updates don't affect this one
        config = self._store.get()
        log.info(
            "%s %s from %s (user-agent: %s) config=%s",
            method, path, client or "unknown", user_agent or "n/a", config.to_wire(),
        )

        fault = config.network_fault
        if fault is NetworkFault.TIMEOUT:
            log.info("simulating timeout: no response will be sent")
            return HangResponse()
        if fault.aborts_connection:
            log.info("simulating connection %s", fault.value)
            return AbortResponse(fault)

        if config.delay_ms > 0:
            log.info("delaying response by %dms", config.delay_ms)
        log.info("responding with status %d", config.status_code)
        return EnvelopeResponse(
            build_envelope(config, method, path, received_at),
            status_code=config.wire_status_code,
            delay_s=config.delay_s,
        )
