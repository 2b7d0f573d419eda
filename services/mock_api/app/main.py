import logging
import os
from typing import Any

import uvicorn
from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from services.mock_api.app.core.responder import MockResponder
from services.mock_api.app.core.state import ConfigStore, InvalidConfiguration
from services.mock_api.app.transport import FaultAwareH11Protocol, TransportUnavailable

HTTP_HOST = os.getenv("MOCK_HTTP_HOST", "127.0.0.1")
HTTP_PORT = int(os.getenv("MOCK_HTTP_PORT", "3000"))
LOG_LEVEL = os.getenv("MOCK_LOG_LEVEL", "info")

# hung requests never finish on their own; stop waiting for them on shutdown
SHUTDOWN_GRACE_S = int(os.getenv("MOCK_SHUTDOWN_GRACE_S", "5"))

log = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE",
    "Access-Control-Allow-Headers": "Content-Type",
}


class PermissiveCORSMiddleware:
    """Stamps the cross-origin headers on every response, preflight or not."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in CORS_HEADERS.items():
                    headers[name] = value
            await send(message)

        await self.app(scope, receive, send_with_cors)


class MockEndpoint:
    """ASGI endpoint behind /api; hands each request to the responder."""

    def __init__(self, responder: MockResponder):
        self.responder = responder

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        client = f"{request.client.host}:{request.client.port}" if request.client else None
        response = self.responder.respond(
            request.method,
            request.url.path,
            client=client,
            user_agent=request.headers.get("user-agent"),
        )
        await response(scope, receive, send)


def build_api(store: ConfigStore) -> FastAPI:
    responder = MockResponder(store)

    app = FastAPI(title="Mock API", version="0.1.0")
    app.state.store = store
    app.state.responder = responder

    @app.exception_handler(TransportUnavailable)
    async def transport_unavailable(request: Request, exc: TransportUnavailable):
        log.error("fault simulation failed for %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    # an ASGI endpoint gets no method filter from the router: every verb, even PURGE
    app.add_route("/api", MockEndpoint(responder), include_in_schema=False)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/config")
    def get_config():
        return store.get().to_wire()

    @app.post("/config")
    def update_config(payload: dict[str, Any] | None = Body(None)):
        try:
            config = store.update(payload or {})
        except InvalidConfiguration as e:
            raise HTTPException(
                status_code=400,
                detail={"error": "InvalidConfiguration", "field": e.field, "message": e.reason},
            )
        return {"message": "Configuration updated", "config": config.to_wire()}

    @app.post("/config/reset")
    def reset_config():
        config = store.reset()
        return {"message": "Configuration reset", "config": config.to_wire()}

    return app


def create_app(store: ConfigStore | None = None) -> ASGIApp:
    # outermost, so even unhandled 500s from the error middleware carry the headers
    return PermissiveCORSMiddleware(build_api(store or ConfigStore()))


app = create_app()


def serve(target: ASGIApp = app, host: str = HTTP_HOST, port: int = HTTP_PORT) -> None:
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = uvicorn.Config(
        target,
        host=host,
        port=port,
        http=FaultAwareH11Protocol,
        log_level=LOG_LEVEL,
        timeout_graceful_shutdown=SHUTDOWN_GRACE_S,
    )
    uvicorn.Server(config).run()


if __name__ == "__main__":
    serve()
