"""FastAPI application wiring the ledgergate router, origin guard and upstream clients."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from ledgergate.bridge import StreamBridge, UpstreamConnector
from ledgergate.config import LedgergateConfig
from ledgergate.errors import LedgergateError
from ledgergate.forwarder import RpcForwarder
from ledgergate.guard import OriginGuardMiddleware
from ledgergate.models import GatewayFailure, NotFound
from ledgergate.router import router

LOG = logging.getLogger(__name__)


def create_app(
    config: LedgergateConfig | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
    connector: UpstreamConnector | None = None,
) -> FastAPI:
    """
    Build the gateway application.

    http_client and connector replace the upstream HTTP client and the
    upstream WebSocket connector, mainly for tests.
    """
    if config is None:
        config = LedgergateConfig()
    if http_client is None:
        http_client = httpx.AsyncClient()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        LOG.info("XRPL proxy ready on :%d", config.port)
        LOG.info("   HTTP upstream: %s", config.rpc_url)
        LOG.info("   WSS  upstream: %s", config.stream_url)
        try:
            yield
        finally:
            await app.extra["bridge"].shutdown()
            await http_client.aclose()

    app = FastAPI(title="ledgergate", lifespan=lifespan)
    app.extra["config"] = config
    app.extra["forwarder"] = RpcForwarder(http_client, config)
    app.extra["bridge"] = StreamBridge(config, connector)

    app.include_router(router)
    app.add_exception_handler(LedgergateError, ledgergate_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    # Added last so it wraps CORS handling too: denied origins stop here.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.allowed_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_credentials=False,
    )
    app.add_middleware(OriginGuardMiddleware, allowed_origins=config.allowed_origins)

    return app


async def ledgergate_error_handler(request: Request, exc: LedgergateError) -> JSONResponse:
    body = GatewayFailure(error=exc.error, detail=exc.detail)
    return JSONResponse(body.model_dump(), status_code=exc.status_code)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Unknown paths and known paths with the wrong method are both "not found".
    if exc.status_code in (404, 405):
        body = NotFound(path=request.url.path, method=request.method)
        return JSONResponse(body.model_dump(), status_code=404)
    failure = GatewayFailure(error="HTTP error", detail=str(exc.detail))
    return JSONResponse(failure.model_dump(), status_code=exc.status_code, headers=exc.headers)
