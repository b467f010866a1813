"""
FastAPI Router for the Ledgergate Endpoints

JSON-RPC passthrough, the read-only convenience endpoints and the
WebSocket tunnel. Envelopes are relayed as-is; the gateway does not
inspect their content.
"""

import asyncio
import json
import logging
import time
from collections.abc import Awaitable
from typing import Any

from fastapi import APIRouter, Request, WebSocket
from fastapi.responses import JSONResponse

from ledgergate.bridge import StreamBridge
from ledgergate.errors import ClientDisconnected, InvalidEnvelope, PayloadTooLarge, UpstreamError
from ledgergate.forwarder import RpcForwarder
from ledgergate.models import GatewayFailure, HealthStatus

LOG = logging.getLogger(__name__)

router = APIRouter(tags=["ledgergate"])


@router.get("/healthz", response_model=HealthStatus)
async def healthz() -> HealthStatus:
    return HealthStatus(ok=True, ts=time.time_ns() // 1_000_000)


@router.post("/")
async def rpc_passthrough(request: Request) -> JSONResponse:
    """Forward the posted JSON-RPC envelope upstream and return its answer."""
    forwarder: RpcForwarder = request.app.extra["forwarder"]
    envelope = await read_envelope(request, forwarder.config.max_body_bytes)
    return await relay(request, forwarder.forward(envelope), "Proxy request failed")


@router.get("/api/xrpl/ledger")
async def latest_ledger(request: Request) -> JSONResponse:
    forwarder: RpcForwarder = request.app.extra["forwarder"]
    return await relay(request, forwarder.latest_ledger(), "Ledger fetch failed")


@router.get("/api/xrpl/account/{account}")
async def account_info(request: Request, account: str) -> JSONResponse:
    forwarder: RpcForwarder = request.app.extra["forwarder"]
    return await relay(request, forwarder.account_info(account), "Account fetch failed")


@router.websocket("/ws")
async def stream_tunnel(websocket: WebSocket) -> None:
    """Bridge the client WebSocket to the upstream node until either side closes."""
    bridge: StreamBridge = websocket.app.extra["bridge"]
    await bridge.handle_connection(websocket)


async def read_envelope(request: Request, limit: int) -> Any:
    """
    Read and decode the request body, enforcing the size cap before decoding.

    An empty body is treated as an empty object.

    Raises:
        PayloadTooLarge: If the declared or actual body size exceeds limit
        InvalidEnvelope: If the body is not valid JSON
    """
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLarge(limit)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadTooLarge(limit)

    if not body.strip():
        return {}

    try:
        return json.loads(body, parse_constant=reject_constant)
    except ValueError as exc:
        raise InvalidEnvelope(str(exc)) from exc


def reject_constant(token: str) -> Any:
    # NaN, Infinity and -Infinity are not JSON.
    raise InvalidEnvelope(f"Unexpected token {token}")


async def relay(request: Request, call: Awaitable[Any], failure: str) -> JSONResponse:
    """Await an upstream call and render its result, or a gateway failure labelled failure."""
    try:
        data = await until_disconnected(request, call)
    except UpstreamError as exc:
        LOG.error("[%s] %s", failure, exc.detail)
        body = GatewayFailure(error=failure, detail=exc.detail)
        return JSONResponse(body.model_dump(), status_code=exc.status_code)
    return JSONResponse(content=data)


async def until_disconnected(request: Request, call: Awaitable[Any]) -> Any:
    """
    Run call, cancelling it if the client disconnects first.

    Raises:
        ClientDisconnected: If the client went away before the call finished
    """
    work = asyncio.ensure_future(call)
    watcher = asyncio.ensure_future(wait_for_disconnect(request))
    try:
        done, _ = await asyncio.wait({work, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (work, watcher):
            if not task.done():
                task.cancel()

    if work in done:
        return work.result()

    await asyncio.gather(work, return_exceptions=True)
    LOG.info("Client disconnected from %s %s, upstream call cancelled", request.method, request.url.path)
    raise ClientDisconnected("Client disconnected before the upstream answered")


async def wait_for_disconnect(request: Request) -> None:
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return
