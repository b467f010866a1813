"""
Origin Guard

Admission control by declared Origin. Runs ahead of every route, for plain
HTTP requests and WebSocket upgrades alike, so a denied request never
reaches a handler or the upstream.
"""

import logging
from collections.abc import Collection

from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send
from starlette.websockets import WebSocketClose

from ledgergate.errors import OriginNotAllowed
from ledgergate.models import AdmissionDecision

LOG = logging.getLogger(__name__)

POLICY_VIOLATION = 1008


def check_origin(origin: str | None, allowed_origins: Collection[str]) -> AdmissionDecision:
    """
    Admit requests without an Origin (same-origin, curl, server-side clients)
    and requests whose Origin is exactly on the allow-list.
    """
    if not origin:
        return AdmissionDecision(origin=None, allowed=True)
    return AdmissionDecision(origin=origin, allowed=origin in allowed_origins)


class OriginGuardMiddleware:
    """Pure ASGI middleware rejecting requests from origins not on the allow-list."""

    def __init__(self, app: ASGIApp, allowed_origins: Collection[str]) -> None:
        self.app = app
        self.allowed_origins = frozenset(allowed_origins)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "WS")
        decision = check_origin(Headers(scope=scope).get("origin"), self.allowed_origins)
        if decision.allowed:
            LOG.info("[REQ] %s %s", method, scope["path"])
            await self.app(scope, receive, send)
            return

        denied = OriginNotAllowed(decision.origin or "")
        LOG.warning("Rejected %s %s: %s", method, scope["path"], denied.detail)

        if scope["type"] == "websocket":
            await WebSocketClose(code=POLICY_VIOLATION, reason=denied.error)(scope, receive, send)
            return

        response = JSONResponse(
            {"error": denied.error, "detail": denied.detail},
            status_code=denied.status_code,
        )
        await response(scope, receive, send)
