"""
Stream Bridge

Tunnels a client WebSocket to the upstream ledger node's WebSocket.
Frames are relayed as-is in both directions; the bridge never inspects
or reorders them. When either side goes away, the other is closed.
"""

import asyncio
import logging
import uuid
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING

from starlette.websockets import WebSocketState
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK
from websockets.protocol import State

if TYPE_CHECKING:
    from starlette.websockets import WebSocket
    from websockets.asyncio.client import ClientConnection

from ledgergate.config import LedgergateConfig
from ledgergate.models import BridgeState

LOG = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
INTERNAL_ERROR = 1011

# Client close codes that count as a clean goodbye rather than a failure.
CLEAN_CLOSE_CODES = frozenset({1000, 1001, 1005})

UpstreamConnector = Callable[[str], Awaitable["ClientConnection"]]


def default_connector(config: LedgergateConfig) -> UpstreamConnector:
    """Connector opening upstream sessions with the configured limits."""
    return partial(
        connect,
        open_timeout=config.stream_open_timeout_seconds,
        close_timeout=config.stream_close_timeout_seconds,
        max_size=config.stream_max_frame_bytes,
    )


@dataclass
class BridgeSession:
    """
    One client/upstream tunnel.

    The session owns both connections. Whichever relay direction finishes
    first decides the close code, and teardown() closes both ends with it.
    """

    client: "WebSocket"
    connector: UpstreamConnector
    upstream_url: str
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    upstream: "ClientConnection | None" = field(default=None, init=False)
    state: BridgeState = field(default=BridgeState.CONNECTING, init=False)
    # Client messages read while dialing, relayed first once open.
    backlog: deque[dict] = field(default_factory=deque, init=False)

    async def run(self) -> None:
        """Connect upstream, relay until either side ends, then tear down."""
        code = INTERNAL_ERROR
        try:
            code = await self.open()
            if self.state is BridgeState.OPEN:
                code = await self.relay()
        finally:
            await self.teardown(code)

    async def open(self) -> int:
        """
        Dial upstream while watching the client.

        If the client leaves first the dial is abandoned. Returns the close
        code to use when the session does not open.
        """
        dialing = asyncio.ensure_future(self.connector(self.upstream_url))
        watching = asyncio.ensure_future(self.watch_client())
        try:
            done, _ = await asyncio.wait({dialing, watching}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (dialing, watching):
                if not task.done():
                    task.cancel()
            await asyncio.gather(dialing, watching, return_exceptions=True)

        if watching in done:
            if dialing in done and not dialing.cancelled() and dialing.exception() is None:
                self.upstream = dialing.result()
            LOG.info("[ws %s] client left while connecting", self.session_id)
            return watching.result()

        try:
            self.upstream = dialing.result()
        except Exception:
            LOG.exception("[ws %s] upstream connection to %s failed", self.session_id, self.upstream_url)
            return INTERNAL_ERROR

        self.state = BridgeState.OPEN
        LOG.info("[ws %s] upstream connected", self.session_id)
        return NORMAL_CLOSURE

    async def watch_client(self) -> int:
        """Hold client frames in the backlog until it disconnects. Returns the upstream close code."""
        try:
            while True:
                message = await self.client.receive()
                if message["type"] == "websocket.disconnect":
                    return self.client_close_code(message)
                self.backlog.append(message)
        except Exception:
            LOG.exception("[ws %s] client failed while connecting", self.session_id)
            return INTERNAL_ERROR

    def client_close_code(self, message: dict) -> int:
        code = message.get("code", NORMAL_CLOSURE)
        if code in CLEAN_CLOSE_CODES:
            LOG.info("[ws %s] client closed (%s)", self.session_id, code)
            return NORMAL_CLOSURE
        LOG.warning("[ws %s] client dropped (%s)", self.session_id, code)
        return INTERNAL_ERROR

    async def relay(self) -> int:
        pumps = [
            asyncio.create_task(self.client_to_upstream(), name=f"bridge-{self.session_id}-tx"),
            asyncio.create_task(self.upstream_to_client(), name=f"bridge-{self.session_id}-rx"),
        ]
        try:
            done, _ = await asyncio.wait(pumps, return_when=asyncio.FIRST_COMPLETED)
            return max(task.result() for task in done)
        finally:
            for task in pumps:
                task.cancel()
            await asyncio.gather(*pumps, return_exceptions=True)

    @property
    def upstream_writable(self) -> bool:
        return self.upstream is not None and self.upstream.state is State.OPEN

    @property
    def client_writable(self) -> bool:
        return (
            self.client.client_state is WebSocketState.CONNECTED
            and self.client.application_state is WebSocketState.CONNECTED
        )

    async def client_to_upstream(self) -> int:
        """Relay client frames upstream. Returns the close code for the upstream side."""
        try:
            while True:
                message = self.backlog.popleft() if self.backlog else await self.client.receive()
                if message["type"] == "websocket.disconnect":
                    return self.client_close_code(message)

                if message.get("text") is not None:
                    frame: str | bytes = message["text"]
                elif message.get("bytes") is not None:
                    frame = message["bytes"]
                else:
                    continue

                if self.upstream_writable:
                    await self.upstream.send(frame)
                else:
                    LOG.debug("[ws %s] upstream not writable, dropping client frame", self.session_id)
        except ConnectionClosedOK:
            return NORMAL_CLOSURE
        except ConnectionClosedError as exc:
            LOG.warning("[ws %s] upstream error while sending: %s", self.session_id, exc)
            return INTERNAL_ERROR
        except Exception:
            LOG.exception("[ws %s] client relay failed", self.session_id)
            return INTERNAL_ERROR

    async def upstream_to_client(self) -> int:
        """Relay upstream frames to the client. Returns the close code for the client side."""
        try:
            async for frame in self.upstream:
                if not self.client_writable:
                    LOG.debug("[ws %s] client not writable, dropping upstream frame", self.session_id)
                    continue
                if isinstance(frame, bytes):
                    await self.client.send_bytes(frame)
                else:
                    await self.client.send_text(frame)
        except ConnectionClosedError as exc:
            LOG.warning("[ws %s] upstream error: %s", self.session_id, exc)
            return INTERNAL_ERROR
        except Exception:
            LOG.exception("[ws %s] upstream relay failed", self.session_id)
            return INTERNAL_ERROR

        LOG.info("[ws %s] upstream closed", self.session_id)
        return NORMAL_CLOSURE

    async def teardown(self, code: int) -> None:
        """Close both connections with the same code. Safe to call more than once."""
        if self.state in (BridgeState.CLOSING, BridgeState.CLOSED):
            return
        self.state = BridgeState.CLOSING
        LOG.info("[ws %s] closing bridge with code %d", self.session_id, code)

        if self.upstream is not None:
            try:
                await self.upstream.close(code=code)
            except Exception:
                LOG.warning("[ws %s] error closing upstream", self.session_id, exc_info=True)

        if self.client_writable:
            try:
                await self.client.close(code=code)
            except Exception:
                LOG.warning("[ws %s] error closing client", self.session_id, exc_info=True)

        self.state = BridgeState.CLOSED


@dataclass
class StreamBridge:
    """
    Accepts client WebSockets and runs one BridgeSession per connection.

    Usage:
        bridge = StreamBridge(config)
        await bridge.handle_connection(websocket)
    """

    config: LedgergateConfig = field(default_factory=LedgergateConfig)
    connector: UpstreamConnector | None = None
    active_sessions_set: set[str] = field(default_factory=set, init=False)

    def __post_init__(self) -> None:
        if self.connector is None:
            self.connector = default_connector(self.config)

    @property
    def active_sessions(self) -> list[str]:
        """Ids of currently open sessions."""
        return list(self.active_sessions_set)

    async def handle_connection(self, websocket: "WebSocket") -> None:
        """
        Handle a client WebSocket for its whole lifetime.

        This method blocks until both connections are closed.
        """
        await websocket.accept()

        session = BridgeSession(
            client=websocket,
            connector=self.connector,
            upstream_url=self.config.stream_url,
        )
        self.active_sessions_set.add(session.session_id)
        LOG.info("[ws %s] client connected, dialing %s", session.session_id, self.config.stream_url)

        try:
            await session.run()
        finally:
            self.active_sessions_set.discard(session.session_id)
            LOG.info("[ws %s] session %s", session.session_id, session.state)

    async def shutdown(self) -> None:
        """Log sessions still open at shutdown; their tasks are cancelled by the server."""
        if self.active_sessions_set:
            LOG.info("Shutting down with %d open bridge session(s)", len(self.active_sessions_set))
