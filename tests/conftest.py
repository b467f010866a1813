"""Pytest fixtures: a gateway app wired to stub upstreams."""

import json
from collections.abc import Callable, Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from ledgergate import LedgergateConfig, create_app

ALLOWED_ORIGIN = "https://good.example"
RPC_URL = "http://rpc.upstream.test/"


def echo_result(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"result": json.loads(request.content)})


class StubUpstream:
    """httpx.MockTransport handler recording every request it answers."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response] = echo_result) -> None:
        self.respond = respond
        self.calls: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        return self.respond(request)

    def envelopes(self) -> list[object]:
        return [json.loads(request.content) for request in self.calls]


class RefusingConnector:
    """Upstream WebSocket connector that records attempts and always fails."""

    def __init__(self) -> None:
        self.urls: list[str] = []

    async def __call__(self, url: str):
        self.urls.append(url)
        raise ConnectionRefusedError(f"refused: {url}")


@pytest.fixture
def config() -> LedgergateConfig:
    return LedgergateConfig(
        rpc_url=RPC_URL,
        stream_url="ws://stream.upstream.test/",
        allowed_origins=(ALLOWED_ORIGIN,),
        max_body_bytes=1024,
    )


@pytest.fixture
def upstream() -> StubUpstream:
    return StubUpstream()


@pytest.fixture
def connector() -> RefusingConnector:
    return RefusingConnector()


@pytest.fixture
def client(config, upstream, connector) -> Iterator[TestClient]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    app = create_app(config, http_client=http_client, connector=connector)
    with TestClient(app) as test_client:
        yield test_client
