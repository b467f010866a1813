"""RPC forwarder behaviour against a stubbed upstream."""

import asyncio
import time

import httpx
import pytest

from ledgergate import InvalidEnvelope, LedgergateConfig, RpcForwarder, UpstreamError, UpstreamTimeout

from .conftest import RPC_URL, StubUpstream


def make_forwarder(config, upstream: StubUpstream) -> RpcForwarder:
    return RpcForwarder(httpx.AsyncClient(transport=httpx.MockTransport(upstream)), config)


@pytest.mark.asyncio
async def test_forward_posts_envelope_to_rpc_url(config, upstream):
    forwarder = make_forwarder(config, upstream)
    envelope = {"method": "server_info", "params": [{}], "id": 7}

    result = await forwarder.forward(envelope)

    assert result == {"result": envelope}
    assert len(upstream.calls) == 1
    request = upstream.calls[0]
    assert request.method == "POST"
    assert str(request.url) == RPC_URL
    assert request.headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_forward_does_not_inspect_upstream_error_field(config):
    body = {"result": {"error": "actNotFound", "status": "error"}}
    upstream = StubUpstream(lambda request: httpx.Response(200, json=body))

    assert await make_forwarder(config, upstream).forward({"method": "account_info"}) == body


@pytest.mark.asyncio
async def test_forward_accepts_batch_envelopes(config, upstream):
    batch = [{"method": "ledger"}, {"method": "fee"}]
    assert await make_forwarder(config, upstream).forward(batch) == {"result": batch}


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [301, 400, 500, 503])
async def test_non_2xx_is_a_failure_even_with_json_body(config, status):
    upstream = StubUpstream(lambda request: httpx.Response(status, json={"error": "nope"}))

    with pytest.raises(UpstreamError) as info:
        await make_forwarder(config, upstream).forward({"method": "ledger"})

    assert info.value.upstream_status == status
    assert info.value.detail == f"Upstream HTTP {status}"
    assert len(upstream.calls) == 1


@pytest.mark.asyncio
async def test_timeout_raises_without_retry(config):
    def respond(request):
        raise httpx.ReadTimeout("timed out", request=request)

    upstream = StubUpstream(respond)
    with pytest.raises(UpstreamTimeout) as info:
        await make_forwarder(config, upstream).forward({"method": "ledger"})

    assert info.value.status_code == 502
    assert "20.0s" in info.value.detail
    assert len(upstream.calls) == 1


@pytest.mark.asyncio
async def test_connection_refused_raises(config):
    def respond(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError) as info:
        await make_forwarder(config, StubUpstream(respond)).forward({"method": "ledger"})

    assert "ConnectError" in info.value.detail
    assert not isinstance(info.value, UpstreamTimeout)


@pytest.mark.asyncio
async def test_malformed_body_raises(config):
    upstream = StubUpstream(lambda request: httpx.Response(200, content=b"<html>oops</html>"))

    with pytest.raises(UpstreamError, match="Malformed upstream response"):
        await make_forwarder(config, upstream).forward({"method": "ledger"})


@pytest.mark.asyncio
async def test_latest_ledger_envelope(config, upstream):
    await make_forwarder(config, upstream).latest_ledger()

    assert upstream.envelopes() == [{"method": "ledger", "params": [{"ledger_index": "validated"}]}]


@pytest.mark.asyncio
async def test_account_info_envelope(config, upstream):
    await make_forwarder(config, upstream).account_info("rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh")

    assert upstream.envelopes() == [
        {
            "method": "account_info",
            "params": [{"account": "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh", "ledger_index": "validated"}],
        }
    ]


@pytest.mark.asyncio
async def test_unencodable_envelope_is_rejected_before_sending(config, upstream):
    with pytest.raises(InvalidEnvelope):
        await make_forwarder(config, upstream).forward({"method": "ledger", "x": float("nan")})

    assert upstream.calls == []


@pytest.mark.asyncio
async def test_timeout_bounds_a_slowly_trickled_body():
    stop = asyncio.Event()

    async def drip(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            await reader.readuntil(b"\r\n\r\n")
            writer.write(
                b"HTTP/1.1 200 OK\r\n"
                b"Content-Type: application/json\r\n"
                b"Content-Length: 1000\r\n\r\n"
            )
            while not stop.is_set():
                writer.write(b" ")
                await writer.drain()
                await asyncio.sleep(0.2)
        except (ConnectionError, asyncio.IncompleteReadError):
            pass
        finally:
            writer.close()

    server = await asyncio.start_server(drip, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    config = LedgergateConfig(rpc_url=f"http://127.0.0.1:{port}/", rpc_timeout_seconds=1.0)

    try:
        async with httpx.AsyncClient(trust_env=False) as http:
            forwarder = RpcForwarder(http, config)
            started = time.monotonic()
            with pytest.raises(UpstreamTimeout):
                await forwarder.forward({"method": "ledger"})
            elapsed = time.monotonic() - started
    finally:
        stop.set()
        server.close()
        await server.wait_closed()

    assert elapsed < 3.0
