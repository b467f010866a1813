"""
RPC Forwarder

Sends JSON-RPC envelopes to the upstream ledger node over HTTP.
The forwarder is content-agnostic: it never inspects or rewrites the
envelope or the upstream's result/error convention.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from ledgergate.config import LedgergateConfig
from ledgergate.errors import InvalidEnvelope, UpstreamError, UpstreamTimeout

LOG = logging.getLogger(__name__)


def ledger_request() -> dict[str, Any]:
    return {"method": "ledger", "params": [{"ledger_index": "validated"}]}


def account_info_request(address: str) -> dict[str, Any]:
    return {
        "method": "account_info",
        "params": [{"account": address, "ledger_index": "validated"}],
    }


@dataclass
class RpcForwarder:
    """
    Forwards decoded envelopes to the upstream JSON-RPC endpoint.

    Usage:
        forwarder = RpcForwarder(httpx.AsyncClient())
        result = await forwarder.forward({"method": "server_info", "params": [{}]})
    """

    http: httpx.AsyncClient
    config: LedgergateConfig = field(default_factory=LedgergateConfig)

    async def forward(self, envelope: Any) -> Any:
        """
        Forward one envelope and return the decoded upstream body.

        Exactly one upstream attempt is made.

        Raises:
            InvalidEnvelope: If the envelope cannot be encoded as strict JSON
            UpstreamTimeout: If the upstream does not answer within rpc_timeout_seconds
            UpstreamError: On transport failure, a non-2xx status or a body
                that is not JSON
        """
        LOG.debug("Forwarding envelope to %s", self.config.rpc_url)

        try:
            content = json.dumps(envelope, allow_nan=False)
        except (TypeError, ValueError) as exc:
            raise InvalidEnvelope(f"Envelope is not JSON serializable: {exc}") from exc

        # httpx timeouts apply per phase; the deadline bounds the whole exchange.
        try:
            async with asyncio.timeout(self.config.rpc_timeout_seconds):
                response = await self.http.post(
                    self.config.rpc_url,
                    content=content,
                    headers={"Content-Type": "application/json"},
                    timeout=self.config.rpc_timeout_seconds,
                )
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise UpstreamTimeout(self.config.rpc_timeout_seconds) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            raise UpstreamError(
                f"Upstream HTTP {response.status_code}",
                upstream_status=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"Malformed upstream response: {exc}") from exc

    async def latest_ledger(self) -> Any:
        """Fetch the latest validated ledger."""
        return await self.forward(ledger_request())

    async def account_info(self, address: str) -> Any:
        """Fetch account info for an address at the latest validated ledger."""
        return await self.forward(account_info_request(address))
