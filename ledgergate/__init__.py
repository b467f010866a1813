"""
ledgergate - XRPL JSON-RPC and WebSocket gateway

Forwards JSON-RPC envelopes to an upstream ledger node over HTTP and
tunnels client WebSockets to the node's streaming endpoint, behind an
origin allow-list.

The gateway does NOT inspect payloads - it simply relays them.
"""

from ledgergate.app import create_app
from ledgergate.bridge import BridgeSession, StreamBridge
from ledgergate.config import LedgergateConfig
from ledgergate.errors import (
    ClientDisconnected,
    InvalidEnvelope,
    LedgergateError,
    OriginNotAllowed,
    PayloadTooLarge,
    UpstreamError,
    UpstreamTimeout,
)
from ledgergate.forwarder import RpcForwarder
from ledgergate.guard import OriginGuardMiddleware, check_origin
from ledgergate.models import AdmissionDecision, BridgeState

__all__ = [
    # App
    "create_app",
    "LedgergateConfig",
    # Data paths
    "RpcForwarder",
    "StreamBridge",
    "BridgeSession",
    # Admission
    "OriginGuardMiddleware",
    "check_origin",
    # Models
    "AdmissionDecision",
    "BridgeState",
    # Errors
    "LedgergateError",
    "OriginNotAllowed",
    "InvalidEnvelope",
    "PayloadTooLarge",
    "UpstreamError",
    "UpstreamTimeout",
    "ClientDisconnected",
]

__version__ = "0.1.0"
