"""Data models shared by the gateway's data paths."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class AdmissionDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    origin: str | None = None
    allowed: bool


class BridgeState(StrEnum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class HealthStatus(BaseModel):
    ok: bool = True
    ts: int


class GatewayFailure(BaseModel):
    error: str
    detail: str


class NotFound(BaseModel):
    error: str = "Not found"
    path: str
    method: str
