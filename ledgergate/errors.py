"""Exceptions raised by ledgergate components."""


class LedgergateError(Exception):
    """Base class for every error the gateway turns into a JSON response."""

    status_code: int = 500
    error: str = "Gateway error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class OriginNotAllowed(LedgergateError):
    status_code = 403
    error = "Origin not allowed"

    def __init__(self, origin: str) -> None:
        super().__init__(f"Blocked by CORS: {origin}")
        self.origin = origin


class InvalidEnvelope(LedgergateError):
    status_code = 400
    error = "Invalid JSON"


class PayloadTooLarge(LedgergateError):
    status_code = 413
    error = "Payload too large"

    def __init__(self, limit: int) -> None:
        super().__init__(f"Request body exceeds {limit} bytes")
        self.limit = limit


class UpstreamError(LedgergateError):
    """The upstream RPC call failed: transport error, non-2xx status or bad body."""

    status_code = 502
    error = "Proxy request failed"

    def __init__(self, detail: str, *, upstream_status: int | None = None) -> None:
        super().__init__(detail)
        self.upstream_status = upstream_status


class UpstreamTimeout(UpstreamError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"Upstream did not respond within {timeout}s")
        self.timeout = timeout


class ClientDisconnected(LedgergateError):
    status_code = 499
    error = "Client closed request"
