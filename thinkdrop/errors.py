"""Exception types shared across the ThinkDrop client."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .rpc.envelope import RpcResult


class ThinkDropError(RuntimeError):
    """Base exception for the ThinkDrop client."""


class UnknownServiceError(ThinkDropError):
    """Raised when a call names a service with no configured endpoint."""

    def __init__(self, service: str) -> None:
        super().__init__(f"unknown service {service!r}; add it to the service URL map")
        self.service = service


class RpcTimeoutError(ThinkDropError):
    """Raised when a service does not answer within the call deadline."""


class RpcTransportError(ThinkDropError):
    """Raised on network failures and HTTP error statuses."""


class RemoteFailureError(ThinkDropError):
    """Raised when a decoded response body signals failure."""

    def __init__(self, message: str, result: "RpcResult | None" = None) -> None:
        super().__init__(message)
        self.result = result


class ConnectionExhaustedError(ThinkDropError):
    """Raised when the bridge reconnect ceiling has been reached."""


class BridgeNotConnectedError(ThinkDropError):
    """Raised when a message is sent while the bridge is not open."""


class ClipboardUnavailable(ThinkDropError):
    pass


class OcrUnavailable(ThinkDropError):
    pass


__all__ = [
    "ThinkDropError",
    "UnknownServiceError",
    "RpcTimeoutError",
    "RpcTransportError",
    "RemoteFailureError",
    "ConnectionExhaustedError",
    "BridgeNotConnectedError",
    "ClipboardUnavailable",
    "OcrUnavailable",
]
