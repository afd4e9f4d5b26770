"""Versioned request/response calls to ThinkDrop services."""

from .client import RpcClient
from .endpoints import AuthScheme, ServiceEndpoint, build_endpoints
from .envelope import (
    DecodedResponse,
    ResponseShape,
    RpcEnvelope,
    RpcResult,
    decode_response,
    normalize_response,
)

__all__ = [
    "RpcClient",
    "AuthScheme",
    "ServiceEndpoint",
    "build_endpoints",
    "DecodedResponse",
    "ResponseShape",
    "RpcEnvelope",
    "RpcResult",
    "decode_response",
    "normalize_response",
]
