"""Request envelope and response normalization for service calls.

Services answer in one of two legacy shapes::

    {"success": true|false, "data": ..., "error": ...}
    {"status": "ok"|"error", "data": ..., "error": ...}

``decode_response`` tags the body with the shape it was written in and
``normalize_response`` turns any decoded body into one ``RpcResult``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from ..config import constants

STATUS_OK = "ok"


class RpcEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: str = constants.PROTOCOL_VERSION
    service: str
    request_id: str = Field(alias="requestId")
    action: str
    payload: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ResponseShape(Enum):
    SUCCESS_FLAG = "success"
    STATUS_FIELD = "status"
    UNTAGGED = "untagged"


@dataclass(frozen=True)
class DecodedResponse:
    shape: ResponseShape
    success: bool | None
    status: str | None
    data: Any
    error: Any
    raw: Mapping[str, Any]


@dataclass(frozen=True)
class RpcResult:
    service: str
    action: str
    request_id: str
    success: bool
    data: Any
    error: str | None
    raw: Mapping[str, Any]


def decode_response(body: Any) -> DecodedResponse:
    """Tag a parsed response body with the envelope shape it uses."""

    if not isinstance(body, Mapping):
        return DecodedResponse(
            shape=ResponseShape.UNTAGGED,
            success=None,
            status=None,
            data=body,
            error=None,
            raw={"data": body},
        )
    success = body.get("success")
    status = body.get("status")
    if "success" in body:
        shape = ResponseShape.SUCCESS_FLAG
    elif "status" in body:
        shape = ResponseShape.STATUS_FIELD
    else:
        shape = ResponseShape.UNTAGGED
    return DecodedResponse(
        shape=shape,
        success=success if isinstance(success, bool) else None,
        status=str(status) if status is not None else None,
        data=body.get("data"),
        error=body.get("error"),
        raw=body,
    )


def is_failure(decoded: DecodedResponse) -> bool:
    if decoded.success is False:
        return True
    if decoded.status is not None and decoded.status != STATUS_OK:
        return True
    return _present(decoded.error) and not _present(decoded.data) and decoded.success is not True


def _present(value: Any) -> bool:
    # Empty lists and objects count as present.
    if value is None or isinstance(value, (str, bool, int, float)):
        return bool(value)
    return True


def _error_text(error: Any, fallback: str) -> str:
    if isinstance(error, Mapping):
        message = error.get("message")
        return str(message) if message else json.dumps(error, default=str)
    if error:
        return str(error)
    return fallback


def normalize_response(
    decoded: DecodedResponse,
    *,
    service: str,
    action: str,
    request_id: str,
) -> RpcResult:
    failed = is_failure(decoded)
    error = (
        _error_text(decoded.error, f"{service}.{action} returned failure")
        if failed
        else None
    )
    return RpcResult(
        service=service,
        action=action,
        request_id=request_id,
        success=not failed,
        data=decoded.data,
        error=error,
        raw=decoded.raw,
    )


__all__ = [
    "RpcEnvelope",
    "ResponseShape",
    "DecodedResponse",
    "RpcResult",
    "decode_response",
    "is_failure",
    "normalize_response",
]
