"""Wire messages exchanged with the reasoning bridge."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ..config import constants
from ..ids import new_request_id


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class LlmOptions(_CamelModel):
    temperature: float = constants.DEFAULT_BRIDGE_TEMPERATURE
    stream: bool = True
    task_type: str = Field(default=constants.DEFAULT_BRIDGE_TASK_TYPE, alias="taskType")


class LlmContext(_CamelModel):
    selected_text: str = Field(default="", alias="selectedText")


class LlmPayload(_CamelModel):
    prompt: str
    provider: str = constants.DEFAULT_BRIDGE_PROVIDER
    options: LlmOptions = Field(default_factory=LlmOptions)
    context: LlmContext = Field(default_factory=LlmContext)


class LlmMetadata(_CamelModel):
    source: str = constants.DEFAULT_SOURCE


class LlmRequest(_CamelModel):
    type: Literal["llm_request"] = "llm_request"
    id: str
    payload: LlmPayload
    timestamp: int
    metadata: LlmMetadata = Field(default_factory=LlmMetadata)

    @classmethod
    def build(
        cls,
        prompt: str,
        selected_text: str = "",
        *,
        source: str = constants.DEFAULT_SOURCE,
        provider: str = constants.DEFAULT_BRIDGE_PROVIDER,
        temperature: float = constants.DEFAULT_BRIDGE_TEMPERATURE,
        task_type: str = constants.DEFAULT_BRIDGE_TASK_TYPE,
    ) -> "LlmRequest":
        return cls(
            id=new_request_id("req"),
            payload=LlmPayload(
                prompt=prompt,
                provider=provider,
                options=LlmOptions(temperature=temperature, task_type=task_type),
                context=LlmContext(selected_text=selected_text),
            ),
            timestamp=int(time.time() * 1000),
            metadata=LlmMetadata(source=source),
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class BridgeFrame(BaseModel):
    """Inbound frame; only ``type`` is required, the rest is kept verbatim."""

    model_config = ConfigDict(extra="allow")

    type: str


class FrameKind(Enum):
    LIFECYCLE = "lifecycle"
    CHUNK = "chunk"
    END = "end"
    ERROR = "error"
    OTHER = "other"


FRAME_KINDS: dict[str, FrameKind] = {
    "connected": FrameKind.LIFECYCLE,
    "disconnected": FrameKind.LIFECYCLE,
    "connection_ack": FrameKind.LIFECYCLE,
    "pong": FrameKind.LIFECYCLE,
    "chunk": FrameKind.CHUNK,
    "stream_token": FrameKind.CHUNK,
    "llm_stream_chunk": FrameKind.CHUNK,
    "done": FrameKind.END,
    "stream_end": FrameKind.END,
    "llm_stream_end": FrameKind.END,
    "error": FrameKind.ERROR,
    "llm_error": FrameKind.ERROR,
}

_TEXT_KEYS = ("text", "token", "content", "chunk")
_ERROR_KEYS = ("error", "message")


def decode_frame(raw: str | bytes) -> BridgeFrame:
    """Parse one inbound frame; raises ``ValueError`` when malformed."""

    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    body = json.loads(raw)
    if not isinstance(body, dict):
        raise ValueError("bridge frame must be a JSON object")
    return BridgeFrame.model_validate(body)


def _first_text(data: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str):
            return value
        if isinstance(value, dict) and isinstance(value.get("message"), str):
            return value["message"]
    payload = data.get("payload")
    if isinstance(payload, dict):
        return _first_text(payload, keys)
    return None


@dataclass(frozen=True)
class BridgeEvent:
    kind: FrameKind
    type: str
    text: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_frame(cls, frame: BridgeFrame) -> "BridgeEvent":
        data = frame.model_dump()
        kind = FRAME_KINDS.get(frame.type, FrameKind.OTHER)
        keys = _ERROR_KEYS if kind is FrameKind.ERROR else _TEXT_KEYS
        return cls(kind=kind, type=frame.type, text=_first_text(data, keys), data=data)

    @classmethod
    def lifecycle(cls, event_type: str) -> "BridgeEvent":
        return cls(kind=FrameKind.LIFECYCLE, type=event_type)

    @classmethod
    def failure(cls, message: str) -> "BridgeEvent":
        return cls(kind=FrameKind.ERROR, type="error", text=message)


__all__ = [
    "LlmRequest",
    "BridgeFrame",
    "FrameKind",
    "FRAME_KINDS",
    "BridgeEvent",
    "decode_frame",
]
