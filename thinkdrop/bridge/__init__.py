"""Streaming bridge to the reasoning backend."""

from .connection import BridgeConnectionManager, BridgeState
from .messages import BridgeEvent, BridgeFrame, FrameKind, LlmRequest, decode_frame

__all__ = [
    "BridgeConnectionManager",
    "BridgeState",
    "BridgeEvent",
    "BridgeFrame",
    "FrameKind",
    "LlmRequest",
    "decode_frame",
]
