"""Which display server the screen capture talks to, and what part of it."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Mapping


class DisplayServer(Enum):
    QUARTZ = "quartz"
    WAYLAND = "wayland"
    X11 = "x11"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CaptureRegion:
    """Screen rectangle in pixels, origin at the top-left corner."""

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def parse(cls, value: str | None) -> "CaptureRegion | None":
        if not value:
            return None
        parts = [int(part.strip()) for part in value.split(",") if part.strip()]
        if len(parts) != 4:
            raise ValueError("region must be four comma-separated integers: x,y,width,height")
        return cls(*parts)


def detect_display_server(
    env: Mapping[str, str] | None = None, platform: str | None = None
) -> DisplayServer:
    if (platform or sys.platform) == "darwin":
        return DisplayServer.QUARTZ
    env = os.environ if env is None else env
    declared = env.get("XDG_SESSION_TYPE", "").strip().lower()
    if declared in (DisplayServer.WAYLAND.value, DisplayServer.X11.value):
        return DisplayServer(declared)
    # Sessions started outside a login manager only export the socket names.
    if env.get("WAYLAND_DISPLAY"):
        return DisplayServer.WAYLAND
    if env.get("DISPLAY"):
        return DisplayServer.X11
    return DisplayServer.UNKNOWN


__all__ = ["CaptureRegion", "DisplayServer", "detect_display_server"]
