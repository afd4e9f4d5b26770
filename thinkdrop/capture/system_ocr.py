"""Screen capture + tesseract recognition feeding ``process_screen_text``."""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable

from ..errors import OcrUnavailable
from .display import CaptureRegion, DisplayServer, detect_display_server

logger = logging.getLogger(__name__)

# Region flag and geometry format per screenshot tool; absent tools only do full screen.
_REGION_ARGS: dict[str, tuple[str, Callable[[CaptureRegion], str]]] = {
    "screencapture": ("-R", lambda r: f"{r.x},{r.y},{r.width},{r.height}"),
    "grim": ("-g", lambda r: f"{r.x},{r.y} {r.width}x{r.height}"),
    "maim": ("-g", lambda r: f"{r.width}x{r.height}+{r.x}+{r.y}"),
}

_TOOLS: dict[DisplayServer, tuple[str, ...]] = {
    DisplayServer.QUARTZ: ("screencapture",),
    DisplayServer.WAYLAND: ("grim", "gnome-screenshot"),
    DisplayServer.X11: ("maim", "gnome-screenshot"),
    DisplayServer.UNKNOWN: ("maim", "gnome-screenshot"),
}


class SystemOCR:
    """Captures the screen (or a region of it) and returns recognized text."""

    def __init__(
        self,
        display: DisplayServer | None = None,
        *,
        language: str = "eng",
        timeout: float = 30.0,
    ) -> None:
        self.display = display or detect_display_server()
        self.language = language
        self.timeout = timeout
        candidates = _TOOLS[self.display]
        tool = next((name for name in candidates if shutil.which(name)), None)
        if tool is None:
            raise OcrUnavailable(
                f"no screenshot helper for {self.display.value}; install one of "
                + ", ".join(candidates)
            )
        self._tool = tool
        tesseract = shutil.which("tesseract")
        if not tesseract:
            raise OcrUnavailable("tesseract is required for screen-text captures")
        self._tesseract = tesseract

    def capture_text(self, region: CaptureRegion | None = None) -> str:
        with tempfile.TemporaryDirectory(prefix="thinkdrop-") as workdir:
            image = Path(workdir) / "screen.png"
            self._run(self._screenshot_command(str(image), region))
            result = self._run([self._tesseract, str(image), "stdout", "-l", self.language])
        logger.debug("recognized %s characters", len(result.stdout))
        return result.stdout

    def _run(self, command: list[str]) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                command, check=True, capture_output=True, text=True, timeout=self.timeout
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as exc:
            raise OcrUnavailable(f"{command[0]} failed: {exc}") from exc

    def _screenshot_command(self, path: str, region: CaptureRegion | None) -> list[str]:
        command = [self._tool]
        if self._tool == "screencapture":
            command.append("-x")
        elif self._tool == "gnome-screenshot":
            command.append("-f")
        if region is not None:
            if self._tool in _REGION_ARGS:
                flag, geometry = _REGION_ARGS[self._tool]
                command.extend([flag, geometry(region)])
            else:
                logger.info("%s cannot capture a region; using full screen", self._tool)
        return command + [path]


__all__ = ["SystemOCR"]
