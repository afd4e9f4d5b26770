"""System clipboard reader used by the highlight monitor."""

from __future__ import annotations

import logging
import shutil
import subprocess

from ..errors import ClipboardUnavailable

logger = logging.getLogger(__name__)

# wl-paste exits non-zero when the clipboard holds no text.
_READERS: tuple[tuple[str, ...], ...] = (
    ("wl-paste", "--no-newline", "--type", "text"),
    ("xclip", "-selection", "clipboard", "-o"),
    ("xsel", "--clipboard", "--output"),
)


class SystemClipboard:
    """Reads clipboard text through wl-paste, xclip or xsel (first found)."""

    def __init__(self, *, timeout: float = 2.0) -> None:
        self.timeout = timeout
        command = next((list(cmd) for cmd in _READERS if shutil.which(cmd[0])), None)
        if command is None:
            raise ClipboardUnavailable(
                "clipboard helpers missing; install wl-paste, xclip, or xsel"
            )
        self.command = command

    def read_text(self) -> str:
        try:
            result = subprocess.run(
                self.command,
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as exc:
            logger.debug("%s returned %s; treating clipboard as empty", self.command[0], exc.returncode)
            return ""
        return result.stdout


__all__ = ["SystemClipboard"]
