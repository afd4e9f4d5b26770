"""Clipboard and screen-text capture helpers."""

from __future__ import annotations

from .clipboard import (
    ClipboardMonitor,
    HighlightCandidate,
    HighlightClassifier,
    HighlightPolicy,
    RecentPrompts,
    Verdict,
    is_short_plain_text,
    is_structured_log,
)
from .display import CaptureRegion, DisplayServer, detect_display_server
from .screen_text import ExtractedArtifact, process_screen_text
from .system_clipboard import SystemClipboard
from .system_ocr import SystemOCR

__all__ = [
    "ClipboardMonitor",
    "HighlightCandidate",
    "HighlightClassifier",
    "HighlightPolicy",
    "RecentPrompts",
    "Verdict",
    "is_short_plain_text",
    "is_structured_log",
    "ExtractedArtifact",
    "process_screen_text",
    "CaptureRegion",
    "DisplayServer",
    "detect_display_server",
    "SystemClipboard",
    "SystemOCR",
]
