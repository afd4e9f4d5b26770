"""Clipboard highlight classification and polling."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, MutableSet, Protocol

from ..config import constants

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class ClipboardReader(Protocol):
    def read_text(self) -> str:
        ...


class CaptureSurface(Protocol):
    def is_visible(self) -> bool:
        ...


class RecentPrompts:
    """Prompts this process submitted, each forgotten after ``ttl`` seconds."""

    def __init__(
        self,
        ttl: float = constants.DEFAULT_SELF_SUBMISSION_TTL,
        *,
        clock: Clock = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._expires: dict[str, float] = {}

    def add(self, prompt: str) -> None:
        key = prompt.strip()
        if key:
            self._expires[key] = self._clock() + self.ttl

    def __contains__(self, value: object) -> bool:
        if not isinstance(value, str):
            return False
        self._purge()
        return value.strip() in self._expires

    def __len__(self) -> int:
        self._purge()
        return len(self._expires)

    def _purge(self) -> None:
        now = self._clock()
        for key in [key for key, expiry in self._expires.items() if expiry <= now]:
            del self._expires[key]


@dataclass(frozen=True)
class HighlightPolicy:
    short_text_max_chars: int = constants.DEFAULT_SHORT_TEXT_MAX_CHARS


class Verdict(Enum):
    ACCEPTED = "accepted"
    EMPTY = "empty"
    UNCHANGED = "unchanged"
    ALREADY_SENT = "already_sent"
    SELF_SUBMITTED = "self_submitted"
    SHORT_PLAIN_TEXT = "short_plain_text"
    STRUCTURED_LOG = "structured_log"


@dataclass(frozen=True)
class HighlightCandidate:
    text: str
    verdict: Verdict

    @property
    def accepted(self) -> bool:
        return self.verdict is Verdict.ACCEPTED


def is_short_plain_text(text: str, max_chars: int = constants.DEFAULT_SHORT_TEXT_MAX_CHARS) -> bool:
    """Single line under ``max_chars``: most likely a typed query."""

    trimmed = text.strip()
    return "\n" not in trimmed and len(trimmed) < max_chars


def is_structured_log(text: str) -> bool:
    """Every non-blank line is wrapped in braces, e.g. JSON log output."""

    lines = [line.strip() for line in text.strip().splitlines() if line.strip()]
    if not lines:
        return False
    return all(line.startswith("{") and line.endswith("}") for line in lines)


class HighlightClassifier:
    """Decides which clipboard values are forwarded as highlights.

    ``submitted`` and ``sent`` are shared with the session controller so
    prompts it dispatches are never captured back as highlights.
    """

    def __init__(
        self,
        submitted: RecentPrompts,
        sent: MutableSet[str],
        policy: HighlightPolicy | None = None,
    ) -> None:
        self.submitted = submitted
        self.sent = sent
        self.policy = policy or HighlightPolicy()
        self.last_value = ""

    def prime(self, value: str) -> None:
        self.last_value = value or ""

    def reset(self) -> None:
        self.sent.clear()

    def observe(self, value: str) -> HighlightCandidate:
        if not value:
            return HighlightCandidate(value or "", Verdict.EMPTY)
        if value == self.last_value:
            return HighlightCandidate(value, Verdict.UNCHANGED)
        self.last_value = value
        if value in self.sent:
            return HighlightCandidate(value, Verdict.ALREADY_SENT)

        verdict = self._filter(value)
        if verdict is Verdict.ACCEPTED:
            self.sent.add(value)
        else:
            logger.debug("clipboard value skipped: %s", verdict.value)
        return HighlightCandidate(value, verdict)

    def _filter(self, value: str) -> Verdict:
        if value in self.submitted:
            return Verdict.SELF_SUBMITTED
        if is_short_plain_text(value, self.policy.short_text_max_chars):
            return Verdict.SHORT_PLAIN_TEXT
        if is_structured_log(value):
            return Verdict.STRUCTURED_LOG
        return Verdict.ACCEPTED


HighlightCallback = Callable[[str], "Awaitable[None] | None"]


class ClipboardMonitor:
    """Polls the clipboard while the capture surface is visible."""

    def __init__(
        self,
        clipboard: ClipboardReader,
        classifier: HighlightClassifier,
        on_highlight: HighlightCallback,
        *,
        surface: CaptureSurface | None = None,
        interval: float = constants.DEFAULT_CLIPBOARD_POLL_INTERVAL,
    ) -> None:
        self._clipboard = clipboard
        self.classifier = classifier
        self._on_highlight = on_highlight
        self._surface = surface
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.active:
            return
        self.classifier.prime(await self._read())
        self._task = asyncio.get_running_loop().create_task(self._poll())
        logger.info("clipboard monitor started")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            await asyncio.wait({task})
        self.classifier.reset()
        logger.info("clipboard monitor stopped")

    async def wait(self) -> None:
        if self._task is not None:
            await asyncio.wait({self._task})

    async def poll_once(self) -> HighlightCandidate:
        candidate = self.classifier.observe(await self._read())
        if candidate.accepted:
            logger.info("new clipboard highlight: %s", candidate.text[:100])
            result = self._on_highlight(candidate.text)
            if inspect.isawaitable(result):
                await result
        return candidate

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self._surface is not None and not self._surface.is_visible():
                self._task = None
                self.classifier.reset()
                logger.info("capture surface hidden; clipboard monitor stopped")
                return
            await self.poll_once()

    async def _read(self) -> str:
        try:
            return await asyncio.to_thread(self._clipboard.read_text)
        except Exception as exc:
            logger.warning("clipboard read failed: %s", exc)
            return self.classifier.last_value


__all__ = [
    "RecentPrompts",
    "HighlightPolicy",
    "Verdict",
    "HighlightCandidate",
    "HighlightClassifier",
    "ClipboardMonitor",
    "is_short_plain_text",
    "is_structured_log",
]
