"""Persistent streaming session to the reasoning backend."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import urllib.parse
from enum import Enum
from typing import Any, Awaitable, Callable

import websockets

from ..config import constants
from ..config.settings import Settings
from ..errors import BridgeNotConnectedError, ConnectionExhaustedError
from .messages import BridgeEvent, LlmRequest, decode_frame

logger = logging.getLogger(__name__)

EventHandler = Callable[[BridgeEvent], "Awaitable[None] | None"]
Connector = Callable[..., Any]
Sleeper = Callable[[float], Awaitable[None]]


class BridgeState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"


class BridgeConnectionManager:
    """Owns at most one live bridge connection and its reconnect schedule.

    ``connect`` is a no-op while a connection is opening or open. Every close
    (including a failed open) schedules a reconnect after
    ``base_delay * 2 ** (attempt - 1)`` seconds until ``max_attempts``
    reconnects have been scheduled; reaching ``OPEN`` resets the counter.
    The last scheduled timer gives up instead of connecting, and from then on
    only ``reconnect`` starts a new connection.
    """

    def __init__(
        self,
        url: str,
        *,
        api_key: str = "",
        user_id: str = constants.DEFAULT_BRIDGE_USER_ID,
        source: str = constants.DEFAULT_SOURCE,
        on_event: EventHandler | None = None,
        max_attempts: int = constants.DEFAULT_BRIDGE_MAX_RECONNECTS,
        base_delay: float = constants.DEFAULT_BRIDGE_RECONNECT_BASE,
        connect_timeout: float = constants.DEFAULT_BRIDGE_CONNECT_TIMEOUT,
        connector: Connector | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.user_id = user_id
        self.source = source
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.connect_timeout = connect_timeout
        self.reconnect_delays: list[float] = []
        self._on_event = on_event
        self._connector = connector or websockets.connect
        self._sleep = sleep
        self._state = BridgeState.DISCONNECTED
        self._attempts = 0
        self._exhausted = False
        self._closing = False
        self._ws: Any = None
        self._session_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._notifications: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls, settings: Settings, *, on_event: EventHandler | None = None
    ) -> "BridgeConnectionManager":
        return cls(
            settings.bridge_url,
            api_key=settings.bridge_api_key,
            user_id=settings.bridge_user_id,
            source=settings.source,
            on_event=on_event,
            max_attempts=settings.bridge_max_reconnects,
            base_delay=settings.bridge_reconnect_base,
            connect_timeout=settings.bridge_connect_timeout,
        )

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def is_connected(self) -> bool:
        return self._state is BridgeState.OPEN

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def set_event_handler(self, handler: EventHandler | None) -> None:
        self._on_event = handler

    def connect(self) -> None:
        if self._exhausted:
            error = ConnectionExhaustedError(
                f"bridge reconnect ceiling ({self.max_attempts}) reached; "
                "request an explicit reconnect"
            )
            logger.warning("%s", error)
            self._notify_soon(BridgeEvent.failure(str(error)))
            return
        self._start_session()

    def reconnect(self) -> None:
        """Explicit user request: reset the counter and connect."""

        logger.info("bridge reconnect requested")
        self._cancel_reconnect()
        self._attempts = 0
        self._exhausted = False
        self._closing = False
        self.connect()

    async def close(self) -> None:
        self._closing = True
        self._cancel_reconnect()
        task = self._session_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})
        self._session_task = None
        self._ws = None
        self._state = BridgeState.DISCONNECTED

    async def wait_idle(self) -> None:
        """Wait until no session is live and no reconnect is pending."""

        while True:
            pending = [
                task
                for task in (self._session_task, self._reconnect_task, *self._notifications)
                if task is not None and not task.done()
            ]
            if not pending:
                return
            await asyncio.wait(pending)

    async def send(
        self,
        prompt: str,
        selected_text: str = "",
        *,
        task_type: str = constants.DEFAULT_BRIDGE_TASK_TYPE,
    ) -> str | None:
        """Send one prompt; returns its correlation id or ``None`` when not sent."""

        if self._state is not BridgeState.OPEN or self._ws is None:
            error = BridgeNotConnectedError("Not connected to the reasoning bridge")
            logger.error("%s", error)
            await self._emit(BridgeEvent.failure(str(error)))
            self.connect()
            return None

        request = LlmRequest.build(
            prompt, selected_text, source=self.source, task_type=task_type
        )
        try:
            await self._ws.send(request.to_json())
        except Exception as exc:
            logger.error("failed to send bridge message: %s", exc)
            await self._emit(BridgeEvent.failure(str(exc)))
            return None
        logger.info("bridge message sent with id %s", request.id)
        return request.id

    def session_url(self) -> str:
        parts = urllib.parse.urlsplit(self.url)
        query = urllib.parse.parse_qsl(parts.query)
        query.extend(
            [
                ("apiKey", self.api_key),
                ("userId", self.user_id),
                ("clientId", f"thinkdrop_{int(time.time() * 1000)}"),
            ]
        )
        return urllib.parse.urlunsplit(parts._replace(query=urllib.parse.urlencode(query)))

    def _start_session(self) -> None:
        if self._state in (BridgeState.CONNECTING, BridgeState.OPEN):
            logger.debug("bridge already connected or connecting")
            return
        self._closing = False
        self._state = BridgeState.CONNECTING
        self._session_task = asyncio.get_running_loop().create_task(self._run_session())

    async def _run_session(self) -> None:
        logger.info("connecting to bridge %s", self.url)
        try:
            async with self._connector(
                self.session_url(), open_timeout=self.connect_timeout
            ) as ws:
                self._ws = ws
                self._state = BridgeState.OPEN
                self._attempts = 0
                self._cancel_reconnect()
                logger.info("bridge connected")
                await self._emit(BridgeEvent.lifecycle("connected"))
                async for raw in ws:
                    await self._handle_frame(raw)
        except asyncio.CancelledError:
            self._ws = None
            self._state = BridgeState.DISCONNECTED
            raise
        except Exception as exc:
            logger.error("bridge error: %s", exc)
            await self._emit(BridgeEvent.failure(str(exc)))

        self._ws = None
        self._state = BridgeState.DISCONNECTED
        logger.info("bridge disconnected")
        await self._emit(BridgeEvent.lifecycle("disconnected"))
        if not self._closing:
            self._schedule_reconnect()

    async def _handle_frame(self, raw: str | bytes) -> None:
        try:
            frame = decode_frame(raw)
        except ValueError as exc:
            logger.warning("dropping malformed bridge frame: %s", exc)
            return
        logger.debug("bridge frame received: %s", frame.type)
        await self._emit(BridgeEvent.from_frame(frame))

    def _schedule_reconnect(self) -> None:
        if self._attempts >= self.max_attempts:
            self._give_up()
            return
        self._attempts += 1
        delay = self.base_delay * (2 ** (self._attempts - 1))
        self.reconnect_delays.append(delay)
        logger.info(
            "bridge reconnect attempt %s/%s in %.1fs",
            self._attempts,
            self.max_attempts,
            delay,
        )
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self._delayed_reconnect(delay)
        )

    async def _delayed_reconnect(self, delay: float) -> None:
        await self._sleep(delay)
        self._reconnect_task = None
        if self._closing:
            return
        if self._attempts >= self.max_attempts:
            self._give_up()
            return
        self._start_session()

    def _give_up(self) -> None:
        self._exhausted = True
        logger.warning(
            "bridge max reconnect attempts (%s) reached; server may be unavailable",
            self.max_attempts,
        )

    def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
        self._reconnect_task = None

    async def _emit(self, event: BridgeEvent) -> None:
        if self._on_event is None:
            return
        try:
            result = self._on_event(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("bridge event handler failed for %s", event.type)

    def _notify_soon(self, event: BridgeEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._emit(event))
        self._notifications.add(task)
        task.add_done_callback(self._notifications.discard)


__all__ = ["BridgeState", "BridgeConnectionManager"]
