"""Session controller between submitted prompts and the execution engine."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Mapping, Protocol

from pydantic import ValidationError

from ..bridge import BridgeConnectionManager
from ..capture.clipboard import HighlightClassifier, HighlightPolicy, RecentPrompts
from ..config import constants
from ..config.settings import Settings
from ..errors import BridgeNotConnectedError
from ..rpc import RpcClient
from .events import EventStream, OutputEvent, PlanError, parse_progress_event
from .resume import ReplyKind, classify_reply, replan_state, skip_state
from .state import AutomationState, PausedAutomation, SessionContext

logger = logging.getLogger(__name__)

ENGINE_NOT_INITIALIZED = "Execution engine not initialized"


class ExecutionEngine(Protocol):
    async def execute(self, state: dict[str, Any]) -> Mapping[str, Any]:
        ...


class OutputSink(Protocol):
    def emit(self, event: OutputEvent) -> Any:
        ...


class AutomationSessionController:
    """Runs prompts through the engine and owns the cross-prompt session state.

    At most one automation is paused at a time. A reply to its question
    either aborts it (the reply becomes a fresh prompt), skips the failed
    step, or asks the engine to replan with the reply as guidance.
    """

    def __init__(
        self,
        engine: ExecutionEngine | None = None,
        *,
        rpc_client: RpcClient | None = None,
        bridge: BridgeConnectionManager | None = None,
        source: str = constants.DEFAULT_SOURCE,
        default_user_id: str = constants.DEFAULT_USER_ID,
        self_submission_ttl: float = constants.DEFAULT_SELF_SUBMISSION_TTL,
        highlight_policy: HighlightPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.engine = engine
        self.rpc_client = rpc_client
        self.bridge = bridge
        self.source = source
        self.default_user_id = default_user_id
        self.highlight_policy = highlight_policy or HighlightPolicy()
        self.current_session_id: str | None = None
        self.paused: PausedAutomation | None = None
        self.submitted_prompts = RecentPrompts(self_submission_ttl, clock=clock)
        self.sent_highlights: set[str] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        engine: ExecutionEngine | None = None,
        *,
        rpc_client: RpcClient | None = None,
        bridge: BridgeConnectionManager | None = None,
    ) -> "AutomationSessionController":
        return cls(
            engine,
            rpc_client=rpc_client,
            bridge=bridge,
            source=settings.source,
            default_user_id=settings.user_id,
            self_submission_ttl=settings.self_submission_ttl,
            highlight_policy=HighlightPolicy(settings.short_text_max_chars),
        )

    def clipboard_classifier(self, policy: HighlightPolicy | None = None) -> HighlightClassifier:
        return HighlightClassifier(
            self.submitted_prompts,
            self.sent_highlights,
            policy or self.highlight_policy,
        )

    def discard_paused(self) -> PausedAutomation | None:
        paused, self.paused = self.paused, None
        if paused is not None:
            logger.info("paused automation discarded")
        return paused

    def submit(
        self,
        prompt: str,
        selected_text: str = "",
        *,
        session_id: str | None = None,
        user_id: str | None = None,
    ) -> EventStream:
        logger.info("processing prompt: %s", prompt[:80])
        self.submitted_prompts.add(prompt)
        stream = EventStream()
        if self.engine is None:
            logger.error("%s", ENGINE_NOT_INITIALIZED)
            stream.put(OutputEvent.error(ENGINE_NOT_INITIALIZED))
            stream.finish()
            return stream

        task = asyncio.get_running_loop().create_task(
            self._run(stream, prompt, selected_text, session_id, user_id)
        )
        stream.attach(task)
        return stream

    async def process_prompt(
        self,
        prompt: str,
        selected_text: str = "",
        *,
        sink: OutputSink,
        session_id: str | None = None,
        user_id: str | None = None,
    ) -> None:
        stream = self.submit(prompt, selected_text, session_id=session_id, user_id=user_id)
        try:
            async for event in stream:
                result = sink.emit(event)
                if inspect.isawaitable(result):
                    await result
        finally:
            if not stream.sealed:
                await stream.cancel()

    async def ask_bridge(self, prompt: str, selected_text: str = "") -> str | None:
        """Send a prompt straight to the reasoning bridge, bypassing the engine."""

        if self.bridge is None:
            raise BridgeNotConnectedError("no reasoning bridge configured")
        self.submitted_prompts.add(prompt)
        return await self.bridge.send(prompt, selected_text)

    async def aclose(self) -> None:
        if self.bridge is not None:
            await self.bridge.close()
        if self.rpc_client is not None:
            await self.rpc_client.aclose()

    def _initial_state(
        self,
        prompt: str,
        selected_text: str,
        session_id: str | None,
        user_id: str | None,
    ) -> tuple[AutomationState, PausedAutomation | None]:
        session = session_id or self.current_session_id
        paused = self.paused
        if paused is not None:
            decision = classify_reply(prompt, paused.question)
            if decision.kind is ReplyKind.SKIP:
                logger.info("resuming paused automation: skipping failed step")
                return skip_state(paused, session), paused
            if decision.kind is ReplyKind.ANSWER:
                logger.info("resuming paused automation: replanning with user answer")
                return replan_state(paused, decision.answer, session), paused
            logger.info("paused automation aborted; treating reply as a new prompt")
            self.paused = None

        context = SessionContext(
            session_id=session,
            user_id=user_id or self.default_user_id,
            source=self.source,
        )
        return AutomationState(message=prompt, selected_text=selected_text, context=context), None

    async def _run(
        self,
        stream: EventStream,
        prompt: str,
        selected_text: str,
        session_id: str | None,
        user_id: str | None,
    ) -> None:
        def on_token(token: str) -> None:
            stream.put(OutputEvent.chunk(token))

        def on_progress(event: Any) -> None:
            try:
                parsed = parse_progress_event(event)
            except ValidationError:
                logger.debug("unrecognized progress event: %s", event)
                parsed = event
            stream.put(OutputEvent.progress(parsed))

        try:
            initial, resumed = self._initial_state(prompt, selected_text, session_id, user_id)
            raw = await self.engine.execute(
                initial.to_engine(stream_callback=on_token, progress_callback=on_progress)
            )
            self._settle(stream, AutomationState.from_engine(raw), resumed)
        except asyncio.CancelledError:
            logger.info("automation cancelled")
            raise
        except Exception as exc:
            logger.error("automation execution error: %s", exc)
            stream.put(OutputEvent.error(str(exc)))
        finally:
            stream.finish()

    def _settle(
        self,
        stream: EventStream,
        final: AutomationState,
        resumed: PausedAutomation | None,
    ) -> None:
        if final.resolved_session_id:
            self.current_session_id = final.resolved_session_id
        if resumed is not None and self.paused is resumed:
            self.paused = None

        question = final.pending_question
        if question is not None:
            resume_count = resumed.resume_count + 1 if resumed is not None else 0
            self.paused = PausedAutomation(final, resume_count=resume_count)
            if resume_count:
                logger.info("automation paused again after %s resumes", resume_count)
            else:
                logger.info("automation paused for user input")
            stream.put(OutputEvent.question(question.render(), question.options))
        elif final.plan_error and not final.skill_plan:
            stream.put(OutputEvent.progress(PlanError(error=final.plan_error)))
        else:
            answer = final.answer if isinstance(final.answer, str) else None
            stream.put(OutputEvent.complete(answer, payload=final))
        _log_trace(final)


def _log_trace(final: AutomationState) -> None:
    lines = []
    for number, entry in enumerate(final.trace, 1):
        if not isinstance(entry, Mapping):
            continue
        status = "ok" if entry.get("success") else "failed"
        error = f" - {entry['error']}" if entry.get("error") else ""
        lines.append(f"  {number}. {status} [{entry.get('node')}] {entry.get('duration')}ms{error}")
    confidence = final.intent.get("confidence") if isinstance(final.intent, Mapping) else None
    logger.info(
        "automation done in %sms | intent: %s (%s)\ntrace (%s nodes):\n%s",
        final.elapsed_ms,
        final.intent_type,
        confidence,
        len(final.trace),
        "\n".join(lines),
    )


__all__ = [
    "ENGINE_NOT_INITIALIZED",
    "ExecutionEngine",
    "OutputSink",
    "AutomationSessionController",
]
