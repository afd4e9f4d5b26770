"""Automation state exchanged with the execution engine.

The engine speaks camelCase mappings; ``AutomationState.from_engine`` and
``AutomationState.to_engine`` translate between that contract and these
dataclasses. Keys the client does not model travel untouched in ``extra``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from ..config import constants

RECOVERY_REPLAN = "replan"

_CALLBACK_KEYS = ("streamCallback", "progressCallback")

_SCALAR_KEYS = {
    "message": "message",
    "selected_text": "selectedText",
    "trace": "trace",
    "intent": "intent",
    "skill_plan": "skillPlan",
    "skill_cursor": "skillCursor",
    "recovery_action": "recoveryAction",
    "step_retry_count": "stepRetryCount",
    "answer": "answer",
    "command_executed": "commandExecuted",
    "resolved_session_id": "resolvedSessionId",
    "plan_error": "planError",
    "elapsed_ms": "elapsedMs",
}
_NESTED_KEYS = ("context", "pendingQuestion", "failedStep", "recoveryContext")
_KNOWN_KEYS = frozenset(_SCALAR_KEYS.values()) | frozenset(_NESTED_KEYS) | frozenset(_CALLBACK_KEYS)


def _drop_none(values: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


@dataclass(frozen=True)
class SessionContext:
    session_id: str | None = None
    user_id: str = constants.DEFAULT_USER_ID
    source: str = constants.DEFAULT_SOURCE
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_engine(cls, data: Mapping[str, Any] | None) -> "SessionContext":
        data = dict(data or {})
        return cls(
            session_id=data.pop("sessionId", None),
            user_id=data.pop("userId", None) or constants.DEFAULT_USER_ID,
            source=data.pop("source", None) or constants.DEFAULT_SOURCE,
            extra=data,
        )

    def to_engine(self) -> dict[str, Any]:
        return {
            **self.extra,
            "sessionId": self.session_id,
            "userId": self.user_id,
            "source": self.source,
        }


@dataclass(frozen=True)
class PendingQuestion:
    question: str
    options: tuple[str, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_engine(cls, data: Mapping[str, Any] | None) -> "PendingQuestion | None":
        if not data or not data.get("question"):
            return None
        rest = {k: v for k, v in data.items() if k not in ("question", "options")}
        return cls(
            question=str(data["question"]),
            options=tuple(str(option) for option in data.get("options") or ()),
            extra=rest,
        )

    def to_engine(self) -> dict[str, Any]:
        return {**self.extra, "question": self.question, "options": list(self.options)}

    def option_for(self, reply: str) -> str | None:
        """Return the option a numeric reply (1-based) points at."""

        try:
            index = int(reply.strip()) - 1
        except ValueError:
            return None
        if 0 <= index < len(self.options):
            return self.options[index]
        return None

    def render(self) -> str:
        text = f"**{self.question}**"
        if self.options:
            text += "\n\n" + "\n".join(
                f"{number}. {option}" for number, option in enumerate(self.options, 1)
            )
        return text


@dataclass(frozen=True)
class FailedStep:
    skill: str | None = None
    step: int | None = None
    error: str | None = None

    @classmethod
    def from_engine(cls, data: Mapping[str, Any] | None) -> "FailedStep | None":
        if not data:
            return None
        return cls(skill=data.get("skill"), step=data.get("step"), error=data.get("error"))

    def to_engine(self) -> dict[str, Any]:
        return _drop_none({"skill": self.skill, "step": self.step, "error": self.error})


@dataclass(frozen=True)
class RecoveryContext:
    failed_skill: str
    failed_step: int | None
    failure_reason: str
    suggestion: str
    constraint: str | None = None

    @classmethod
    def from_engine(cls, data: Mapping[str, Any] | None) -> "RecoveryContext | None":
        if not data:
            return None
        return cls(
            failed_skill=str(data.get("failedSkill") or ""),
            failed_step=data.get("failedStep"),
            failure_reason=str(data.get("failureReason") or ""),
            suggestion=str(data.get("suggestion") or ""),
            constraint=data.get("constraint"),
        )

    def to_engine(self) -> dict[str, Any]:
        return {
            "failedSkill": self.failed_skill,
            "failedStep": self.failed_step,
            "failureReason": self.failure_reason,
            "suggestion": self.suggestion,
            "constraint": self.constraint,
        }


@dataclass(frozen=True)
class AutomationState:
    message: str
    selected_text: str = ""
    context: SessionContext = field(default_factory=SessionContext)
    trace: list[Any] = field(default_factory=list)
    intent: dict[str, Any] | None = None
    skill_plan: list[Any] | None = None
    skill_cursor: int = 0
    pending_question: PendingQuestion | None = None
    failed_step: FailedStep | None = None
    recovery_context: RecoveryContext | None = None
    recovery_action: str | None = None
    step_retry_count: int = 0
    answer: Any = None
    command_executed: bool = False
    resolved_session_id: str | None = None
    plan_error: str | None = None
    elapsed_ms: float | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def intent_type(self) -> str | None:
        if isinstance(self.intent, Mapping):
            return self.intent.get("type")
        return None

    def evolve(self, **changes: Any) -> "AutomationState":
        return replace(self, **changes)

    @classmethod
    def from_engine(cls, data: Mapping[str, Any]) -> "AutomationState":
        values: dict[str, Any] = {
            attr: data[key] for attr, key in _SCALAR_KEYS.items() if data.get(key) is not None
        }
        values.setdefault("message", "")
        values.setdefault("selected_text", "")
        return cls(
            context=SessionContext.from_engine(data.get("context")),
            pending_question=PendingQuestion.from_engine(data.get("pendingQuestion")),
            failed_step=FailedStep.from_engine(data.get("failedStep")),
            recovery_context=RecoveryContext.from_engine(data.get("recoveryContext")),
            extra={key: value for key, value in data.items() if key not in _KNOWN_KEYS},
            **values,
        )

    def to_engine(
        self,
        *,
        stream_callback: Callable[[str], None] | None = None,
        progress_callback: Callable[[Any], None] | None = None,
    ) -> dict[str, Any]:
        """Build the engine's input mapping; unset fields are left out."""

        state: dict[str, Any] = dict(self.extra)
        defaults = AutomationState(message="")
        for attr, key in _SCALAR_KEYS.items():
            value = getattr(self, attr)
            if attr in ("message", "selected_text") or value != getattr(defaults, attr):
                state[key] = value
        state["context"] = self.context.to_engine()
        if self.pending_question is not None:
            state["pendingQuestion"] = self.pending_question.to_engine()
        if self.failed_step is not None:
            state["failedStep"] = self.failed_step.to_engine()
        if self.recovery_context is not None:
            state["recoveryContext"] = self.recovery_context.to_engine()
        state["streamCallback"] = stream_callback
        state["progressCallback"] = progress_callback
        return state


@dataclass(frozen=True)
class PausedAutomation:
    """Snapshot of an automation waiting for the user's answer."""

    state: AutomationState
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    resume_count: int = 0

    @property
    def question(self) -> PendingQuestion | None:
        return self.state.pending_question


__all__ = [
    "RECOVERY_REPLAN",
    "SessionContext",
    "PendingQuestion",
    "FailedStep",
    "RecoveryContext",
    "AutomationState",
    "PausedAutomation",
]
