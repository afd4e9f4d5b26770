"""How a reply to a paused automation's question resumes (or ends) it."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum

from .state import (
    RECOVERY_REPLAN,
    AutomationState,
    PausedAutomation,
    PendingQuestion,
    RecoveryContext,
)

DEFAULT_FAILED_SKILL = "browser.act"
DEFAULT_FAILURE_REASON = "user requested change"

_ABORT_RE = re.compile(r"\b(abort|cancel|stop|no)\b", re.IGNORECASE)
_SKIP_RE = re.compile(r"\bskip\b", re.IGNORECASE)


class ReplyKind(Enum):
    ABORT = "abort"
    SKIP = "skip"
    ANSWER = "answer"


@dataclass(frozen=True)
class ResumeDecision:
    kind: ReplyKind
    answer: str


def resolve_option(reply: str, question: PendingQuestion | None) -> str:
    """Map a numeric reply to the option it names, else return the reply."""

    reply = reply.strip()
    if question is not None:
        option = question.option_for(reply)
        if option is not None:
            return option
    return reply


def classify_reply(reply: str, question: PendingQuestion | None) -> ResumeDecision:
    answer = resolve_option(reply, question)
    if _ABORT_RE.search(answer):
        return ResumeDecision(ReplyKind.ABORT, answer)
    if _SKIP_RE.search(answer):
        return ResumeDecision(ReplyKind.SKIP, answer)
    return ResumeDecision(ReplyKind.ANSWER, answer)


def _with_session(state: AutomationState, session_id: str | None) -> AutomationState:
    return state.evolve(context=replace(state.context, session_id=session_id))


def skip_state(paused: PausedAutomation, session_id: str | None) -> AutomationState:
    """Resume from the step after the failed one, keeping the plan."""

    state = paused.state.evolve(
        skill_cursor=paused.state.skill_cursor + 1,
        failed_step=None,
        pending_question=None,
        recovery_action=None,
        recovery_context=None,
        answer=None,
        command_executed=False,
        step_retry_count=0,
    )
    return _with_session(state, session_id)


def replan_state(
    paused: PausedAutomation, reply: str, session_id: str | None
) -> AutomationState:
    """Drop the plan and ask the engine to replan around the user's reply."""

    previous = paused.state
    failed = previous.failed_step
    recovery = RecoveryContext(
        failed_skill=(failed and failed.skill) or DEFAULT_FAILED_SKILL,
        failed_step=(failed and failed.step) or previous.skill_cursor,
        failure_reason=(failed and failed.error) or DEFAULT_FAILURE_REASON,
        suggestion=f'User replied: "{reply}". Adjust the plan accordingly.',
    )
    state = previous.evolve(
        failed_step=None,
        pending_question=None,
        recovery_action=RECOVERY_REPLAN,
        recovery_context=recovery,
        answer=None,
        command_executed=False,
        skill_plan=None,
        skill_cursor=0,
        step_retry_count=0,
    )
    return _with_session(state, session_id)


__all__ = [
    "DEFAULT_FAILED_SKILL",
    "DEFAULT_FAILURE_REASON",
    "ReplyKind",
    "ResumeDecision",
    "resolve_option",
    "classify_reply",
    "skip_state",
    "replan_state",
]
