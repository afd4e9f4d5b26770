"""Automation session control: pause, resume and event streaming."""

from .controller import AutomationSessionController, ExecutionEngine, OutputSink
from .events import (
    EventStream,
    OutputEvent,
    OutputKind,
    ProgressEvent,
    parse_progress_event,
)
from .resume import ReplyKind, ResumeDecision, classify_reply, replan_state, skip_state
from .state import (
    AutomationState,
    FailedStep,
    PausedAutomation,
    PendingQuestion,
    RecoveryContext,
    SessionContext,
)

__all__ = [
    "AutomationSessionController",
    "ExecutionEngine",
    "OutputSink",
    "EventStream",
    "OutputEvent",
    "OutputKind",
    "ProgressEvent",
    "parse_progress_event",
    "ReplyKind",
    "ResumeDecision",
    "classify_reply",
    "replan_state",
    "skip_state",
    "AutomationState",
    "FailedStep",
    "PausedAutomation",
    "PendingQuestion",
    "RecoveryContext",
    "SessionContext",
]
