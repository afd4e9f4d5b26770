"""Progress events from the engine and the output stream handed to callers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

logger = logging.getLogger(__name__)


class _ProgressModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class PlanStep(_ProgressModel):
    index: int | None = None
    skill: str | None = None
    description: str | None = None


class Planning(_ProgressModel):
    type: Literal["planning"] = "planning"


class PlanReady(_ProgressModel):
    type: Literal["plan_ready"] = "plan_ready"
    steps: list[PlanStep] = Field(default_factory=list)


class PlanError(_ProgressModel):
    type: Literal["plan_error"] = "plan_error"
    error: str = ""


class StepStart(_ProgressModel):
    type: Literal["step_start"] = "step_start"
    step_index: int = Field(default=0, alias="stepIndex")


class StepDone(_ProgressModel):
    type: Literal["step_done"] = "step_done"
    step_index: int = Field(default=0, alias="stepIndex")
    stdout: str | None = None
    exit_code: int | None = Field(default=None, alias="exitCode")


class StepFailed(_ProgressModel):
    type: Literal["step_failed"] = "step_failed"
    step_index: int = Field(default=0, alias="stepIndex")
    error: str | None = None
    stderr: str | None = None


class AllDone(_ProgressModel):
    type: Literal["all_done"] = "all_done"
    total_count: int | None = Field(default=None, alias="totalCount")
    skill_results: list[Any] = Field(default_factory=list, alias="skillResults")


ProgressEvent = Annotated[
    Union[Planning, PlanReady, PlanError, StepStart, StepDone, StepFailed, AllDone],
    Field(discriminator="type"),
]

_PROGRESS_ADAPTER: TypeAdapter[ProgressEvent] = TypeAdapter(ProgressEvent)


def parse_progress_event(data: Any) -> ProgressEvent:
    """Validate one engine progress event; raises ``pydantic.ValidationError``."""

    if isinstance(data, BaseModel):
        return data  # type: ignore[return-value]
    return _PROGRESS_ADAPTER.validate_python(data)


class OutputKind(Enum):
    CHUNK = "chunk"
    PROGRESS = "progress"
    QUESTION = "question"
    COMPLETE = "complete"
    ERROR = "error"
    DONE = "done"


@dataclass(frozen=True)
class OutputEvent:
    kind: OutputKind
    text: str | None = None
    payload: Any = None

    @classmethod
    def chunk(cls, text: str) -> "OutputEvent":
        return cls(OutputKind.CHUNK, text=text)

    @classmethod
    def progress(cls, event: Any) -> "OutputEvent":
        return cls(OutputKind.PROGRESS, payload=event)

    @classmethod
    def question(cls, text: str, options: tuple[str, ...] = ()) -> "OutputEvent":
        return cls(OutputKind.QUESTION, text=text, payload=list(options))

    @classmethod
    def complete(cls, text: str | None = None, payload: Any = None) -> "OutputEvent":
        return cls(OutputKind.COMPLETE, text=text, payload=payload)

    @classmethod
    def error(cls, message: str) -> "OutputEvent":
        return cls(OutputKind.ERROR, text=message)

    @classmethod
    def done(cls) -> "OutputEvent":
        return cls(OutputKind.DONE)


class EventStream:
    """Ordered, cancellable stream of output events for one submission.

    Iteration yields every event up to and including the single ``done``
    event, then stops. Events offered after ``done`` are dropped.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[OutputEvent] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self._sealed = False
        self._finished = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    def attach(self, task: asyncio.Task) -> None:
        self._task = task

    def put(self, event: OutputEvent) -> None:
        if self._sealed:
            logger.debug("dropping %s event after done", event.kind.value)
            return
        if event.kind is OutputKind.DONE:
            self._sealed = True
        self._queue.put_nowait(event)

    def finish(self) -> None:
        self.put(OutputEvent.done())

    async def cancel(self) -> None:
        """Stop the producing task; the stream still ends with ``done``."""

        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})
        self.finish()

    async def collect(self) -> list[OutputEvent]:
        return [event async for event in self]

    def __aiter__(self) -> "EventStream":
        return self

    async def __anext__(self) -> OutputEvent:
        if self._finished:
            raise StopAsyncIteration
        event = await self._queue.get()
        if event.kind is OutputKind.DONE:
            self._finished = True
        return event


__all__ = [
    "PlanStep",
    "Planning",
    "PlanReady",
    "PlanError",
    "StepStart",
    "StepDone",
    "StepFailed",
    "AllDone",
    "ProgressEvent",
    "parse_progress_event",
    "OutputKind",
    "OutputEvent",
    "EventStream",
]
