import unittest

from pydantic import ValidationError

from thinkdrop.automation.events import (
    AllDone,
    EventStream,
    OutputEvent,
    OutputKind,
    PlanReady,
    StepDone,
    StepFailed,
    parse_progress_event,
)


class ProgressEventTests(unittest.TestCase):
    def test_parses_known_events(self) -> None:
        ready = parse_progress_event(
            {"type": "plan_ready", "steps": [{"index": 0, "skill": "shell.run", "description": "ls"}]}
        )
        self.assertIsInstance(ready, PlanReady)
        self.assertEqual(ready.steps[0].skill, "shell.run")

        done = parse_progress_event({"type": "step_done", "stepIndex": 2, "stdout": "ok", "exitCode": 0})
        self.assertIsInstance(done, StepDone)
        self.assertEqual((done.step_index, done.exit_code), (2, 0))

        failed = parse_progress_event({"type": "step_failed", "stepIndex": 1, "error": "boom"})
        self.assertIsInstance(failed, StepFailed)

        finished = parse_progress_event({"type": "all_done", "totalCount": 3, "skillResults": []})
        self.assertIsInstance(finished, AllDone)
        self.assertEqual(finished.total_count, 3)

    def test_unknown_type_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            parse_progress_event({"type": "mystery"})


class EventStreamTests(unittest.IsolatedAsyncioTestCase):
    async def test_events_after_done_are_dropped(self) -> None:
        stream = EventStream()
        stream.put(OutputEvent.chunk("a"))
        stream.finish()
        stream.put(OutputEvent.chunk("late"))
        stream.finish()

        events = await stream.collect()

        self.assertEqual([event.kind for event in events], [OutputKind.CHUNK, OutputKind.DONE])
        self.assertTrue(stream.sealed)
        self.assertEqual(await stream.collect(), [])
