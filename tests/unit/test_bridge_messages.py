import json
import unittest

from thinkdrop.bridge.messages import BridgeEvent, FrameKind, LlmRequest, decode_frame


class BridgeMessageTests(unittest.TestCase):
    def test_llm_request_ids_are_unique(self) -> None:
        ids = {LlmRequest.build("p").id for _ in range(50)}
        self.assertEqual(len(ids), 50)

    def test_llm_request_wire_shape(self) -> None:
        message = json.loads(
            LlmRequest.build("p", "sel", temperature=0.2, task_type="code").to_json()
        )
        self.assertEqual(set(message), {"type", "id", "payload", "timestamp", "metadata"})
        self.assertEqual(message["payload"]["options"]["temperature"], 0.2)
        self.assertEqual(message["payload"]["options"]["taskType"], "code")
        self.assertTrue(message["id"].startswith("req_"))

    def test_frame_kinds(self) -> None:
        chunk = BridgeEvent.from_frame(decode_frame('{"type": "stream_token", "token": "a"}'))
        self.assertIs(chunk.kind, FrameKind.CHUNK)
        self.assertEqual(chunk.text, "a")

        end = BridgeEvent.from_frame(decode_frame(b'{"type": "llm_stream_end"}'))
        self.assertIs(end.kind, FrameKind.END)

        error = BridgeEvent.from_frame(
            decode_frame('{"type": "llm_error", "error": {"message": "rate limited"}}')
        )
        self.assertIs(error.kind, FrameKind.ERROR)
        self.assertEqual(error.text, "rate limited")

        other = BridgeEvent.from_frame(decode_frame('{"type": "telemetry", "x": 1}'))
        self.assertIs(other.kind, FrameKind.OTHER)
        self.assertEqual(other.data["x"], 1)

    def test_malformed_frames_raise_value_error(self) -> None:
        for raw in ("", "[1]", '{"no_type": true}', "{"):
            with self.subTest(raw=raw):
                with self.assertRaises(ValueError):
                    decode_frame(raw)
