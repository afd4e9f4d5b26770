import unittest

from thinkdrop.rpc.envelope import (
    ResponseShape,
    RpcEnvelope,
    decode_response,
    is_failure,
    normalize_response,
)


def _normalize(body):
    return normalize_response(
        decode_response(body), service="svc", action="act", request_id="mcp_1"
    )


class EnvelopeTests(unittest.TestCase):
    def test_envelope_wire_uses_camel_case_request_id(self) -> None:
        envelope = RpcEnvelope(service="svc", request_id="mcp_1", action="act")
        wire = envelope.to_wire()
        self.assertEqual(
            wire,
            {
                "version": "mcp.v1",
                "service": "svc",
                "requestId": "mcp_1",
                "action": "act",
                "payload": {},
            },
        )

    def test_shapes_are_tagged(self) -> None:
        self.assertIs(decode_response({"success": True}).shape, ResponseShape.SUCCESS_FLAG)
        self.assertIs(decode_response({"status": "ok"}).shape, ResponseShape.STATUS_FIELD)
        self.assertIs(decode_response({"data": 1}).shape, ResponseShape.UNTAGGED)
        self.assertIs(decode_response([1, 2]).shape, ResponseShape.UNTAGGED)

    def test_error_without_data_is_failure(self) -> None:
        self.assertTrue(is_failure(decode_response({"error": "boom"})))

    def test_error_with_success_true_is_not_failure(self) -> None:
        self.assertFalse(is_failure(decode_response({"success": True, "error": "warn"})))

    def test_error_with_data_is_not_failure(self) -> None:
        self.assertFalse(is_failure(decode_response({"data": {"x": 1}, "error": "partial"})))

    def test_error_with_empty_container_data_is_not_failure(self) -> None:
        self.assertFalse(is_failure(decode_response({"error": "x", "data": []})))
        self.assertFalse(is_failure(decode_response({"error": "x", "data": {}})))
        self.assertTrue(is_failure(decode_response({"error": "x", "data": ""})))
        self.assertFalse(is_failure(decode_response({"error": "", "data": None})))

    def test_failure_without_message_gets_fallback(self) -> None:
        result = _normalize({"success": False})
        self.assertFalse(result.success)
        self.assertEqual(result.error, "svc.act returned failure")

    def test_structured_error_without_message_is_serialized(self) -> None:
        result = _normalize({"status": "error", "error": {"code": 42}})
        self.assertEqual(result.error, '{"code": 42}')

    def test_bare_list_body_is_success(self) -> None:
        result = _normalize(["a", "b"])
        self.assertTrue(result.success)
        self.assertEqual(result.data, ["a", "b"])
