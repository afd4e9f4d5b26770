import asyncio
import json
import unittest

import httpx

from thinkdrop.errors import (
    RemoteFailureError,
    RpcTimeoutError,
    RpcTransportError,
    UnknownServiceError,
)
from thinkdrop.rpc import AuthScheme, RpcClient, ServiceEndpoint


def _endpoints() -> dict[str, ServiceEndpoint]:
    return {
        "conversation": ServiceEndpoint(
            "conversation",
            "http://conversation.test",
            credential="conv-key",
            auth_scheme=AuthScheme.API_KEY_HEADER,
        ),
        "user-memory": ServiceEndpoint(
            "user-memory", "http://memory.test/", credential="mem-key"
        ),
        "web-search": ServiceEndpoint("web-search", "http://search.test"),
    }


def _client(handler, **kwargs) -> RpcClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RpcClient(_endpoints(), http_client=http_client, **kwargs)


class RpcCallTests(unittest.IsolatedAsyncioTestCase):
    async def test_success_flag_envelope(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True, "data": {"id": 7}})

        client = _client(handler)
        result = await client.call("user-memory", "memory.store", {"text": "hi"})

        self.assertTrue(result.success)
        self.assertEqual(result.data, {"id": 7})
        self.assertIsNone(result.error)
        request = seen[0]
        self.assertEqual(str(request.url), "http://memory.test/memory.store")
        self.assertEqual(request.headers["Authorization"], "Bearer mem-key")
        body = json.loads(request.content)
        self.assertEqual(body["version"], "mcp.v1")
        self.assertEqual(body["service"], "user-memory")
        self.assertEqual(body["action"], "memory.store")
        self.assertEqual(body["payload"], {"text": "hi"})
        self.assertEqual(body["requestId"], result.request_id)
        self.assertTrue(result.request_id.startswith("mcp_"))

    async def test_status_field_envelope(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "ok", "data": [1, 2]})

        result = await _client(handler).call("web-search", "web.search", {"q": "x"})

        self.assertTrue(result.success)
        self.assertEqual(result.data, [1, 2])

    async def test_conversation_uses_api_key_header(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True, "data": {}})

        await _client(handler).call("conversation", "session.list")

        self.assertEqual(seen[0].headers["x-api-key"], "conv-key")
        self.assertNotIn("Authorization", seen[0].headers)

    async def test_missing_credential_sends_no_auth_header(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True, "data": {}})

        await _client(handler).call("web-search", "web.search")

        self.assertNotIn("Authorization", seen[0].headers)
        self.assertNotIn("x-api-key", seen[0].headers)

    async def test_request_ids_are_unique(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": True, "data": {}})

        client = _client(handler)
        results = await asyncio.gather(
            *(client.call("web-search", "web.search") for _ in range(20))
        )

        self.assertEqual(len({result.request_id for result in results}), 20)

    async def test_unknown_service_performs_no_io(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        with self.assertRaises(UnknownServiceError) as ctx:
            await _client(handler).call("nope", "anything")

        self.assertEqual(ctx.exception.service, "nope")
        self.assertEqual(calls, [])

    async def test_remote_failure_carries_error_text(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": False, "error": "quota exceeded"})

        with self.assertRaises(RemoteFailureError) as ctx:
            await _client(handler).call("web-search", "web.search")

        self.assertEqual(str(ctx.exception), "quota exceeded")
        self.assertFalse(ctx.exception.result.success)

    async def test_status_error_is_remote_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"status": "error", "error": {"message": "bad input"}}
            )

        with self.assertRaises(RemoteFailureError) as ctx:
            await _client(handler).call("web-search", "web.search")

        self.assertEqual(str(ctx.exception), "bad input")

    async def test_http_error_status_is_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        with self.assertRaises(RpcTransportError) as ctx:
            await _client(handler).call("web-search", "web.search")

        self.assertIn("HTTP 503", str(ctx.exception))

    async def test_network_failure_is_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with self.assertRaises(RpcTransportError):
            await _client(handler).call("web-search", "web.search")

    async def test_slow_service_times_out(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1.0)
            return httpx.Response(200, json={"success": True})

        with self.assertRaises(RpcTimeoutError):
            await _client(handler, timeout=0.05).call("web-search", "web.search")

    async def test_configured_timeout_reaches_transport(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True})

        await _client(handler, timeout=60.0).call("web-search", "web.search")

        timeouts = seen[0].extensions["timeout"]
        self.assertEqual(timeouts["read"], 60.0)
        self.assertEqual(timeouts["connect"], 60.0)

    async def test_owned_client_uses_configured_timeout(self) -> None:
        client = RpcClient(_endpoints(), timeout=45.0)
        self.addAsyncCleanup(client.aclose)

        self.assertEqual(client._http_client.timeout.read, 45.0)

    async def test_transport_timeout_is_timeout_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        with self.assertRaises(RpcTimeoutError):
            await _client(handler).call("web-search", "web.search")

    async def test_non_json_body_is_remote_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        with self.assertRaises(RemoteFailureError):
            await _client(handler).call("web-search", "web.search")


class RpcHealthTests(unittest.IsolatedAsyncioTestCase):
    async def test_healthy_services_in_registry_order(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            host = request.url.host
            if host == "conversation.test":
                return httpx.Response(200, json={"status": "healthy"})
            if host == "memory.test" and request.url.path == "/health":
                return httpx.Response(200, json={"status": "up"})
            if host == "memory.test":
                return httpx.Response(404, text="missing")
            raise httpx.ConnectError("down", request=request)

        healthy = await _client(handler).healthy_services()

        self.assertEqual(healthy, ["conversation", "user-memory"])

    async def test_probes_run_concurrently(self) -> None:
        in_flight = 0
        peak = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.05)
            in_flight -= 1
            return httpx.Response(200, json={"status": "ok"})

        healthy = await _client(handler).healthy_services()

        self.assertEqual(len(healthy), 3)
        self.assertEqual(peak, 3)

    async def test_slow_probe_counts_as_unhealthy(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "search.test":
                await asyncio.sleep(1.0)
            return httpx.Response(200, json={"success": True})

        healthy = await _client(handler, health_timeout=0.05).healthy_services()

        self.assertEqual(healthy, ["conversation", "user-memory"])

    async def test_health_timeout_reaches_transport(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": "ok"})

        await _client(handler, health_timeout=3.5).is_healthy("web-search")

        self.assertEqual(seen[0].extensions["timeout"]["read"], 3.5)

    async def test_unknown_service_is_unhealthy(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "ok"})

        self.assertFalse(await _client(handler).is_healthy("nope"))
