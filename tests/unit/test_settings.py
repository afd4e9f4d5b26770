import os
import unittest
from unittest import mock

from thinkdrop.config import constants
from thinkdrop.config.settings import Settings
from thinkdrop.rpc import AuthScheme, build_endpoints


class SettingsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()
        self.assertEqual(settings.service_urls, constants.DEFAULT_SERVICE_URLS)
        self.assertEqual(settings.api_key_header_services, ("conversation",))
        self.assertEqual(settings.bridge_url, "ws://localhost:4000/ws/stream")
        self.assertEqual(settings.bridge_max_reconnects, 5)
        self.assertEqual(settings.self_submission_ttl, 60.0)

    def test_service_url_override_and_extra_service(self) -> None:
        env = {
            "MCP_USER_MEMORY_URL": "http://memory:9000",
            "MCP_SERVICE_URLS": "vision=http://vision:7000, bogus",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()
        self.assertEqual(settings.service_urls["user-memory"], "http://memory:9000")
        self.assertEqual(settings.service_urls["vision"], "http://vision:7000")
        self.assertNotIn("bogus", settings.service_urls)

    def test_api_keys_fall_back_to_shared_key(self) -> None:
        env = {"MCP_API_KEY": "shared", "MCP_CONVERSATION_API_KEY": "conv"}
        with mock.patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()
        self.assertEqual(settings.service_api_keys["conversation"], "conv")
        self.assertEqual(settings.service_api_keys["web-search"], "shared")

    def test_malformed_numbers_fall_back(self) -> None:
        env = {
            "THINKDROP_RPC_TIMEOUT": "soon",
            "THINKDROP_BRIDGE_MAX_RECONNECTS": "many",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()
        self.assertEqual(settings.rpc_timeout, constants.DEFAULT_RPC_TIMEOUT)
        self.assertEqual(settings.bridge_max_reconnects, 5)

    def test_bridge_api_key_alias(self) -> None:
        with mock.patch.dict(os.environ, {"WEBSOCKET_API_KEY": "ws-key"}, clear=True):
            settings = Settings.from_env()
        self.assertEqual(settings.bridge_api_key, "ws-key")

    def test_endpoints_pick_auth_scheme(self) -> None:
        env = {"MCP_API_KEY_HEADER_SERVICES": "conversation,phi4"}
        with mock.patch.dict(os.environ, env, clear=True):
            endpoints = build_endpoints(Settings.from_env())
        self.assertIs(endpoints["conversation"].auth_scheme, AuthScheme.API_KEY_HEADER)
        self.assertIs(endpoints["phi4"].auth_scheme, AuthScheme.API_KEY_HEADER)
        self.assertIs(endpoints["command"].auth_scheme, AuthScheme.BEARER)
