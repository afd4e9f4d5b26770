"""Async client for independently hosted ThinkDrop services."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Mapping

import httpx

from ..config import constants
from ..config.settings import Settings
from ..errors import (
    RemoteFailureError,
    RpcTimeoutError,
    RpcTransportError,
    UnknownServiceError,
)
from ..ids import new_request_id
from .endpoints import ServiceEndpoint, build_endpoints
from .envelope import RpcEnvelope, RpcResult, decode_response, normalize_response

logger = logging.getLogger(__name__)


class RpcClient:
    """Calls ``POST {base_url}/{action}`` on registered services."""

    def __init__(
        self,
        endpoints: Mapping[str, ServiceEndpoint],
        *,
        timeout: float = constants.DEFAULT_RPC_TIMEOUT,
        health_timeout: float = constants.DEFAULT_HEALTH_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoints = dict(endpoints)
        self.timeout = timeout
        self.health_timeout = health_timeout
        self._owns_http = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(
        cls, settings: Settings, *, http_client: httpx.AsyncClient | None = None
    ) -> "RpcClient":
        return cls(
            build_endpoints(settings),
            timeout=settings.rpc_timeout,
            health_timeout=settings.health_timeout,
            http_client=http_client,
        )

    async def __aenter__(self) -> "RpcClient":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http_client.aclose()

    @property
    def services(self) -> list[str]:
        return list(self._endpoints)

    def endpoint(self, service: str) -> ServiceEndpoint:
        try:
            return self._endpoints[service]
        except KeyError:
            raise UnknownServiceError(service) from None

    async def call(
        self,
        service: str,
        action: str,
        payload: Mapping[str, Any] | None = None,
    ) -> RpcResult:
        endpoint = self.endpoint(service)
        envelope = RpcEnvelope(
            service=service,
            request_id=new_request_id("mcp"),
            action=action,
            payload=dict(payload or {}),
        )
        url = endpoint.url_for(action)
        headers = {"Content-Type": "application/json", **endpoint.auth_headers()}
        logger.debug("%s.%s -> %s (%s)", service, action, url, envelope.request_id)

        try:
            response = await asyncio.wait_for(
                self._http_client.post(
                    url,
                    json=envelope.to_wire(),
                    headers=headers,
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.error("%s.%s timed out after %.1fs", service, action, self.timeout)
            raise RpcTimeoutError(
                f"request timeout after {self.timeout:g}s: {url}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("%s.%s transport failure: %s", service, action, exc)
            raise RpcTransportError(f"{service}.{action} failed: {exc}") from exc

        if response.status_code >= 400:
            logger.error("%s.%s HTTP %s", service, action, response.status_code)
            raise RpcTransportError(
                f"HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise RemoteFailureError(
                f"{service}.{action} returned a non-JSON body"
            ) from exc

        result = normalize_response(
            decode_response(body),
            service=service,
            action=action,
            request_id=envelope.request_id,
        )
        if not result.success:
            logger.error("%s.%s failed: %s", service, action, result.error)
            raise RemoteFailureError(result.error or "remote failure", result)
        return result

    async def is_healthy(self, service: str) -> bool:
        endpoint = self._endpoints.get(service)
        if endpoint is None:
            return False
        for path in constants.HEALTH_PATHS:
            try:
                response = await asyncio.wait_for(
                    self._http_client.get(
                        endpoint.url_for(path),
                        headers={"Content-Type": "application/json"},
                        timeout=self.health_timeout,
                    ),
                    timeout=self.health_timeout,
                )
                body = response.json()
            except (asyncio.TimeoutError, httpx.HTTPError, ValueError) as exc:
                logger.debug("health probe %s%s failed: %s", service, path, exc)
                continue
            if _is_healthy_body(body):
                return True
        return False

    async def healthy_services(self) -> list[str]:
        names = self.services
        results = await asyncio.gather(
            *(self.is_healthy(name) for name in names), return_exceptions=True
        )
        healthy: list[str] = []
        for name, outcome in zip(names, results):
            if isinstance(outcome, BaseException):
                logger.warning("health probe for %s raised %s", name, outcome)
                continue
            if outcome:
                healthy.append(name)
        return healthy


def _is_healthy_body(body: Any) -> bool:
    if not isinstance(body, Mapping):
        return False
    status = body.get("status")
    if isinstance(status, str) and status in constants.HEALTHY_STATUSES:
        return True
    return body.get("success") is True


__all__ = ["RpcClient"]
