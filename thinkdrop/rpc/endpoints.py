"""Service endpoint registry built from settings."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..config.settings import Settings


class AuthScheme(Enum):
    API_KEY_HEADER = "x-api-key"
    BEARER = "bearer"


_HEADER_BUILDERS = {
    AuthScheme.API_KEY_HEADER: lambda credential: {"x-api-key": credential},
    AuthScheme.BEARER: lambda credential: {"Authorization": f"Bearer {credential}"},
}


@dataclass(frozen=True)
class ServiceEndpoint:
    name: str
    base_url: str
    credential: str = ""
    auth_scheme: AuthScheme = AuthScheme.BEARER

    def url_for(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def auth_headers(self) -> dict[str, str]:
        if not self.credential:
            return {}
        return _HEADER_BUILDERS[self.auth_scheme](self.credential)


def build_endpoints(settings: Settings) -> dict[str, ServiceEndpoint]:
    """Map each configured service name to its endpoint."""

    header_services = set(settings.api_key_header_services)
    endpoints: dict[str, ServiceEndpoint] = {}
    for name, base_url in settings.service_urls.items():
        scheme = (
            AuthScheme.API_KEY_HEADER if name in header_services else AuthScheme.BEARER
        )
        endpoints[name] = ServiceEndpoint(
            name=name,
            base_url=base_url,
            credential=settings.service_api_keys.get(name, ""),
            auth_scheme=scheme,
        )
    return endpoints


__all__ = ["AuthScheme", "ServiceEndpoint", "build_endpoints"]
