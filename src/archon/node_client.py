"""
Async client for the node agent HTTP API.

Every request carries the node's API key as a bearer token. Transport
failures, non-2xx responses and malformed bodies are mapped onto the
ArchonError taxonomy so that background operations can report a single
readable reason:

- httpx.TimeoutException -> RequestTimeoutError
- any other httpx.HTTPError -> NetworkError
- non-2xx status -> ServerError(status, body text)
- 2xx with an unparseable or wrongly shaped body -> InvalidResponseError
"""

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from .enums import NodeStatus, SiteStatus
from .exceptions import (
    AuthError,
    InvalidResponseError,
    NetworkError,
    RequestTimeoutError,
    ServerError,
)
from .models import ContainerMetrics, DockerInfo, Site, TraefikInfo


@dataclass
class DeploymentResponse:
    """What the node reports after accepting a deployment."""

    site_id: str
    container_id: str
    status: SiteStatus


@dataclass
class HealthResponse:
    """Node health as reported by GET /api/v1/health."""

    status: NodeStatus
    docker: Optional[DockerInfo] = None
    traefik: Optional[TraefikInfo] = None


def _parse_enum(enum_cls, value: Any, what: str):
    if not isinstance(value, str):
        raise InvalidResponseError(
            code="invalid_response",
            message=f"Failed to parse {what}: expected a string, got {value!r}",
        )
    try:
        return enum_cls(value.lower())
    except ValueError:
        raise InvalidResponseError(
            code="invalid_response",
            message=f"Failed to parse {what}: unknown value {value!r}",
        ) from None


class NodeClient:
    """
    Async client for the node agent API.

    The client keeps one httpx.AsyncClient per context; outside a context a
    client is created lazily on first use. A custom transport may be passed
    for testing.
    """

    API_PREFIX = "/api/v1"

    def __init__(
        self,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the node client.

        Args:
            timeout: Request timeout in seconds
            transport: Optional httpx transport (e.g. httpx.MockTransport)
        """
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "NodeClient":
        """Async context manager entry."""
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    # Site lifecycle

    async def deploy_site(
        self,
        endpoint: str,
        api_key: str,
        site: Site,
        domain_name: str,
    ) -> DeploymentResponse:
        """POST /api/v1/sites/deploy with the full site description."""
        response = await self._request(
            "POST", endpoint, api_key, "/sites/deploy",
            json=self._deploy_payload(site, domain_name),
        )
        data = self._json_object(response, "deployment response")
        try:
            return DeploymentResponse(
                site_id=str(data["site_id"]),
                container_id=str(data["container_id"]),
                status=_parse_enum(SiteStatus, data["status"], "deployment status"),
            )
        except KeyError as e:
            raise InvalidResponseError(
                code="invalid_response",
                message=f"Failed to parse deployment response: missing {e}",
            ) from None

    async def update_site(
        self,
        endpoint: str,
        api_key: str,
        site: Site,
        domain_name: str,
    ) -> None:
        """PUT /api/v1/sites/{id} with the full site description."""
        await self._request(
            "PUT", endpoint, api_key, f"/sites/{site.id}",
            json=self._deploy_payload(site, domain_name),
        )

    async def get_site_status(self, endpoint: str, api_key: str, site_id: str) -> SiteStatus:
        response = await self._request("GET", endpoint, api_key, f"/sites/{site_id}/status")
        data = self._json_object(response, "status response")
        return _parse_enum(SiteStatus, data.get("status"), "site status")

    async def delete_site(self, endpoint: str, api_key: str, site_id: str) -> None:
        await self._request("DELETE", endpoint, api_key, f"/sites/{site_id}")

    async def stop_site(self, endpoint: str, api_key: str, site_id: str) -> None:
        await self._request("POST", endpoint, api_key, f"/sites/{site_id}/stop")

    async def restart_site(self, endpoint: str, api_key: str, site_id: str) -> None:
        await self._request("POST", endpoint, api_key, f"/sites/{site_id}/restart")

    # Node information

    async def health_check(self, endpoint: str, api_key: str) -> HealthResponse:
        response = await self._request("GET", endpoint, api_key, "/health")
        data = self._json_object(response, "health response")
        docker = data.get("docker")
        traefik = data.get("traefik")
        return HealthResponse(
            status=_parse_enum(NodeStatus, data.get("status"), "node status"),
            docker=self._docker_info(docker) if docker is not None else None,
            traefik=self._traefik_info(traefik) if traefik is not None else None,
        )

    async def get_docker_info(self, endpoint: str, api_key: str) -> DockerInfo:
        response = await self._request("GET", endpoint, api_key, "/docker/info")
        return self._docker_info(self._json_object(response, "Docker info"))

    async def get_traefik_info(self, endpoint: str, api_key: str) -> TraefikInfo:
        response = await self._request("GET", endpoint, api_key, "/traefik/info")
        return self._traefik_info(self._json_object(response, "Traefik info"))

    # Monitoring

    async def get_container_logs(
        self,
        endpoint: str,
        api_key: str,
        site_id: str,
        lines: int = 100,
    ) -> list[str]:
        """GET /api/v1/sites/{id}/logs?lines=N"""
        response = await self._request(
            "GET", endpoint, api_key, f"/sites/{site_id}/logs",
            params={"lines": lines},
        )
        data = self._json_object(response, "logs response")
        logs = data.get("logs")
        if not isinstance(logs, list):
            raise InvalidResponseError(
                code="invalid_response",
                message="Failed to parse logs response: 'logs' is not a list",
            )
        return [str(line) for line in logs]

    async def get_container_metrics(
        self,
        endpoint: str,
        api_key: str,
        site_id: str,
    ) -> ContainerMetrics:
        response = await self._request("GET", endpoint, api_key, f"/sites/{site_id}/metrics")
        data = self._json_object(response, "metrics response")
        try:
            return ContainerMetrics(
                cpu_usage_percent=float(data["cpu_usage_percent"]),
                memory_usage_mb=int(data["memory_usage_mb"]),
                memory_limit_mb=int(data["memory_limit_mb"]),
                network_rx_bytes=int(data["network_rx_bytes"]),
                network_tx_bytes=int(data["network_tx_bytes"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError(
                code="invalid_response",
                message=f"Failed to parse metrics response: {e}",
            ) from None

    # Internals

    def _deploy_payload(self, site: Site, domain_name: str) -> dict:
        return {
            "name": site.name,
            "domain": domain_name,
            "docker_image": site.docker_image,
            "environment_vars": dict(site.environment_vars),
            "port": site.port,
            "ssl_enabled": site.ssl_enabled,
            "config_files": [
                {
                    "name": cf.name,
                    "content": cf.content,
                    "container_path": cf.container_path,
                }
                for cf in site.config_files
            ],
            "traefik_labels": site.traefik_labels(domain_name),
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        api_key: str,
        path: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> httpx.Response:
        """
        Send one authenticated request and return a 2xx response.

        Raises:
            AuthError: If no API key is configured
            RequestTimeoutError: If the request timed out
            NetworkError: On any other transport failure
            ServerError: On a non-2xx response
        """
        if not api_key:
            raise AuthError(
                code="missing_api_key",
                message="Node has no API key configured",
                details={"endpoint": endpoint},
            )

        url = f"{endpoint.rstrip('/')}{self.API_PREFIX}{path}"
        client = self._ensure_client()

        try:
            response = await client.request(
                method,
                url,
                json=json,
                params=params,
                headers={"Authorization": f"Bearer {api_key}"},
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                code="timeout",
                message=f"Request timed out: {method} {url}",
                details={"url": url, "error": str(e)},
            ) from e
        except httpx.HTTPError as e:
            raise NetworkError(
                code="network_error",
                message=f"Network error: {e}",
                details={"url": url},
            ) from e

        if not response.is_success:
            raise ServerError(
                status=response.status_code,
                message=response.text or "Unknown error",
                details={"url": url},
            )
        return response

    def _json_object(self, response: httpx.Response, what: str) -> dict:
        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError(
                code="invalid_response",
                message=f"Failed to parse {what}: {e}",
            ) from None
        if not isinstance(data, dict):
            raise InvalidResponseError(
                code="invalid_response",
                message=f"Failed to parse {what}: expected a JSON object",
            )
        return data

    def _docker_info(self, data: Any) -> DockerInfo:
        try:
            return DockerInfo(
                version=str(data["version"]),
                containers_running=int(data["containers_running"]),
                images_count=int(data["images_count"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError(
                code="invalid_response",
                message=f"Failed to parse Docker info: {e}",
            ) from None

    def _traefik_info(self, data: Any) -> TraefikInfo:
        try:
            return TraefikInfo(
                version=str(data["version"]),
                routers_count=int(data["routers_count"]),
                services_count=int(data["services_count"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError(
                code="invalid_response",
                message=f"Failed to parse Traefik info: {e}",
            ) from None
