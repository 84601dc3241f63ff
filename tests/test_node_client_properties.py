"""
Property-based tests for the node agent client.

Requests are answered by httpx.MockTransport handlers; no network access
is needed.
"""

import asyncio
import json

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from archon.enums import NodeStatus, SiteStatus
from archon.exceptions import (
    AuthError,
    InvalidResponseError,
    NetworkError,
    RequestTimeoutError,
    ServerError,
)
from archon.models import Site
from archon.node_client import NodeClient


ENDPOINT = "http://10.0.0.5:8080/"


def run(coro):
    return asyncio.run(coro)


def client_for(handler) -> NodeClient:
    return NodeClient(timeout=5.0, transport=httpx.MockTransport(handler))


class TestErrorMappingProperty:
    """Property-based tests for mapping failures onto ArchonError."""

    @given(status=st.integers(min_value=400, max_value=599), body=st.text(
        alphabet=st.characters(whitelist_categories=("L", "N")), max_size=30
    ))
    @settings(max_examples=50)
    def test_non_success_status_is_server_error(self, status: int, body: str) -> None:
        """
        Property 1: Any non-2xx answer raises ServerError carrying the status
        and the body text.
        """
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, text=body)

        async def call():
            async with client_for(handler) as client:
                await client.stop_site(ENDPOINT, "key", "site-1")

        with pytest.raises(ServerError) as exc_info:
            run(call())

        assert exc_info.value.status == status
        assert exc_info.value.message == f"Server error: {status} - {body or 'Unknown error'}"

    def test_timeout_maps_to_timeout_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow node", request=request)

        async def call():
            async with client_for(handler) as client:
                await client.health_check(ENDPOINT, "key")

        with pytest.raises(RequestTimeoutError):
            run(call())

    def test_connect_error_maps_to_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async def call():
            async with client_for(handler) as client:
                await client.delete_site(ENDPOINT, "key", "site-1")

        with pytest.raises(NetworkError):
            run(call())

    def test_malformed_body_is_invalid_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>not json</html>")

        async def call():
            async with client_for(handler) as client:
                await client.health_check(ENDPOINT, "key")

        with pytest.raises(InvalidResponseError):
            run(call())

    def test_unknown_status_value_is_invalid_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "exploded"})

        async def call():
            async with client_for(handler) as client:
                await client.health_check(ENDPOINT, "key")

        with pytest.raises(InvalidResponseError):
            run(call())

    def test_missing_api_key_fails_before_request(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={})

        async def call():
            async with client_for(handler) as client:
                await client.restart_site(ENDPOINT, "", "site-1")

        with pytest.raises(AuthError):
            run(call())
        assert calls == []


class TestRequestShapeProperty:
    """Tests for URLs, headers and payloads."""

    def test_requests_carry_bearer_token_and_prefix(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"logs": ["a", "b"]})

        async def call():
            async with client_for(handler) as client:
                return await client.get_container_logs(ENDPOINT, "s3cret", "site-1", lines=25)

        lines = run(call())

        assert lines == ["a", "b"]
        request = seen[0]
        assert request.headers["Authorization"] == "Bearer s3cret"
        assert request.url.path == "/api/v1/sites/site-1/logs"
        assert request.url.params["lines"] == "25"

    def test_deploy_posts_site_with_traefik_labels(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"site_id": "site-1", "container_id": "c-1", "status": "RUNNING"}
            )

        site = Site.new("blog", "d1", "n1", "nginx:latest", 8080)

        async def call():
            async with client_for(handler) as client:
                return await client.deploy_site(ENDPOINT, "key", site, "blog.example.com")

        response = run(call())

        assert response.status == SiteStatus.RUNNING
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/api/v1/sites/deploy"
        payload = json.loads(seen[0].content)
        assert payload["domain"] == "blog.example.com"
        assert payload["port"] == 8080
        assert payload["traefik_labels"]["traefik.enable"] == "true"

    def test_update_uses_put(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        site = Site.new("blog", "d1", "n1", "nginx:latest", 80)

        async def call():
            async with client_for(handler) as client:
                await client.update_site(ENDPOINT, "key", site, "blog.example.com")

        run(call())

        assert seen[0].method == "PUT"
        assert seen[0].url.path == f"/api/v1/sites/{site.id}"

    def test_health_parses_nested_info(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={
                "status": "online",
                "docker": {"version": "24.0", "containers_running": 3, "images_count": 7},
                "traefik": {"version": "2.11", "routers_count": 4, "services_count": 4},
            })

        async def call():
            async with client_for(handler) as client:
                return await client.health_check(ENDPOINT, "key")

        health = run(call())

        assert health.status == NodeStatus.ONLINE
        assert health.docker.containers_running == 3
        assert health.traefik.routers_count == 4

    def test_metrics_parse(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={
                "cpu_usage_percent": 12.5,
                "memory_usage_mb": 128,
                "memory_limit_mb": 512,
                "network_rx_bytes": 1000,
                "network_tx_bytes": 2000,
            })

        async def call():
            async with client_for(handler) as client:
                return await client.get_container_metrics(ENDPOINT, "key", "site-1")

        metrics = run(call())

        assert metrics.cpu_usage_percent == 12.5
        assert metrics.memory_limit_mb == 512

    @given(status=st.sampled_from(list(SiteStatus)), upper=st.booleans())
    @settings(max_examples=20)
    def test_site_status_parses_any_case(self, status: SiteStatus, upper: bool) -> None:
        """
        Property 2: The status endpoint answers with a known site status in
        any letter case.
        """
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            value = status.value.upper() if upper else status.value
            return httpx.Response(200, json={"site_id": "site-1", "status": value})

        async def call():
            async with client_for(handler) as client:
                return await client.get_site_status(ENDPOINT, "key", "site-1")

        assert run(call()) == status
        assert seen[0].method == "GET"
        assert seen[0].url.path == "/api/v1/sites/site-1/status"

    def test_site_status_without_status_field_is_invalid(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"site_id": "site-1"})

        async def call():
            async with client_for(handler) as client:
                await client.get_site_status(ENDPOINT, "key", "site-1")

        with pytest.raises(InvalidResponseError):
            run(call())
