"""
DNS provider bindings.

Each domain carries a provider configuration (Cloudflare, Route53 or
Manual). create_provider() turns that configuration into an object with a
uniform capability: list, create, update and delete records.

- Cloudflare talks to the Cloudflare v4 API over httpx.
- Route53 is not implemented and fails fast without any network call.
- Manual represents DNS managed outside this system and refuses every call.
"""

from abc import abstractmethod
from typing import Any, Optional, Protocol, runtime_checkable

import httpx

from .enums import DnsRecordType
from .exceptions import ProviderError
from .models import (
    CloudflareDns,
    DnsProviderConfig,
    DnsRecord,
    ManualDns,
    Route53Dns,
)


@runtime_checkable
class DnsProvider(Protocol):
    """Protocol defining the interface for DNS providers."""

    @abstractmethod
    async def list_records(self, domain: str) -> list[DnsRecord]:
        """
        List the records of a zone.

        Args:
            domain: Domain name the zone belongs to

        Returns:
            Records as the provider currently holds them
        """
        ...

    @abstractmethod
    async def create_record(self, domain: str, record: DnsRecord) -> DnsRecord:
        """Create a record; the returned copy carries the provider id."""
        ...

    @abstractmethod
    async def update_record(self, domain: str, record: DnsRecord) -> DnsRecord:
        """Update a record identified by record.id."""
        ...

    @abstractmethod
    async def delete_record(self, domain: str, record_id: str) -> None:
        """Delete a record by provider id."""
        ...

    @abstractmethod
    def get_name(self) -> str:
        """Provider name for messages and logs."""
        ...


class CloudflareProvider:
    """Cloudflare DNS via the v4 REST API."""

    BASE_URL = "https://api.cloudflare.com/client/v4"
    DEFAULT_TTL = 1  # Cloudflare's "automatic"

    def __init__(
        self,
        config: CloudflareDns,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the Cloudflare provider.

        Args:
            config: Zone id and API token
            timeout: Request timeout in seconds
            transport: Optional httpx transport for testing
        """
        self._api_token = config.api_token
        self._zone_id = config.zone_id
        self._timeout = timeout
        self._transport = transport

    def get_name(self) -> str:
        return "Cloudflare"

    def _records_url(self) -> str:
        return f"{self.BASE_URL}/zones/{self._zone_id}/dns_records"

    def _record_url(self, record_id: str) -> str:
        return f"{self._records_url()}/{record_id}"

    async def list_records(self, domain: str) -> list[DnsRecord]:
        result = await self._call("GET", self._records_url())
        if not isinstance(result, list):
            raise ProviderError(
                code="invalid_response",
                message="Cloudflare returned a non-list record set",
            )
        records = []
        for item in result:
            # Record types this console does not model are skipped
            try:
                records.append(self._from_cloudflare(item))
            except ProviderError:
                continue
        return records

    async def create_record(self, domain: str, record: DnsRecord) -> DnsRecord:
        result = await self._call("POST", self._records_url(), json=self._to_cloudflare(record))
        return self._from_cloudflare(result)

    async def update_record(self, domain: str, record: DnsRecord) -> DnsRecord:
        if not record.id:
            raise ProviderError(
                code="missing_record_id",
                message="Cannot update record without ID",
            )
        result = await self._call(
            "PUT", self._record_url(record.id), json=self._to_cloudflare(record)
        )
        return self._from_cloudflare(result)

    async def delete_record(self, domain: str, record_id: str) -> None:
        await self._call("DELETE", self._record_url(record_id))

    async def _call(self, method: str, url: str, json: Optional[dict] = None) -> Any:
        """Send one request and return the 'result' member of the envelope."""
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            transport=self._transport,
        ) as client:
            try:
                response = await client.request(
                    method,
                    url,
                    json=json,
                    headers={"Authorization": f"Bearer {self._api_token}"},
                )
            except httpx.HTTPError as e:
                raise ProviderError(
                    code="network_error",
                    message=f"Cloudflare request failed: {e}",
                    details={"method": method},
                ) from e

        if not response.is_success:
            raise ProviderError(
                code="api_error",
                message=f"Cloudflare API error: {response.text or 'Unknown error'}",
                details={"status": response.status_code},
            )

        try:
            envelope = response.json()
        except ValueError:
            raise ProviderError(
                code="invalid_response",
                message="Failed to parse Cloudflare response",
            ) from None

        if not isinstance(envelope, dict):
            raise ProviderError(
                code="invalid_response",
                message="Failed to parse Cloudflare response",
            )

        if not envelope.get("success", False):
            errors = ", ".join(
                f"{e.get('code')}: {e.get('message')}"
                for e in envelope.get("errors", [])
                if isinstance(e, dict)
            )
            raise ProviderError(
                code="api_error",
                message=f"Cloudflare API errors: {errors or 'unknown'}",
            )

        return envelope.get("result")

    def _to_cloudflare(self, record: DnsRecord) -> dict:
        data = {
            "type": record.record_type.value,
            "name": record.name,
            "content": record.value,
            "ttl": record.ttl if record.ttl is not None else self.DEFAULT_TTL,
            "proxied": record.proxied,
        }
        if record.id:
            data["id"] = record.id
        return data

    def _from_cloudflare(self, data: Any) -> DnsRecord:
        if not isinstance(data, dict):
            raise ProviderError(
                code="invalid_response",
                message="Cloudflare record is not an object",
            )
        try:
            record_type = DnsRecordType.parse(str(data.get("type", "")))
        except ValueError as e:
            raise ProviderError(
                code="invalid_record_type",
                message=f"Invalid DNS record type from Cloudflare: {e}",
            ) from None
        ttl = data.get("ttl")
        return DnsRecord(
            record_type=record_type,
            name=str(data.get("name", "")),
            value=str(data.get("content", "")),
            ttl=int(ttl) if ttl is not None else None,
            proxied=bool(data.get("proxied", False)),
            id=data.get("id"),
        )


class Route53Provider:
    """AWS Route53; every call fails fast until the binding exists."""

    def __init__(self, config: Route53Dns) -> None:
        self._hosted_zone_id = config.hosted_zone_id

    def get_name(self) -> str:
        return "Route53"

    def _not_implemented(self, operation: str) -> ProviderError:
        return ProviderError(
            code="not_implemented",
            message=f"Route53 provider does not implement {operation}",
            details={"hosted_zone_id": self._hosted_zone_id},
        )

    async def list_records(self, domain: str) -> list[DnsRecord]:
        raise self._not_implemented("list_records")

    async def create_record(self, domain: str, record: DnsRecord) -> DnsRecord:
        raise self._not_implemented("create_record")

    async def update_record(self, domain: str, record: DnsRecord) -> DnsRecord:
        raise self._not_implemented("update_record")

    async def delete_record(self, domain: str, record_id: str) -> None:
        raise self._not_implemented("delete_record")


class ManualProvider:
    """DNS managed by hand outside this system; every call is refused."""

    def get_name(self) -> str:
        return "Manual"

    def _refused(self, operation: str) -> ProviderError:
        return ProviderError(
            code="manual_dns",
            message=f"DNS is managed manually; {operation} is not available",
        )

    async def list_records(self, domain: str) -> list[DnsRecord]:
        raise self._refused("list_records")

    async def create_record(self, domain: str, record: DnsRecord) -> DnsRecord:
        raise self._refused("create_record")

    async def update_record(self, domain: str, record: DnsRecord) -> DnsRecord:
        raise self._refused("update_record")

    async def delete_record(self, domain: str, record_id: str) -> None:
        raise self._refused("delete_record")


def create_provider(config: DnsProviderConfig, timeout: float = 30.0) -> DnsProvider:
    """
    Build the provider binding for a domain's DNS configuration.

    Args:
        config: The domain's provider configuration
        timeout: Request timeout for providers that make HTTP calls

    Returns:
        A DnsProvider
    """
    if isinstance(config, CloudflareDns):
        return CloudflareProvider(config, timeout=timeout)
    if isinstance(config, Route53Dns):
        return Route53Provider(config)
    if isinstance(config, ManualDns):
        return ManualProvider()
    raise ProviderError(
        code="unknown_provider",
        message=f"Unknown DNS provider configuration: {type(config).__name__}",
    )
