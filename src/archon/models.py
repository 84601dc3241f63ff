"""
Data models for the Archon console.

This module defines the inventory entities (sites, domains, nodes, DNS
records) and the read-only data the remote node API reports about them.
Entities reference each other by id only; lookups go through the owning
collections in InventoryState.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

from .enums import DnsRecordType, NodeStatus, SiteStatus


def new_id() -> str:
    """Mint a fresh entity or operation id."""
    return str(uuid.uuid4())


def utc_now() -> str:
    """Current time as an ISO 8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ConfigFile:
    """A file mounted into a site's container."""

    name: str
    container_path: str
    content: str = ""


@dataclass
class Site:
    """A containerised site deployed to one node and routed by one domain."""

    id: str
    name: str
    domain_id: str
    node_id: str
    docker_image: str
    port: int
    environment_vars: dict[str, str] = field(default_factory=dict)
    ssl_enabled: bool = True
    config_files: list[ConfigFile] = field(default_factory=list)
    status: SiteStatus = SiteStatus.INACTIVE
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    @classmethod
    def new(
        cls,
        name: str,
        domain_id: str,
        node_id: str,
        docker_image: str,
        port: int,
    ) -> "Site":
        """Create an inactive site with a fresh id."""
        now = utc_now()
        return cls(
            id=new_id(),
            name=name,
            domain_id=domain_id,
            node_id=node_id,
            docker_image=docker_image,
            port=port,
            created_at=now,
            updated_at=now,
        )

    def traefik_labels(self, domain_name: str) -> dict[str, str]:
        """
        Build the Docker labels that route a domain to this site via Traefik.

        Args:
            domain_name: Host name the router should match

        Returns:
            Mapping of label name to value
        """
        router = f"site-{self.id}"
        labels = {
            "traefik.enable": "true",
            f"traefik.http.routers.{router}.rule": f"Host(`{domain_name}`)",
            f"traefik.http.routers.{router}.entrypoints": (
                "websecure" if self.ssl_enabled else "web"
            ),
            f"traefik.http.services.{router}.loadbalancer.server.port": str(self.port),
        }
        if self.ssl_enabled:
            labels[f"traefik.http.routers.{router}.tls"] = "true"
            labels[f"traefik.http.routers.{router}.tls.certresolver"] = "letsencrypt"
        return labels


@dataclass
class DnsRecord:
    """A DNS record; id stays None until the provider has created it."""

    record_type: DnsRecordType
    name: str
    value: str
    ttl: Optional[int] = None
    proxied: bool = False
    id: Optional[str] = None


@dataclass(frozen=True)
class CloudflareDns:
    """Cloudflare-managed zone."""

    api_token: str
    zone_id: str

    @property
    def provider_name(self) -> str:
        return "Cloudflare"


@dataclass(frozen=True)
class Route53Dns:
    """AWS Route53-managed zone."""

    access_key: str
    secret_key: str
    hosted_zone_id: str

    @property
    def provider_name(self) -> str:
        return "Route53"


@dataclass(frozen=True)
class ManualDns:
    """DNS managed outside this system."""

    @property
    def provider_name(self) -> str:
        return "Manual"


DnsProviderConfig = Union[CloudflareDns, Route53Dns, ManualDns]


@dataclass
class Domain:
    """A domain name, its DNS provider and its known records."""

    id: str
    name: str
    dns_provider: DnsProviderConfig
    dns_records: list[DnsRecord] = field(default_factory=list)
    traefik_enabled: bool = True
    created_at: str = field(default_factory=utc_now)

    @classmethod
    def new(cls, name: str, dns_provider: DnsProviderConfig) -> "Domain":
        """Create a domain with a fresh id and no records."""
        return cls(id=new_id(), name=name, dns_provider=dns_provider)

    @property
    def is_manual_dns(self) -> bool:
        return isinstance(self.dns_provider, ManualDns)


@dataclass
class DockerInfo:
    """Docker engine summary reported by a node."""

    version: str
    containers_running: int
    images_count: int


@dataclass
class TraefikInfo:
    """Traefik router summary reported by a node."""

    version: str
    routers_count: int
    services_count: int


@dataclass
class Node:
    """A deployment target running the node agent."""

    id: str
    name: str
    api_endpoint: str
    api_key: str
    ip_address: str
    status: NodeStatus = NodeStatus.UNKNOWN
    docker_info: Optional[DockerInfo] = None
    traefik_info: Optional[TraefikInfo] = None
    last_health_check: Optional[str] = None

    @classmethod
    def new(cls, name: str, api_endpoint: str, api_key: str, ip_address: str) -> "Node":
        """Create a node in unknown status with a fresh id."""
        return cls(
            id=new_id(),
            name=name,
            api_endpoint=api_endpoint,
            api_key=api_key,
            ip_address=ip_address,
        )

    def update_health(
        self,
        status: NodeStatus,
        docker_info: Optional[DockerInfo],
        traefik_info: Optional[TraefikInfo],
        checked_at: Optional[str] = None,
    ) -> None:
        """Record the outcome of a health check."""
        self.status = status
        self.docker_info = docker_info
        self.traefik_info = traefik_info
        self.last_health_check = checked_at or utc_now()


@dataclass
class ContainerMetrics:
    """Resource usage of a site's container."""

    cpu_usage_percent: float
    memory_usage_mb: int
    memory_limit_mb: int
    network_rx_bytes: int
    network_tx_bytes: int
