"""
Inventory Store module for durable local persistence.

The inventory (sites, domains, nodes and operator settings) is stored as a
TOML document. A missing file is replaced by a default inventory that is
written before first use. Every read, parse or write failure surfaces as a
ConfigError.
"""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import tomli_w

from . import __version__
from .config import Settings
from .enums import DnsRecordType, NodeStatus, SiteStatus
from .exceptions import ConfigError
from .models import (
    CloudflareDns,
    ConfigFile,
    DnsProviderConfig,
    DnsRecord,
    DockerInfo,
    Domain,
    ManualDns,
    Node,
    Route53Dns,
    Site,
    TraefikInfo,
)


@dataclass
class Inventory:
    """Everything that is persisted between runs."""

    version: str = __version__
    sites: list[Site] = field(default_factory=list)
    domains: list[Domain] = field(default_factory=list)
    nodes: list[Node] = field(default_factory=list)
    settings: Settings = field(default_factory=Settings)


def _drop_none(data: dict) -> dict:
    """TOML has no null; absent keys stand for None."""
    return {key: value for key, value in data.items() if value is not None}


def _table(data: dict, key: str, default: Optional[dict] = None) -> dict:
    """The table stored under key; raises TypeError for any other value."""
    value = data.get(key, {} if default is None else default)
    if not isinstance(value, dict):
        raise TypeError(f"'{key}' must be a table, got {type(value).__name__}")
    return value


def _tables(data: dict, key: str) -> list[dict]:
    """The array of tables stored under key."""
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise TypeError(f"'{key}' must be an array of tables")
    return value


class InventoryStore:
    """
    TOML-backed inventory storage.

    Loads and saves the complete inventory. Only the owner of the inventory
    state calls into the store, so writes are never concurrent.
    """

    def __init__(self, file_path: Path) -> None:
        """
        Initialize the inventory store.

        Args:
            file_path: Path to the inventory file (TOML format)
        """
        self._file_path = file_path

    def load(self) -> Inventory:
        """
        Load the inventory, creating a default file if none exists.

        Returns:
            The loaded Inventory

        Raises:
            ConfigError: If the file cannot be read, parsed, or created
        """
        if not self._file_path.exists():
            inventory = Inventory()
            self.save(inventory)
            return inventory

        try:
            with open(self._file_path, "rb") as f:
                raw_data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(
                code="parse_error",
                message=f"Failed to parse config file: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise ConfigError(
                code="io_error",
                message=f"Failed to read config file: {e}",
                details={"file_path": str(self._file_path)},
            )

        try:
            return self.inventory_from_dict(raw_data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ConfigError(
                code="schema_error",
                message=f"Invalid config file contents: {e!r}",
                details={"file_path": str(self._file_path)},
            )

    def save(self, inventory: Inventory) -> None:
        """
        Write the inventory to disk.

        Args:
            inventory: Inventory to persist

        Raises:
            ConfigError: If the inventory cannot be serialized or written
        """
        try:
            content = tomli_w.dumps(self.inventory_to_dict(inventory))
        except (TypeError, ValueError) as e:
            raise ConfigError(
                code="serialize_error",
                message=f"Failed to serialize config to TOML: {e}",
                details={"file_path": str(self._file_path)},
            )

        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._file_path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise ConfigError(
                code="io_error",
                message=f"Failed to write config file: {e}",
                details={"file_path": str(self._file_path)},
            )

    @property
    def file_path(self) -> Path:
        """Get the inventory file path."""
        return self._file_path

    # Serialization

    def inventory_to_dict(self, inventory: Inventory) -> dict:
        """Convert an Inventory into TOML-ready primitives."""
        return {
            "version": inventory.version,
            "settings": {
                "auto_save": inventory.settings.auto_save,
                "health_check_interval_seconds": inventory.settings.health_check_interval_seconds,
                "default_dns_ttl": inventory.settings.default_dns_ttl,
                "theme": inventory.settings.theme,
            },
            "sites": [self._site_to_dict(site) for site in inventory.sites],
            "domains": [self._domain_to_dict(domain) for domain in inventory.domains],
            "nodes": [self._node_to_dict(node) for node in inventory.nodes],
        }

    def inventory_from_dict(self, data: dict) -> Inventory:
        """Rebuild an Inventory from parsed TOML."""
        settings_data = _table(data, "settings")
        defaults = Settings()
        settings = Settings(
            auto_save=bool(settings_data.get("auto_save", defaults.auto_save)),
            health_check_interval_seconds=int(settings_data.get(
                "health_check_interval_seconds", defaults.health_check_interval_seconds
            )),
            default_dns_ttl=int(settings_data.get("default_dns_ttl", defaults.default_dns_ttl)),
            theme=str(settings_data.get("theme", defaults.theme)),
        )
        return Inventory(
            version=str(data.get("version", __version__)),
            sites=[self._site_from_dict(item) for item in _tables(data, "sites")],
            domains=[self._domain_from_dict(item) for item in _tables(data, "domains")],
            nodes=[self._node_from_dict(item) for item in _tables(data, "nodes")],
            settings=settings,
        )

    def _site_to_dict(self, site: Site) -> dict:
        return {
            "id": site.id,
            "name": site.name,
            "domain_id": site.domain_id,
            "node_id": site.node_id,
            "docker_image": site.docker_image,
            "port": site.port,
            "environment_vars": dict(site.environment_vars),
            "ssl_enabled": site.ssl_enabled,
            "config_files": [
                {
                    "name": cf.name,
                    "container_path": cf.container_path,
                    "content": cf.content,
                }
                for cf in site.config_files
            ],
            "status": site.status.value,
            "created_at": site.created_at,
            "updated_at": site.updated_at,
        }

    def _site_from_dict(self, data: dict) -> Site:
        return Site(
            id=data["id"],
            name=data["name"],
            domain_id=data["domain_id"],
            node_id=data["node_id"],
            docker_image=data["docker_image"],
            port=int(data["port"]),
            environment_vars={str(k): str(v) for k, v in _table(data, "environment_vars").items()},
            ssl_enabled=bool(data.get("ssl_enabled", True)),
            config_files=[
                ConfigFile(
                    name=cf["name"],
                    container_path=cf["container_path"],
                    content=cf.get("content", ""),
                )
                for cf in _tables(data, "config_files")
            ],
            status=SiteStatus(data.get("status", SiteStatus.INACTIVE.value)),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
        )

    def _domain_to_dict(self, domain: Domain) -> dict:
        return {
            "id": domain.id,
            "name": domain.name,
            "dns_provider": self._provider_to_dict(domain.dns_provider),
            "dns_records": [
                _drop_none({
                    "id": record.id,
                    "type": record.record_type.value,
                    "name": record.name,
                    "value": record.value,
                    "ttl": record.ttl,
                    "proxied": record.proxied,
                })
                for record in domain.dns_records
            ],
            "traefik_enabled": domain.traefik_enabled,
            "created_at": domain.created_at,
        }

    def _domain_from_dict(self, data: dict) -> Domain:
        return Domain(
            id=data["id"],
            name=data["name"],
            dns_provider=self._provider_from_dict(_table(data, "dns_provider", {"type": "manual"})),
            dns_records=[
                DnsRecord(
                    record_type=DnsRecordType.parse(record["type"]),
                    name=record["name"],
                    value=record["value"],
                    ttl=int(record["ttl"]) if "ttl" in record else None,
                    proxied=bool(record.get("proxied", False)),
                    id=record.get("id"),
                )
                for record in _tables(data, "dns_records")
            ],
            traefik_enabled=bool(data.get("traefik_enabled", True)),
            created_at=data["created_at"],
        )

    def _provider_to_dict(self, provider: DnsProviderConfig) -> dict:
        if isinstance(provider, CloudflareDns):
            return {
                "type": "cloudflare",
                "api_token": provider.api_token,
                "zone_id": provider.zone_id,
            }
        if isinstance(provider, Route53Dns):
            return {
                "type": "route53",
                "access_key": provider.access_key,
                "secret_key": provider.secret_key,
                "hosted_zone_id": provider.hosted_zone_id,
            }
        return {"type": "manual"}

    def _provider_from_dict(self, data: dict) -> DnsProviderConfig:
        kind = data.get("type", "manual")
        if kind == "cloudflare":
            return CloudflareDns(api_token=data["api_token"], zone_id=data["zone_id"])
        if kind == "route53":
            return Route53Dns(
                access_key=data["access_key"],
                secret_key=data["secret_key"],
                hosted_zone_id=data["hosted_zone_id"],
            )
        if kind == "manual":
            return ManualDns()
        raise ValueError(f"Unknown DNS provider type: {kind}")

    def _node_to_dict(self, node: Node) -> dict:
        return _drop_none({
            "id": node.id,
            "name": node.name,
            "api_endpoint": node.api_endpoint,
            "api_key": node.api_key,
            "ip_address": node.ip_address,
            "status": node.status.value,
            "docker_info": _drop_none({
                "version": node.docker_info.version,
                "containers_running": node.docker_info.containers_running,
                "images_count": node.docker_info.images_count,
            }) if node.docker_info else None,
            "traefik_info": _drop_none({
                "version": node.traefik_info.version,
                "routers_count": node.traefik_info.routers_count,
                "services_count": node.traefik_info.services_count,
            }) if node.traefik_info else None,
            "last_health_check": node.last_health_check,
        })

    def _node_from_dict(self, data: dict) -> Node:
        docker_data: dict[str, Any] = _table(data, "docker_info")
        traefik_data: dict[str, Any] = _table(data, "traefik_info")
        return Node(
            id=data["id"],
            name=data["name"],
            api_endpoint=data["api_endpoint"],
            api_key=data["api_key"],
            ip_address=data["ip_address"],
            status=NodeStatus(data.get("status", NodeStatus.UNKNOWN.value)),
            docker_info=DockerInfo(
                version=docker_data["version"],
                containers_running=int(docker_data["containers_running"]),
                images_count=int(docker_data["images_count"]),
            ) if docker_data else None,
            traefik_info=TraefikInfo(
                version=traefik_data["version"],
                routers_count=int(traefik_data["routers_count"]),
                services_count=int(traefik_data["services_count"]),
            ) if traefik_data else None,
            last_health_check=data.get("last_health_check"),
        )
