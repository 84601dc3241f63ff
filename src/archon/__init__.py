"""
Archon - operator console for a small fleet of deployment nodes.

Tracks nodes, the sites deployed to them and the DNS domains routing to
those sites. All state changes go through a single action dispatcher;
remote work (deploys, health checks, DNS sync, logs and metrics) runs as
background operations that report back through one inbound queue.
"""

__version__ = "0.1.0"

from archon.exceptions import (
    ArchonError,
    ValidationError,
    NetworkError,
    AuthError,
    NotFoundError,
    ServerError,
    InvalidResponseError,
    RequestTimeoutError,
    ProviderError,
    ConfigError,
)
from archon.enums import (
    SiteStatus,
    NodeStatus,
    DnsRecordType,
    NotificationLevel,
    OperationStatus,
    OperationKind,
    Screen,
    ListKind,
    LogLevel,
)
from archon.models import (
    ConfigFile,
    Site,
    DnsRecord,
    CloudflareDns,
    Route53Dns,
    ManualDns,
    Domain,
    DockerInfo,
    TraefikInfo,
    Node,
    ContainerMetrics,
)
from archon.config import (
    Settings,
    LoggingConfig,
    ClientConfig,
    RuntimeConfig,
    runtime_config_from_env,
)
from archon.audit_logger import AuditLogger, LogEntry
from archon.inventory_store import Inventory, InventoryStore
from archon.notifications import Notification, NotificationQueue
from archon.navigation import View, Navigator, SelectionState
from archon.operations import AsyncOperation, OperationRegistry
from archon.state import InventoryState
from archon.node_client import NodeClient
from archon.dns_providers import (
    DnsProvider,
    CloudflareProvider,
    Route53Provider,
    ManualProvider,
    create_provider,
)
from archon.spawner import TaskSpawner
from archon.dispatcher import ActionDispatcher

__all__ = [
    # Exceptions
    "ArchonError",
    "ValidationError",
    "NetworkError",
    "AuthError",
    "NotFoundError",
    "ServerError",
    "InvalidResponseError",
    "RequestTimeoutError",
    "ProviderError",
    "ConfigError",
    # Enums
    "SiteStatus",
    "NodeStatus",
    "DnsRecordType",
    "NotificationLevel",
    "OperationStatus",
    "OperationKind",
    "Screen",
    "ListKind",
    "LogLevel",
    # Models
    "ConfigFile",
    "Site",
    "DnsRecord",
    "CloudflareDns",
    "Route53Dns",
    "ManualDns",
    "Domain",
    "DockerInfo",
    "TraefikInfo",
    "Node",
    "ContainerMetrics",
    # Configuration
    "Settings",
    "LoggingConfig",
    "ClientConfig",
    "RuntimeConfig",
    "runtime_config_from_env",
    # Logging
    "AuditLogger",
    "LogEntry",
    # Persistence
    "Inventory",
    "InventoryStore",
    # State
    "Notification",
    "NotificationQueue",
    "View",
    "Navigator",
    "SelectionState",
    "AsyncOperation",
    "OperationRegistry",
    "InventoryState",
    # Collaborators
    "NodeClient",
    "DnsProvider",
    "CloudflareProvider",
    "Route53Provider",
    "ManualProvider",
    "create_provider",
    # Orchestration
    "TaskSpawner",
    "ActionDispatcher",
]
