"""
Enumeration types for the Archon console.

These enums provide type-safe constants for entity status, DNS record types,
operation lifecycle, and UI navigation throughout the system.
"""

from enum import Enum


class SiteStatus(Enum):
    """Deployment status of a site."""

    INACTIVE = "inactive"
    DEPLOYING = "deploying"
    RUNNING = "running"
    FAILED = "failed"
    STOPPED = "stopped"


class NodeStatus(Enum):
    """Last observed status of a deployment node."""

    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"
    DEGRADED = "degraded"


class DnsRecordType(Enum):
    """Supported DNS record types."""

    A = "A"
    AAAA = "AAAA"
    CNAME = "CNAME"
    MX = "MX"
    TXT = "TXT"
    SRV = "SRV"

    @classmethod
    def parse(cls, value: str) -> "DnsRecordType":
        """Parse a record type case-insensitively."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Invalid DNS record type: {value}") from None


class NotificationLevel(Enum):
    """Severity of a user-facing notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class OperationStatus(Enum):
    """Lifecycle status of a background operation."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class OperationKind(Enum):
    """What a background operation does to its target entity."""

    DEPLOY_SITE = "deploy_site"
    UPDATE_SITE = "update_site"
    DELETE_SITE = "delete_site"
    STOP_SITE = "stop_site"
    RESTART_SITE = "restart_site"
    SYNC_DNS = "sync_dns"
    NODE_HEALTH_CHECK = "node_health_check"
    FETCH_NODE_STATS = "fetch_node_stats"
    FETCH_LOGS = "fetch_logs"
    FETCH_METRICS = "fetch_metrics"

    @property
    def mutates_site(self) -> bool:
        """True for operations that change a site on its node."""
        return self in _SITE_MUTATIONS


_SITE_MUTATIONS = frozenset({
    OperationKind.DEPLOY_SITE,
    OperationKind.UPDATE_SITE,
    OperationKind.DELETE_SITE,
    OperationKind.STOP_SITE,
    OperationKind.RESTART_SITE,
})


class Screen(Enum):
    """Screens of the console."""

    DASHBOARD = "dashboard"
    SITES_LIST = "sites_list"
    SITE_CREATE = "site_create"
    SITE_EDIT = "site_edit"
    SITE_DETAIL = "site_detail"
    DOMAINS_LIST = "domains_list"
    DOMAIN_CREATE = "domain_create"
    DOMAIN_EDIT = "domain_edit"
    DOMAIN_DNS_EDITOR = "domain_dns_editor"
    NODES_LIST = "nodes_list"
    NODE_CREATE = "node_create"
    NODE_EDIT = "node_edit"
    NODE_DETAIL = "node_detail"
    HELP = "help"


class ListKind(Enum):
    """Lists that carry a selection cursor."""

    SITES = "sites"
    DOMAINS = "domains"
    NODES = "nodes"
    DNS_RECORDS = "dns_records"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def rank(self) -> int:
        """Numeric severity used for level filtering."""
        return _LEVEL_RANKS[self]


_LEVEL_RANKS = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}
