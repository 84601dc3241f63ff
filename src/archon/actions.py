"""
Action vocabulary for the Archon console.

Every state transition is triggered by exactly one of the actions below:
user intents produced by the input mapper, completions reported by
background operations, and system intents (save, reload, quit, periodic
health checks). Completion payloads are typed, one per operation kind.
"""

from dataclasses import dataclass
from typing import Optional, Union

from .enums import ListKind, NodeStatus, Screen
from .models import ContainerMetrics, DnsRecord, DockerInfo, Domain, Node, Site, TraefikInfo
from .notifications import Notification


# Completion payloads


@dataclass(frozen=True)
class SiteDeployed:
    site_id: str


@dataclass(frozen=True)
class SiteUpdated:
    site_id: str


@dataclass(frozen=True)
class SiteDeleted:
    site_id: str


@dataclass(frozen=True)
class SiteStopped:
    site_id: str


@dataclass(frozen=True)
class SiteRestarted:
    site_id: str


@dataclass(frozen=True)
class DnsSynced:
    """Records as currently held by the provider; replaces the local list."""

    domain_id: str
    records: tuple[DnsRecord, ...]


@dataclass(frozen=True)
class NodeHealth:
    node_id: str
    status: NodeStatus
    docker_info: Optional[DockerInfo] = None
    traefik_info: Optional[TraefikInfo] = None


@dataclass(frozen=True)
class NodeStats:
    node_id: str
    docker_info: DockerInfo
    traefik_info: TraefikInfo


@dataclass(frozen=True)
class Logs:
    site_id: str
    lines: tuple[str, ...]


@dataclass(frozen=True)
class Metrics:
    site_id: str
    metrics: ContainerMetrics


OperationResult = Union[
    SiteDeployed, SiteUpdated, SiteDeleted, SiteStopped, SiteRestarted,
    DnsSynced, NodeHealth, NodeStats, Logs, Metrics,
]


# Navigation


@dataclass(frozen=True)
class NavigateTo:
    screen: Screen
    target_id: Optional[str] = None


@dataclass(frozen=True)
class NavigateBack:
    pass


# Sites


@dataclass(frozen=True)
class CreateSite:
    site: Site


@dataclass(frozen=True)
class UpdateSite:
    site_id: str
    site: Site


@dataclass(frozen=True)
class DeleteSite:
    site_id: str


@dataclass(frozen=True)
class DeploySite:
    site_id: str


@dataclass(frozen=True)
class StopSite:
    site_id: str


@dataclass(frozen=True)
class RestartSite:
    site_id: str


# Domains and DNS records


@dataclass(frozen=True)
class CreateDomain:
    domain: Domain


@dataclass(frozen=True)
class UpdateDomain:
    domain_id: str
    domain: Domain


@dataclass(frozen=True)
class DeleteDomain:
    domain_id: str


@dataclass(frozen=True)
class AddDnsRecord:
    domain_id: str
    record: DnsRecord


@dataclass(frozen=True)
class UpdateDnsRecord:
    domain_id: str
    index: int
    record: DnsRecord


@dataclass(frozen=True)
class DeleteDnsRecord:
    domain_id: str
    index: int


@dataclass(frozen=True)
class SyncDnsRecords:
    domain_id: str


# Nodes


@dataclass(frozen=True)
class AddNode:
    node: Node


@dataclass(frozen=True)
class UpdateNode:
    node_id: str
    node: Node


@dataclass(frozen=True)
class RemoveNode:
    node_id: str


@dataclass(frozen=True)
class CheckNodeHealth:
    node_id: str


@dataclass(frozen=True)
class CheckAllNodesHealth:
    pass


@dataclass(frozen=True)
class FetchNodeStats:
    node_id: str


# Monitoring


@dataclass(frozen=True)
class FetchLogs:
    site_id: str


@dataclass(frozen=True)
class FetchMetrics:
    site_id: str


# Selection (list_kind None means the list shown on the current screen)


@dataclass(frozen=True)
class SelectNext:
    list_kind: Optional[ListKind] = None


@dataclass(frozen=True)
class SelectPrevious:
    list_kind: Optional[ListKind] = None


@dataclass(frozen=True)
class SelectItem:
    index: int
    list_kind: Optional[ListKind] = None


# Completion


@dataclass(frozen=True)
class OperationCompleted:
    """
    Terminal report of one background operation.

    Exactly one of result and error is set.
    """

    operation_id: str
    result: Optional[OperationResult] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, operation_id: str, result: OperationResult) -> "OperationCompleted":
        return cls(operation_id=operation_id, result=result)

    @classmethod
    def failed(cls, operation_id: str, error: str) -> "OperationCompleted":
        return cls(operation_id=operation_id, error=error)


# Notifications


@dataclass(frozen=True)
class ShowNotification:
    notification: Notification


@dataclass(frozen=True)
class DismissNotification:
    pass


# System


@dataclass(frozen=True)
class SaveConfig:
    pass


@dataclass(frozen=True)
class LoadConfig:
    pass


@dataclass(frozen=True)
class Quit:
    pass


Action = Union[
    NavigateTo, NavigateBack,
    CreateSite, UpdateSite, DeleteSite, DeploySite, StopSite, RestartSite,
    CreateDomain, UpdateDomain, DeleteDomain,
    AddDnsRecord, UpdateDnsRecord, DeleteDnsRecord, SyncDnsRecords,
    AddNode, UpdateNode, RemoveNode, CheckNodeHealth, CheckAllNodesHealth, FetchNodeStats,
    FetchLogs, FetchMetrics,
    SelectNext, SelectPrevious, SelectItem,
    OperationCompleted,
    ShowNotification, DismissNotification,
    SaveConfig, LoadConfig, Quit,
]
