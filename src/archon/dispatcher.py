"""
Action Dispatcher: the single mutator of InventoryState.

ActionDispatcher.update() applies one action to the state. Apart from
mutating the state it may only schedule background work through the
spawner, write the inventory through the store (auto-save) and set the
quit flag. It never awaits.

Background operations follow a fixed lifecycle: the operation is
registered InProgress before its job is spawned, and the matching
OperationCompleted is the only thing that moves it to a terminal status.
Completions for unknown or already terminal operations are logged and
ignored, so a duplicate delivery never re-applies a merge.

At most one site-changing operation (deploy, update, delete, stop,
restart) may be in flight per site; read-only operations are
deduplicated per target and kind. A guarded intent only produces a
warning notification.
"""

import dataclasses
import ipaddress
from abc import abstractmethod
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from .actions import (
    Action,
    AddDnsRecord,
    AddNode,
    CheckAllNodesHealth,
    CheckNodeHealth,
    CreateDomain,
    CreateSite,
    DeleteDnsRecord,
    DeleteDomain,
    DeleteSite,
    DeploySite,
    DismissNotification,
    DnsSynced,
    FetchLogs,
    FetchMetrics,
    FetchNodeStats,
    LoadConfig,
    Logs,
    Metrics,
    NavigateBack,
    NavigateTo,
    NodeHealth,
    NodeStats,
    OperationCompleted,
    Quit,
    RemoveNode,
    RestartSite,
    SaveConfig,
    SelectItem,
    SelectNext,
    SelectPrevious,
    ShowNotification,
    SiteDeleted,
    SiteDeployed,
    SiteRestarted,
    SiteStopped,
    SiteUpdated,
    StopSite,
    SyncDnsRecords,
    UpdateDnsRecord,
    UpdateDomain,
    UpdateNode,
    UpdateSite,
)
from .audit_logger import AuditLogger
from .domain_names import DomainNameValidator
from .enums import ListKind, NotificationLevel, OperationKind, SiteStatus
from .exceptions import ConfigError
from .inventory_store import InventoryStore
from .models import DnsRecord, Domain, Node, Site, utc_now
from .navigation import View
from .operations import AsyncOperation
from .spawner import DnsSyncJob, Job, NodeJob, NodeTarget, SiteJob, SiteMonitorJob
from .state import InventoryState


SITE_MUTATIONS = tuple(kind for kind in OperationKind if kind.mutates_site)


@runtime_checkable
class Spawner(Protocol):
    """Anything that can run a job for a registered operation."""

    @abstractmethod
    def spawn(self, operation_id: str, job: Job) -> Any:
        ...


class ActionDispatcher:
    """Applies actions to the console state."""

    COMPONENT = "ActionDispatcher"

    def __init__(
        self,
        state: InventoryState,
        spawner: Spawner,
        store: InventoryStore,
        logger: Optional[AuditLogger] = None,
        domain_validator: Optional[DomainNameValidator] = None,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            state: The state this dispatcher owns
            spawner: Runs background jobs
            store: Durable inventory storage
            logger: Optional audit logger
            domain_validator: Validator used for domain names
        """
        self._state = state
        self._spawner = spawner
        self._store = store
        self._logger = logger
        self._domain_validator = domain_validator or DomainNameValidator()

        self._handlers: dict[type, Callable[[Any], None]] = {
            NavigateTo: self._navigate_to,
            NavigateBack: self._navigate_back,
            CreateSite: self._create_site,
            UpdateSite: self._update_site,
            DeleteSite: self._delete_site,
            DeploySite: self._deploy_site,
            StopSite: self._stop_site,
            RestartSite: self._restart_site,
            CreateDomain: self._create_domain,
            UpdateDomain: self._update_domain,
            DeleteDomain: self._delete_domain,
            AddDnsRecord: self._add_dns_record,
            UpdateDnsRecord: self._update_dns_record,
            DeleteDnsRecord: self._delete_dns_record,
            SyncDnsRecords: self._sync_dns_records,
            AddNode: self._add_node,
            UpdateNode: self._update_node,
            RemoveNode: self._remove_node,
            CheckNodeHealth: self._check_node_health,
            CheckAllNodesHealth: self._check_all_nodes_health,
            FetchNodeStats: self._fetch_node_stats,
            FetchLogs: self._fetch_logs,
            FetchMetrics: self._fetch_metrics,
            SelectNext: self._select_next,
            SelectPrevious: self._select_previous,
            SelectItem: self._select_item,
            OperationCompleted: self._operation_completed,
            ShowNotification: self._show_notification,
            DismissNotification: self._dismiss_notification,
            SaveConfig: self._save_config,
            LoadConfig: self._load_config,
            Quit: self._quit,
        }

        self._merges: dict[type, Callable[[Any], None]] = {
            SiteDeployed: self._merge_site_running,
            SiteUpdated: self._merge_site_running,
            SiteRestarted: self._merge_site_running,
            SiteStopped: self._merge_site_stopped,
            SiteDeleted: self._merge_site_deleted,
            DnsSynced: self._merge_dns_synced,
            NodeHealth: self._merge_node_health,
            NodeStats: self._merge_node_stats,
            Logs: self._merge_logs,
            Metrics: self._merge_metrics,
        }

    @property
    def state(self) -> InventoryState:
        return self._state

    def update(self, action: Action) -> None:
        """
        Apply one action.

        Raises:
            TypeError: If the action is not part of the vocabulary
        """
        handler = self._handlers.get(type(action))
        if handler is None:
            raise TypeError(f"Unknown action: {type(action).__name__}")
        self._log_debug(f"Dispatching {type(action).__name__}")
        handler(action)

    # Navigation

    def _navigate_to(self, action: NavigateTo) -> None:
        self._state.navigator.navigate_to(View(action.screen, action.target_id))
        self._state.clamp_selection()

    def _navigate_back(self, action: NavigateBack) -> None:
        self._state.navigator.navigate_back()
        self._state.clamp_selection()

    # Sites

    def _create_site(self, action: CreateSite) -> None:
        site = action.site
        if self._state.get_site(site.id) is not None:
            self._notify_error(f"Site with id {site.id} already exists")
            return
        problem = self._check_site_references(site)
        if problem:
            self._notify_error(problem)
            return

        self._state.sites.append(site)
        self._notify_success(f"Site '{site.name}' created")
        self._auto_save()

        # New sites are deployed right away
        self._start_site_operation(OperationKind.DEPLOY_SITE, site, warn_if_busy=False)

    def _update_site(self, action: UpdateSite) -> None:
        current = self._state.get_site(action.site_id)
        if current is None:
            self._notify_error(f"Site {action.site_id} not found")
            return
        if self._state.registry.in_flight(current.id, SITE_MUTATIONS):
            self._notify_busy(current.name)
            return

        replacement = dataclasses.replace(
            action.site,
            id=current.id,
            created_at=current.created_at,
            updated_at=utc_now(),
        )
        problem = self._check_site_references(replacement)
        if problem:
            self._notify_error(problem)
            return

        index = self._state.sites.index(current)
        self._state.sites[index] = replacement
        self._notify_success(f"Site '{replacement.name}' updated")
        self._auto_save()

        self._start_site_operation(OperationKind.UPDATE_SITE, replacement, warn_if_busy=False)

    def _delete_site(self, action: DeleteSite) -> None:
        # The site is removed once the node confirms the deletion
        site = self._state.get_site(action.site_id)
        if site is not None:
            self._start_site_operation(OperationKind.DELETE_SITE, site)

    def _deploy_site(self, action: DeploySite) -> None:
        site = self._state.get_site(action.site_id)
        if site is not None:
            self._start_site_operation(OperationKind.DEPLOY_SITE, site)

    def _stop_site(self, action: StopSite) -> None:
        site = self._state.get_site(action.site_id)
        if site is not None:
            self._start_site_operation(OperationKind.STOP_SITE, site)

    def _restart_site(self, action: RestartSite) -> None:
        site = self._state.get_site(action.site_id)
        if site is not None:
            self._start_site_operation(OperationKind.RESTART_SITE, site)

    def _check_site_references(self, site: Site) -> Optional[str]:
        if self._state.get_domain(site.domain_id) is None:
            return f"Domain {site.domain_id} not found"
        if self._state.get_node(site.node_id) is None:
            return f"Node {site.node_id} not found"
        if not 0 < site.port < 65536:
            return f"Invalid port: {site.port}"
        return None

    def _start_site_operation(
        self,
        kind: OperationKind,
        site: Site,
        warn_if_busy: bool = True,
    ) -> Optional[AsyncOperation]:
        if self._state.registry.in_flight(site.id, SITE_MUTATIONS):
            if warn_if_busy:
                self._notify_busy(site.name)
            else:
                self._log_info("Site busy, operation skipped", {"site_id": site.id, "kind": kind.value})
            return None

        node = self._state.node_for(site)
        if node is None:
            self._notify_error(f"Node for site '{site.name}' not found")
            return None

        domain_name = None
        if kind in (OperationKind.DEPLOY_SITE, OperationKind.UPDATE_SITE):
            domain = self._state.domain_for(site)
            if domain is None:
                self._notify_error(f"Domain for site '{site.name}' not found")
                return None
            domain_name = domain.name
            site.status = SiteStatus.DEPLOYING
            site.updated_at = utc_now()

        return self._launch(kind, site.id, SiteJob.snapshot(kind, site, node, domain_name))

    # Domains

    def _create_domain(self, action: CreateDomain) -> None:
        domain = action.domain
        if self._state.get_domain(domain.id) is not None:
            self._notify_error(f"Domain with id {domain.id} already exists")
            return
        name = self._canonical_domain_name(domain.name)
        if name is None:
            return
        if any(d.name == name for d in self._state.domains):
            self._notify_error(f"Domain {name} already exists")
            return

        self._state.domains.append(dataclasses.replace(domain, name=name))
        self._notify_success(f"Domain {name} created")
        self._auto_save()

    def _update_domain(self, action: UpdateDomain) -> None:
        current = self._state.get_domain(action.domain_id)
        if current is None:
            self._notify_error(f"Domain {action.domain_id} not found")
            return
        name = self._canonical_domain_name(action.domain.name)
        if name is None:
            return
        if any(d.name == name and d.id != current.id for d in self._state.domains):
            self._notify_error(f"Domain {name} already exists")
            return

        replacement = dataclasses.replace(
            action.domain, id=current.id, name=name, created_at=current.created_at
        )
        index = self._state.domains.index(current)
        self._state.domains[index] = replacement
        self._state.clamp_selection()
        self._notify_success(f"Domain {name} updated")
        self._auto_save()

    def _delete_domain(self, action: DeleteDomain) -> None:
        # Sites keep their domain_id; lookups tolerate the dangling reference
        domain = self._state.remove_domain(action.domain_id)
        if domain is None:
            self._notify_error(f"Domain {action.domain_id} not found")
            return
        self._notify_success(f"Domain {domain.name} deleted")
        self._auto_save()

    def _canonical_domain_name(self, raw_name: str) -> Optional[str]:
        result = self._domain_validator.validate(raw_name)
        if not result.valid:
            self._notify_error(f"Invalid domain name: {result.error}")
            return None
        return result.canonical_name

    def _add_dns_record(self, action: AddDnsRecord) -> None:
        domain = self._state.get_domain(action.domain_id)
        if domain is None:
            self._notify_error(f"Domain {action.domain_id} not found")
            return
        domain.dns_records.append(self._with_default_ttl(action.record))
        self._notify_success("DNS record added")
        self._auto_save()

    def _update_dns_record(self, action: UpdateDnsRecord) -> None:
        domain = self._state.get_domain(action.domain_id)
        if domain is None:
            self._notify_error(f"Domain {action.domain_id} not found")
            return
        if not 0 <= action.index < len(domain.dns_records):
            self._notify_error(f"No DNS record at position {action.index}")
            return
        domain.dns_records[action.index] = self._with_default_ttl(action.record)
        self._notify_success("DNS record updated")
        self._auto_save()

    def _delete_dns_record(self, action: DeleteDnsRecord) -> None:
        domain = self._state.get_domain(action.domain_id)
        if domain is None:
            self._notify_error(f"Domain {action.domain_id} not found")
            return
        if not 0 <= action.index < len(domain.dns_records):
            self._notify_error(f"No DNS record at position {action.index}")
            return
        del domain.dns_records[action.index]
        self._state.clamp_selection()
        self._notify_success("DNS record deleted")
        self._auto_save()

    def _with_default_ttl(self, record: DnsRecord) -> DnsRecord:
        if record.ttl is not None:
            return record
        return dataclasses.replace(record, ttl=self._state.settings.default_dns_ttl)

    def _sync_dns_records(self, action: SyncDnsRecords) -> None:
        domain = self._state.get_domain(action.domain_id)
        if domain is None:
            return
        if domain.is_manual_dns:
            self._log_info(
                "DNS sync skipped for manually managed domain",
                {"domain_id": domain.id, "domain": domain.name},
            )
            return
        if self._is_duplicate_read(domain.id, OperationKind.SYNC_DNS, domain.name):
            return
        self._launch(
            OperationKind.SYNC_DNS,
            domain.id,
            DnsSyncJob(domain.id, domain.name, domain.dns_provider),
        )

    # Nodes

    def _add_node(self, action: AddNode) -> None:
        node = action.node
        if self._state.get_node(node.id) is not None:
            self._notify_error(f"Node with id {node.id} already exists")
            return
        problem = self._check_node(node)
        if problem:
            self._notify_error(problem)
            return
        self._state.nodes.append(node)
        self._notify_success(f"Node '{node.name}' added")
        self._auto_save()

    def _update_node(self, action: UpdateNode) -> None:
        current = self._state.get_node(action.node_id)
        if current is None:
            self._notify_error(f"Node {action.node_id} not found")
            return
        problem = self._check_node(action.node)
        if problem:
            self._notify_error(problem)
            return
        replacement = dataclasses.replace(action.node, id=current.id)
        index = self._state.nodes.index(current)
        self._state.nodes[index] = replacement
        self._notify_success(f"Node '{replacement.name}' updated")
        self._auto_save()

    def _remove_node(self, action: RemoveNode) -> None:
        node = self._state.remove_node(action.node_id)
        if node is None:
            self._notify_error(f"Node {action.node_id} not found")
            return
        self._notify_success(f"Node '{node.name}' removed")
        self._auto_save()

    def _check_node(self, node: Node) -> Optional[str]:
        try:
            ipaddress.ip_address(node.ip_address.strip())
        except ValueError:
            return f"Invalid IP address: {node.ip_address}"
        if not node.api_endpoint.startswith(("http://", "https://")):
            return f"Invalid API endpoint: {node.api_endpoint}"
        return None

    def _check_node_health(self, action: CheckNodeHealth) -> None:
        node = self._state.get_node(action.node_id)
        if node is None:
            return
        if self._is_duplicate_read(node.id, OperationKind.NODE_HEALTH_CHECK, node.name):
            return
        self._launch(
            OperationKind.NODE_HEALTH_CHECK,
            node.id,
            NodeJob(OperationKind.NODE_HEALTH_CHECK, NodeTarget.of(node)),
        )

    def _check_all_nodes_health(self, action: CheckAllNodesHealth) -> None:
        for node in list(self._state.nodes):
            if self._state.registry.in_flight(node.id, [OperationKind.NODE_HEALTH_CHECK]):
                self._log_debug("Health check already running", {"node_id": node.id})
                continue
            self._launch(
                OperationKind.NODE_HEALTH_CHECK,
                node.id,
                NodeJob(OperationKind.NODE_HEALTH_CHECK, NodeTarget.of(node)),
            )

    def _fetch_node_stats(self, action: FetchNodeStats) -> None:
        node = self._state.get_node(action.node_id)
        if node is None:
            return
        if self._is_duplicate_read(node.id, OperationKind.FETCH_NODE_STATS, node.name):
            return
        self._launch(
            OperationKind.FETCH_NODE_STATS,
            node.id,
            NodeJob(OperationKind.FETCH_NODE_STATS, NodeTarget.of(node)),
        )

    # Monitoring

    def _fetch_logs(self, action: FetchLogs) -> None:
        self._start_monitoring(OperationKind.FETCH_LOGS, action.site_id)

    def _fetch_metrics(self, action: FetchMetrics) -> None:
        self._start_monitoring(OperationKind.FETCH_METRICS, action.site_id)

    def _start_monitoring(self, kind: OperationKind, site_id: str) -> None:
        site = self._state.get_site(site_id)
        if site is None:
            return
        node = self._state.node_for(site)
        if node is None:
            self._notify_error(f"Node for site '{site.name}' not found")
            return
        if self._is_duplicate_read(site.id, kind, site.name):
            return
        self._launch(kind, site.id, SiteMonitorJob(kind, site.id, NodeTarget.of(node)))

    # Selection

    def _selection_target(self, list_kind: Optional[ListKind]) -> Optional[ListKind]:
        return list_kind if list_kind is not None else self._state.current_list()

    def _select_next(self, action: SelectNext) -> None:
        kind = self._selection_target(action.list_kind)
        if kind is not None:
            self._state.selection.select_next(kind, self._state.list_length(kind))

    def _select_previous(self, action: SelectPrevious) -> None:
        kind = self._selection_target(action.list_kind)
        if kind is not None:
            self._state.selection.select_previous(kind, self._state.list_length(kind))

    def _select_item(self, action: SelectItem) -> None:
        kind = self._selection_target(action.list_kind)
        if kind is not None:
            self._state.selection.select(kind, action.index, self._state.list_length(kind))

    # Completions

    def _operation_completed(self, action: OperationCompleted) -> None:
        operation = self._state.registry.get(action.operation_id)
        if operation is None:
            self._log_warn(
                "Completion for unknown operation ignored",
                {"operation_id": action.operation_id},
            )
            return
        if operation.is_terminal:
            self._log_warn(
                "Duplicate completion ignored",
                {"operation_id": operation.id, "status": operation.status.value},
            )
            return

        if action.error is not None or action.result is None:
            reason = action.error or "operation returned no result"
            self._state.registry.fail(operation.id, reason)
            self._log_error(
                f"{self._label(operation.kind)} failed",
                {"operation_id": operation.id, "target_id": operation.target_id, "reason": reason},
            )
            self._compensate(operation)
            self._notify_error(f"{self._label(operation.kind)} failed: {reason}")
            return

        merge = self._merges.get(type(action.result))
        if merge is None:
            raise TypeError(f"Unknown operation result: {type(action.result).__name__}")

        self._state.registry.complete(operation.id)
        self._log_info(
            f"{self._label(operation.kind)} completed",
            {"operation_id": operation.id, "target_id": operation.target_id},
        )
        merge(action.result)

    def _compensate(self, operation: AsyncOperation) -> None:
        # Deploy and update set the site to Deploying up front
        if operation.kind in (OperationKind.DEPLOY_SITE, OperationKind.UPDATE_SITE):
            site = self._state.get_site(operation.target_id)
            if site is not None:
                site.status = SiteStatus.FAILED
                site.updated_at = utc_now()
                self._auto_save()

    def _set_site_status(self, site_id: str, status: SiteStatus) -> Optional[Site]:
        site = self._state.get_site(site_id)
        if site is not None:
            site.status = status
            site.updated_at = utc_now()
        return site

    def _site_name(self, site: Optional[Site], site_id: str) -> str:
        return f"'{site.name}'" if site is not None else site_id

    def _merge_site_running(self, result: Any) -> None:
        site = self._set_site_status(result.site_id, SiteStatus.RUNNING)
        verb = {
            SiteDeployed: "deployed",
            SiteUpdated: "updated",
            SiteRestarted: "restarted",
        }[type(result)]
        self._notify_success(f"Site {self._site_name(site, result.site_id)} {verb}")
        self._auto_save()

    def _merge_site_stopped(self, result: SiteStopped) -> None:
        site = self._set_site_status(result.site_id, SiteStatus.STOPPED)
        self._notify_success(f"Site {self._site_name(site, result.site_id)} stopped")
        self._auto_save()

    def _merge_site_deleted(self, result: SiteDeleted) -> None:
        site = self._state.remove_site(result.site_id)
        self._notify_success(f"Site {self._site_name(site, result.site_id)} deleted")
        self._auto_save()

    def _merge_dns_synced(self, result: DnsSynced) -> None:
        domain = self._state.get_domain(result.domain_id)
        if domain is None:
            self._log_info("DNS records for deleted domain dropped", {"domain_id": result.domain_id})
            return
        domain.dns_records = list(result.records)
        self._state.clamp_selection()
        self._notify_success(f"DNS records of {domain.name} synced ({len(result.records)})")
        self._auto_save()

    def _merge_node_health(self, result: NodeHealth) -> None:
        node = self._state.get_node(result.node_id)
        if node is None:
            return
        node.update_health(result.status, result.docker_info, result.traefik_info)
        self._notify(f"Node '{node.name}' is {result.status.value}", NotificationLevel.INFO)
        self._auto_save()

    def _merge_node_stats(self, result: NodeStats) -> None:
        node = self._state.get_node(result.node_id)
        if node is None:
            return
        node.docker_info = result.docker_info
        node.traefik_info = result.traefik_info
        self._notify(f"Stats refreshed for node '{node.name}'", NotificationLevel.INFO)
        self._auto_save()

    def _merge_logs(self, result: Logs) -> None:
        if self._state.get_site(result.site_id) is not None:
            self._state.site_logs[result.site_id] = list(result.lines)

    def _merge_metrics(self, result: Metrics) -> None:
        if self._state.get_site(result.site_id) is not None:
            self._state.site_metrics[result.site_id] = result.metrics

    # Notifications

    def _show_notification(self, action: ShowNotification) -> None:
        self._state.notifications.push(action.notification)

    def _dismiss_notification(self, action: DismissNotification) -> None:
        self._state.notifications.dismiss()

    # System

    def _save_config(self, action: SaveConfig) -> None:
        if self._persist():
            self._notify_success("Configuration saved")

    def _load_config(self, action: LoadConfig) -> None:
        try:
            inventory = self._store.load()
        except ConfigError as e:
            self._log_error("Reload failed", {"error": e.to_dict()})
            self._notify_error(f"Reload failed: {e.message}")
            return
        self._state.apply_inventory(inventory)
        self._log_info("Configuration reloaded", {"path": str(self._store.file_path)})
        self._notify("Configuration reloaded", NotificationLevel.INFO)

    def _quit(self, action: Quit) -> None:
        self._auto_save()
        self._state.should_quit = True

    # Helpers

    def _launch(self, kind: OperationKind, target_id: str, job: Job) -> AsyncOperation:
        # Registration must precede the spawn
        operation = self._state.registry.register(kind, target_id)
        self._spawner.spawn(operation.id, job)
        return operation

    def _is_duplicate_read(self, target_id: str, kind: OperationKind, name: str) -> bool:
        if not self._state.registry.in_flight(target_id, [kind]):
            return False
        self._notify(
            f"{self._label(kind)} already running for {name}",
            NotificationLevel.WARNING,
        )
        return True

    def _notify_busy(self, site_name: str) -> None:
        self._notify(
            f"Another operation is already running for site '{site_name}'",
            NotificationLevel.WARNING,
        )

    def _auto_save(self) -> None:
        if self._state.settings.auto_save:
            self._persist()

    def _persist(self) -> bool:
        try:
            self._store.save(self._state.to_inventory())
        except ConfigError as e:
            self._log_error("Saving configuration failed", {"error": e.to_dict()})
            self._notify_error(f"Saving configuration failed: {e.message}")
            return False
        self._log_debug("Configuration saved", {"path": str(self._store.file_path)})
        return True

    @staticmethod
    def _label(kind: OperationKind) -> str:
        return kind.value.replace("_", " ").capitalize()

    def _notify(self, message: str, level: NotificationLevel) -> None:
        self._state.notifications.emit(message, level)

    def _notify_success(self, message: str) -> None:
        self._notify(message, NotificationLevel.SUCCESS)

    def _notify_error(self, message: str) -> None:
        self._notify(message, NotificationLevel.ERROR)

    def _log_debug(self, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.debug(self.COMPONENT, message, data)

    def _log_info(self, message: str, data: dict) -> None:
        """Log an info message if logger is available."""
        if self._logger:
            self._logger.info(self.COMPONENT, message, data)

    def _log_warn(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.warn(self.COMPONENT, message, data)

    def _log_error(self, message: str, data: dict) -> None:
        """Log an error message if logger is available."""
        if self._logger:
            self._logger.log_error(self.COMPONENT, message, additional_data=data)
