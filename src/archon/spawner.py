"""
Task Spawner for background operations.

The dispatcher registers an operation and hands the spawner a job: a
self-contained snapshot of everything the remote calls need (copied
credentials, endpoint and entity payload, never a live reference into the
state). The spawner runs each job as an independent asyncio task that
reports exactly one OperationCompleted into the shared inbound queue.
"""

import asyncio
import copy
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .actions import (
    DnsSynced,
    Logs,
    Metrics,
    NodeHealth,
    NodeStats,
    OperationCompleted,
    OperationResult,
    SiteDeleted,
    SiteDeployed,
    SiteRestarted,
    SiteStopped,
    SiteUpdated,
)
from .audit_logger import AuditLogger
from .dns_providers import DnsProvider, create_provider
from .enums import OperationKind
from .exceptions import ArchonError
from .models import DnsProviderConfig, Node, Site
from .node_client import NodeClient


@dataclass(frozen=True)
class NodeTarget:
    """Endpoint and credential of one node, copied at spawn time."""

    node_id: str
    api_endpoint: str
    api_key: str

    @classmethod
    def of(cls, node: Node) -> "NodeTarget":
        return cls(node.id, node.api_endpoint, node.api_key)


@dataclass(frozen=True)
class SiteJob:
    """Deploy, update, delete, stop or restart one site."""

    kind: OperationKind
    site: Site
    node: NodeTarget
    domain_name: Optional[str] = None

    @classmethod
    def snapshot(
        cls,
        kind: OperationKind,
        site: Site,
        node: Node,
        domain_name: Optional[str] = None,
    ) -> "SiteJob":
        return cls(kind, copy.deepcopy(site), NodeTarget.of(node), domain_name)


@dataclass(frozen=True)
class DnsSyncJob:
    """Fetch a domain's records from its provider."""

    domain_id: str
    domain_name: str
    provider: DnsProviderConfig


@dataclass(frozen=True)
class NodeJob:
    """Health check or stats fetch for one node."""

    kind: OperationKind
    node: NodeTarget


@dataclass(frozen=True)
class SiteMonitorJob:
    """Logs or metrics fetch for one site."""

    kind: OperationKind
    site_id: str
    node: NodeTarget


Job = Union[SiteJob, DnsSyncJob, NodeJob, SiteMonitorJob]


class TaskSpawner:
    """
    Launches background jobs and funnels their outcome into one queue.

    Each spawned task delivers exactly one OperationCompleted for the
    operation id it was given: a typed result on success, the error
    message on any failure. Tasks never touch the console state.
    """

    COMPONENT = "TaskSpawner"

    def __init__(
        self,
        outbox: asyncio.Queue,
        node_client: NodeClient,
        provider_factory: Callable[[DnsProviderConfig], DnsProvider] = create_provider,
        logger: Optional[AuditLogger] = None,
        log_lines: int = 100,
    ) -> None:
        """
        Initialize the spawner.

        Args:
            outbox: Inbound queue of the event loop
            node_client: Client for the node agent API
            provider_factory: Builds a DNS provider from a domain's config
            logger: Optional audit logger
            log_lines: Number of log lines requested per logs fetch
        """
        self._outbox = outbox
        self._node_client = node_client
        self._provider_factory = provider_factory
        self._logger = logger
        self._log_lines = log_lines
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def spawn(self, operation_id: str, job: Job) -> asyncio.Task:
        """
        Start a job for an already registered operation.

        Must be called from inside the running event loop.
        """
        task = asyncio.get_running_loop().create_task(
            self._run(operation_id, job),
            name=f"archon-op-{operation_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._log_info(
            f"Spawned {self._job_kind(job).value}",
            {"operation_id": operation_id, "job": type(job).__name__},
        )
        return task

    async def wait_idle(self) -> None:
        """Wait until every spawned task has delivered its completion."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel whatever is still running."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, operation_id: str, job: Job) -> None:
        try:
            result = await self._execute(job)
        except asyncio.CancelledError:
            raise
        except ArchonError as e:
            self._log_error(
                f"Operation {operation_id} failed",
                {"operation_id": operation_id, "error": e.to_dict()},
            )
            completion = OperationCompleted.failed(operation_id, e.message)
        except Exception as e:
            self._log_error(
                f"Operation {operation_id} failed unexpectedly",
                {"operation_id": operation_id, "error_type": type(e).__name__},
            )
            completion = OperationCompleted.failed(operation_id, str(e) or type(e).__name__)
        else:
            completion = OperationCompleted.ok(operation_id, result)

        self._outbox.put_nowait(completion)

    async def _execute(self, job: Job) -> OperationResult:
        if isinstance(job, SiteJob):
            return await self._execute_site(job)
        if isinstance(job, DnsSyncJob):
            provider = self._provider_factory(job.provider)
            records = await provider.list_records(job.domain_name)
            return DnsSynced(job.domain_id, tuple(records))
        if isinstance(job, NodeJob):
            return await self._execute_node(job)
        if isinstance(job, SiteMonitorJob):
            return await self._execute_monitor(job)
        raise TypeError(f"Unknown job type: {type(job).__name__}")

    async def _execute_site(self, job: SiteJob) -> OperationResult:
        client = self._node_client
        node = job.node
        site = job.site

        if job.kind == OperationKind.DEPLOY_SITE:
            await client.deploy_site(node.api_endpoint, node.api_key, site, job.domain_name or "")
            return SiteDeployed(site.id)
        if job.kind == OperationKind.UPDATE_SITE:
            await client.update_site(node.api_endpoint, node.api_key, site, job.domain_name or "")
            return SiteUpdated(site.id)
        if job.kind == OperationKind.DELETE_SITE:
            await client.delete_site(node.api_endpoint, node.api_key, site.id)
            return SiteDeleted(site.id)
        if job.kind == OperationKind.STOP_SITE:
            await client.stop_site(node.api_endpoint, node.api_key, site.id)
            return SiteStopped(site.id)
        if job.kind == OperationKind.RESTART_SITE:
            await client.restart_site(node.api_endpoint, node.api_key, site.id)
            return SiteRestarted(site.id)
        raise ValueError(f"Not a site operation: {job.kind.value}")

    async def _execute_node(self, job: NodeJob) -> OperationResult:
        node = job.node
        if job.kind == OperationKind.NODE_HEALTH_CHECK:
            health = await self._node_client.health_check(node.api_endpoint, node.api_key)
            return NodeHealth(node.node_id, health.status, health.docker, health.traefik)
        if job.kind == OperationKind.FETCH_NODE_STATS:
            # Independent calls; either failure fails the operation
            docker, traefik = await asyncio.gather(
                self._node_client.get_docker_info(node.api_endpoint, node.api_key),
                self._node_client.get_traefik_info(node.api_endpoint, node.api_key),
            )
            return NodeStats(node.node_id, docker, traefik)
        raise ValueError(f"Not a node operation: {job.kind.value}")

    async def _execute_monitor(self, job: SiteMonitorJob) -> OperationResult:
        node = job.node
        if job.kind == OperationKind.FETCH_LOGS:
            lines = await self._node_client.get_container_logs(
                node.api_endpoint, node.api_key, job.site_id, self._log_lines
            )
            return Logs(job.site_id, tuple(lines))
        if job.kind == OperationKind.FETCH_METRICS:
            metrics = await self._node_client.get_container_metrics(
                node.api_endpoint, node.api_key, job.site_id
            )
            return Metrics(job.site_id, metrics)
        raise ValueError(f"Not a monitoring operation: {job.kind.value}")

    @staticmethod
    def _job_kind(job: Job) -> OperationKind:
        if isinstance(job, DnsSyncJob):
            return OperationKind.SYNC_DNS
        return job.kind

    def _log_info(self, message: str, data: dict) -> None:
        """Log an info message if logger is available."""
        if self._logger:
            self._logger.info(self.COMPONENT, message, data)

    def _log_error(self, message: str, data: dict) -> None:
        """Log an error message if logger is available."""
        if self._logger:
            self._logger.log_error(self.COMPONENT, message, additional_data=data)
