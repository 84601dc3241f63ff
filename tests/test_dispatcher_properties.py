"""
Property-based tests for the action dispatcher.

Background work is replaced by a recording spawner and persistence by an
in-memory store, so every test drives ActionDispatcher.update() directly
and inspects the resulting state.
"""

import dataclasses
import tempfile
from pathlib import Path
from typing import Optional

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from archon.actions import (
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
    DnsSynced,
    FetchLogs,
    FetchNodeStats,
    LoadConfig,
    Logs,
    NavigateBack,
    NavigateTo,
    NodeHealth,
    NodeStats,
    OperationCompleted,
    Quit,
    RemoveNode,
    RestartSite,
    SaveConfig,
    SiteDeleted,
    SiteDeployed,
    SiteRestarted,
    SiteStopped,
    StopSite,
    SyncDnsRecords,
    UpdateDnsRecord,
    UpdateDomain,
    UpdateNode,
    UpdateSite,
)
from archon.config import Settings
from archon.dispatcher import ActionDispatcher
from archon.enums import (
    DnsRecordType,
    NodeStatus,
    NotificationLevel,
    OperationKind,
    OperationStatus,
    Screen,
    SiteStatus,
)
from archon.exceptions import ConfigError
from archon.inventory_store import Inventory, InventoryStore
from archon.models import (
    CloudflareDns,
    DnsRecord,
    DockerInfo,
    Domain,
    ManualDns,
    Node,
    Site,
    TraefikInfo,
)
from archon.spawner import DnsSyncJob, NodeJob, SiteJob
from archon.state import InventoryState


class RecordingSpawner:
    """Records spawned jobs and the operation status seen at spawn time."""

    def __init__(self) -> None:
        self.state: Optional[InventoryState] = None
        self.spawned: list[tuple[str, object]] = []
        self.status_at_spawn: list[Optional[OperationStatus]] = []

    def spawn(self, operation_id: str, job) -> None:
        operation = self.state.registry.get(operation_id) if self.state else None
        self.status_at_spawn.append(operation.status if operation else None)
        self.spawned.append((operation_id, job))


class MemoryStore:
    """In-memory stand-in for InventoryStore."""

    def __init__(self, fail_saves: bool = False) -> None:
        self.saved: list[Inventory] = []
        self.fail_saves = fail_saves
        self.to_load: Optional[Inventory] = None
        self.file_path = "memory://config.toml"

    def save(self, inventory: Inventory) -> None:
        if self.fail_saves:
            raise ConfigError(code="io_error", message="disk full")
        self.saved.append(inventory)

    def load(self) -> Inventory:
        if self.to_load is None:
            raise ConfigError(code="parse_error", message="broken file")
        return self.to_load


def make_dispatcher(store: Optional[MemoryStore] = None, auto_save: bool = True):
    state = InventoryState(settings=Settings(auto_save=auto_save))
    spawner = RecordingSpawner()
    spawner.state = state
    dispatcher = ActionDispatcher(state, spawner, store or MemoryStore())
    return dispatcher, state, spawner


def seed_world(dispatcher: ActionDispatcher, manual_dns: bool = False) -> tuple[Domain, Node]:
    provider = ManualDns() if manual_dns else CloudflareDns(api_token="token", zone_id="zone")
    domain = Domain.new("example.com", provider)
    node = Node.new("edge-1", "http://10.0.0.5:8080", "secret", "10.0.0.5")
    dispatcher.update(CreateDomain(domain))
    dispatcher.update(AddNode(node))
    return domain, node


def new_site(domain: Domain, node: Node, name: str = "blog") -> Site:
    return Site.new(name, domain.id, node.id, "nginx:latest", 80)


def count_level(state: InventoryState, level: NotificationLevel) -> int:
    return state.notifications.count(level)


class TestOperationLifecycleProperty:
    """Property-based tests for registration and completion."""

    def test_create_site_deploys_and_completion_merges_once(self) -> None:
        """
        Property 1: Creating a site registers and spawns a deploy, and its
        completion sets the site Running with exactly one success notice.
        """
        dispatcher, state, spawner = make_dispatcher()
        domain, node = seed_world(dispatcher)
        site = new_site(domain, node)

        dispatcher.update(CreateSite(site))

        assert len(spawner.spawned) == 1
        operation_id, job = spawner.spawned[0]
        assert isinstance(job, SiteJob)
        assert job.kind == OperationKind.DEPLOY_SITE
        assert job.domain_name == "example.com"
        assert spawner.status_at_spawn == [OperationStatus.IN_PROGRESS]
        assert state.get_site(site.id).status == SiteStatus.DEPLOYING

        successes = count_level(state, NotificationLevel.SUCCESS)
        dispatcher.update(OperationCompleted.ok(operation_id, SiteDeployed(site.id)))

        assert state.get_site(site.id).status == SiteStatus.RUNNING
        assert state.registry.get(operation_id).status == OperationStatus.COMPLETED
        assert count_level(state, NotificationLevel.SUCCESS) == successes + 1

    def test_duplicate_completion_is_ignored(self) -> None:
        """
        Property 2: A second completion for the same operation changes nothing.
        """
        dispatcher, state, spawner = make_dispatcher()
        domain, node = seed_world(dispatcher)
        site = new_site(domain, node)
        dispatcher.update(CreateSite(site))
        operation_id, _ = spawner.spawned[0]
        dispatcher.update(OperationCompleted.ok(operation_id, SiteDeployed(site.id)))
        notifications = list(state.notifications)

        dispatcher.update(OperationCompleted.failed(operation_id, "late failure"))

        assert state.get_site(site.id).status == SiteStatus.RUNNING
        assert state.registry.get(operation_id).status == OperationStatus.COMPLETED
        assert list(state.notifications) == notifications

    def test_unknown_completion_is_ignored(self) -> None:
        dispatcher, state, _ = make_dispatcher()
        seed_world(dispatcher)
        notifications = list(state.notifications)

        dispatcher.update(OperationCompleted.ok("no-such-operation", SiteDeployed("x")))

        assert list(state.notifications) == notifications
        assert "no-such-operation" not in state.registry

    @given(kind=st.sampled_from(["deploy", "stop", "logs", "health"]))
    @settings(max_examples=20)
    def test_every_spawn_is_preceded_by_registration(self, kind: str) -> None:
        """
        Property 3: Every spawned job refers to an operation that is already
        registered InProgress.
        """
        dispatcher, state, spawner = make_dispatcher()
        domain, node = seed_world(dispatcher)
        site = new_site(domain, node)
        state.sites.append(site)

        action = {
            "deploy": DeploySite(site.id),
            "stop": StopSite(site.id),
            "logs": FetchLogs(site.id),
            "health": CheckNodeHealth(node.id),
        }[kind]
        dispatcher.update(action)

        assert len(spawner.spawned) == 1
        assert spawner.status_at_spawn == [OperationStatus.IN_PROGRESS]
        assert spawner.spawned[0][0] in state.registry

    def test_failed_deploy_marks_site_failed(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        domain, node = seed_world(dispatcher)
        site = new_site(domain, node)
        dispatcher.update(CreateSite(site))
        operation_id, _ = spawner.spawned[0]

        dispatcher.update(OperationCompleted.failed(operation_id, "connection refused"))

        assert state.get_site(site.id).status == SiteStatus.FAILED
        operation = state.registry.get(operation_id)
        assert operation.status == OperationStatus.FAILED
        assert operation.error == "connection refused"
        latest = state.notifications.latest()
        assert latest.level == NotificationLevel.ERROR
        assert "connection refused" in latest.message


class TestSiteGuardProperty:
    """Property-based tests for the per-site mutation guard."""

    @given(repeats=st.integers(min_value=1, max_value=5))
    @settings(max_examples=20)
    def test_only_one_mutation_in_flight_per_site(self, repeats: int) -> None:
        """
        Property 4: While a site-changing operation is in flight, further
        site-changing intents only produce a warning.
        """
        dispatcher, state, spawner = make_dispatcher()
        domain, node = seed_world(dispatcher)
        site = new_site(domain, node)
        state.sites.append(site)

        dispatcher.update(DeploySite(site.id))
        for _ in range(repeats):
            dispatcher.update(StopSite(site.id))

        assert len(spawner.spawned) == 1
        assert count_level(state, NotificationLevel.WARNING) == repeats

    def test_update_of_busy_site_is_rejected(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        domain, node = seed_world(dispatcher)
        site = new_site(domain, node)
        state.sites.append(site)
        dispatcher.update(DeploySite(site.id))

        changed = new_site(domain, node, name="renamed")
        dispatcher.update(UpdateSite(site.id, changed))

        assert state.get_site(site.id).name == "blog"
        assert len(spawner.spawned) == 1
        assert state.notifications.latest().level == NotificationLevel.WARNING

    def test_update_site_keeps_identity_and_spawns_update(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        domain, node = seed_world(dispatcher)
        site = new_site(domain, node)
        state.sites.append(site)

        dispatcher.update(UpdateSite(site.id, new_site(domain, node, name="renamed")))

        updated = state.get_site(site.id)
        assert updated.name == "renamed"
        assert updated.created_at == site.created_at
        assert spawner.spawned[0][1].kind == OperationKind.UPDATE_SITE

    def test_duplicate_read_is_deduplicated(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        domain, node = seed_world(dispatcher)
        site = new_site(domain, node)
        state.sites.append(site)

        dispatcher.update(FetchLogs(site.id))
        dispatcher.update(FetchLogs(site.id))

        assert len(spawner.spawned) == 1
        assert count_level(state, NotificationLevel.WARNING) == 1

    def test_check_all_nodes_skips_busy_nodes(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        _, node = seed_world(dispatcher)
        other = Node.new("edge-2", "https://edge-2.example.com", "key", "10.0.0.6")
        dispatcher.update(AddNode(other))
        dispatcher.update(CheckNodeHealth(node.id))

        dispatcher.update(CheckAllNodesHealth())

        targets = [job.node.node_id for _, job in spawner.spawned]
        assert targets == [node.id, other.id]
        assert all(isinstance(job, NodeJob) for _, job in spawner.spawned)
        assert count_level(state, NotificationLevel.WARNING) == 0


class TestSiteDeletionProperty:
    """Tests for deletion and missing targets."""

    def test_site_removed_only_after_confirmed_delete(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        domain, node = seed_world(dispatcher)
        site = new_site(domain, node)
        state.sites.append(site)

        dispatcher.update(DeleteSite(site.id))
        assert state.get_site(site.id) is not None

        operation_id, _ = spawner.spawned[0]
        dispatcher.update(OperationCompleted.ok(operation_id, SiteDeleted(site.id)))
        assert state.get_site(site.id) is None

    def test_failed_delete_keeps_site(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        domain, node = seed_world(dispatcher)
        site = new_site(domain, node)
        state.sites.append(site)

        dispatcher.update(DeleteSite(site.id))
        operation_id, _ = spawner.spawned[0]
        dispatcher.update(OperationCompleted.failed(operation_id, "node unreachable"))

        assert state.get_site(site.id) is not None
        assert state.notifications.latest().level == NotificationLevel.ERROR

    def test_delete_of_missing_site_is_noop(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        seed_world(dispatcher)
        notifications = list(state.notifications)

        dispatcher.update(DeleteSite("missing-site"))

        assert spawner.spawned == []
        assert len(state.registry) == 0
        assert list(state.notifications) == notifications

    def test_logs_for_deleted_site_are_dropped(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        domain, node = seed_world(dispatcher)
        site = new_site(domain, node)
        state.sites.append(site)
        dispatcher.update(FetchLogs(site.id))
        operation_id, _ = spawner.spawned[0]
        state.remove_site(site.id)

        dispatcher.update(OperationCompleted.ok(operation_id, Logs(site.id, ("line",))))

        assert site.id not in state.site_logs


class TestDnsProperty:
    """Tests for DNS record editing and sync."""

    def test_manual_dns_sync_spawns_nothing(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        domain, _ = seed_world(dispatcher, manual_dns=True)
        notifications = list(state.notifications)

        dispatcher.update(SyncDnsRecords(domain.id))

        assert spawner.spawned == []
        assert list(state.notifications) == notifications

    def test_sync_replaces_records(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        domain, _ = seed_world(dispatcher)
        dispatcher.update(SyncDnsRecords(domain.id))
        operation_id, job = spawner.spawned[0]
        assert isinstance(job, DnsSyncJob)

        remote = (DnsRecord(DnsRecordType.A, "example.com", "1.2.3.4", 300, False, "rec-1"),)
        dispatcher.update(OperationCompleted.ok(operation_id, DnsSynced(domain.id, remote)))

        assert state.get_domain(domain.id).dns_records == list(remote)

    @given(ttl=st.one_of(st.none(), st.integers(min_value=1, max_value=86400)))
    @settings(max_examples=50)
    def test_missing_ttl_gets_default(self, ttl: Optional[int]) -> None:
        """
        Property 5: Records added without a TTL get the configured default.
        """
        dispatcher, state, _ = make_dispatcher()
        domain, _ = seed_world(dispatcher)

        dispatcher.update(AddDnsRecord(domain.id, DnsRecord(DnsRecordType.A, "www", "1.2.3.4", ttl)))

        stored = state.get_domain(domain.id).dns_records[-1]
        assert stored.ttl == (ttl if ttl is not None else state.settings.default_dns_ttl)

    def test_delete_record_out_of_range(self) -> None:
        dispatcher, state, _ = make_dispatcher()
        domain, _ = seed_world(dispatcher)

        dispatcher.update(DeleteDnsRecord(domain.id, 3))

        assert state.notifications.latest().level == NotificationLevel.ERROR

    def test_domain_names_are_canonical_and_unique(self) -> None:
        dispatcher, state, _ = make_dispatcher()
        dispatcher.update(CreateDomain(Domain.new("Example.COM", ManualDns())))
        dispatcher.update(CreateDomain(Domain.new("example.com", ManualDns())))

        assert [d.name for d in state.domains] == ["example.com"]
        assert state.notifications.latest().level == NotificationLevel.ERROR


class TestInventoryIdentityProperty:
    """Property-based tests for entity identity."""

    @given(
        node_count=st.integers(min_value=0, max_value=6),
        domain_count=st.integers(min_value=0, max_value=6),
        removals=st.integers(min_value=0, max_value=3),
    )
    @settings(max_examples=50)
    def test_ids_stay_unique(self, node_count: int, domain_count: int, removals: int) -> None:
        """
        Property 6: Entity ids stay unique across add and remove sequences.
        """
        dispatcher, state, _ = make_dispatcher(auto_save=False)
        nodes = [
            Node.new(f"node-{i}", f"http://10.0.0.{i + 1}", "key", f"10.0.0.{i + 1}")
            for i in range(node_count)
        ]
        for node in nodes:
            dispatcher.update(AddNode(node))
        for i in range(domain_count):
            dispatcher.update(CreateDomain(Domain.new(f"site{i}.example.org", ManualDns())))
        for node in nodes[:removals]:
            dispatcher.update(RemoveNode(node.id))
        # Re-adding an existing node is rejected
        if state.nodes:
            dispatcher.update(AddNode(state.nodes[0]))

        ids = [n.id for n in state.nodes] + [d.id for d in state.domains]
        assert len(ids) == len(set(ids))
        assert len(state.nodes) == max(node_count - removals, 0)
        assert len(state.domains) == domain_count

    def test_invalid_node_is_rejected(self) -> None:
        dispatcher, state, _ = make_dispatcher()

        dispatcher.update(AddNode(Node.new("bad", "http://host", "key", "not-an-ip")))
        dispatcher.update(AddNode(Node.new("bad", "ftp://host", "key", "10.0.0.1")))

        assert state.nodes == []
        assert count_level(state, NotificationLevel.ERROR) == 2


class TestPersistenceProperty:
    """Tests for auto-save, explicit save, reload and quit."""

    def test_crud_auto_saves(self) -> None:
        store = MemoryStore()
        dispatcher, _, _ = make_dispatcher(store)
        seed_world(dispatcher)
        assert len(store.saved) == 2

    def test_auto_save_disabled(self) -> None:
        store = MemoryStore()
        dispatcher, _, _ = make_dispatcher(store, auto_save=False)
        seed_world(dispatcher)
        assert store.saved == []

    def test_save_error_becomes_notification(self) -> None:
        store = MemoryStore(fail_saves=True)
        dispatcher, state, _ = make_dispatcher(store)

        dispatcher.update(SaveConfig())

        latest = state.notifications.latest()
        assert latest.level == NotificationLevel.ERROR
        assert "disk full" in latest.message

    def test_load_keeps_registry_and_notifications(self) -> None:
        store = MemoryStore()
        dispatcher, state, spawner = make_dispatcher(store)
        domain, node = seed_world(dispatcher)
        dispatcher.update(CheckNodeHealth(node.id))
        before = len(state.notifications)
        store.to_load = Inventory(nodes=[Node.new("fresh", "http://h", "k", "10.1.1.1")])

        dispatcher.update(LoadConfig())

        assert [n.name for n in state.nodes] == ["fresh"]
        assert state.domains == []
        assert spawner.spawned[0][0] in state.registry
        assert len(state.notifications) == before + 1

    def test_load_failure_keeps_state(self) -> None:
        dispatcher, state, _ = make_dispatcher()
        domain, _ = seed_world(dispatcher)

        dispatcher.update(LoadConfig())

        assert state.get_domain(domain.id) is not None
        assert state.notifications.latest().level == NotificationLevel.ERROR

    def test_quit_saves_and_sets_flag(self) -> None:
        store = MemoryStore()
        dispatcher, state, _ = make_dispatcher(store)

        dispatcher.update(Quit())

        assert state.should_quit
        assert len(store.saved) == 1

    def test_health_merge_updates_node(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        _, node = seed_world(dispatcher)
        dispatcher.update(CheckNodeHealth(node.id))
        operation_id, _ = spawner.spawned[0]

        dispatcher.update(OperationCompleted.ok(operation_id, NodeHealth(node.id, NodeStatus.ONLINE)))

        assert state.get_node(node.id).status == NodeStatus.ONLINE
        assert state.get_node(node.id).last_health_check is not None


class TestNavigationDispatch:
    """Tests for navigation actions and unknown inputs."""

    def test_navigate_and_back(self) -> None:
        dispatcher, state, _ = make_dispatcher()
        dispatcher.update(NavigateTo(Screen.SITES_LIST))
        assert state.view.screen == Screen.SITES_LIST
        dispatcher.update(NavigateBack())
        assert state.view.screen == Screen.DASHBOARD

    def test_unknown_action_raises(self) -> None:
        dispatcher, _, _ = make_dispatcher()
        with pytest.raises(TypeError):
            dispatcher.update(object())


class TestEntityUpdateProperty:
    """Tests for in-place updates of domains, records and nodes."""

    def test_update_domain_replaces_in_place(self) -> None:
        store = MemoryStore()
        dispatcher, state, _ = make_dispatcher(store)
        domain, _ = seed_world(dispatcher)
        domain = state.get_domain(domain.id)
        domain.dns_records.append(DnsRecord(DnsRecordType.A, "www", "1.2.3.4", 300))
        before, saves = len(state.notifications), len(store.saved)

        changed = dataclasses.replace(domain, name="Example.NET", dns_provider=ManualDns())
        dispatcher.update(UpdateDomain(domain.id, changed))

        updated = state.get_domain(domain.id)
        assert [d.id for d in state.domains] == [domain.id]
        assert updated.name == "example.net"
        assert updated.dns_provider == ManualDns()
        assert updated.created_at == domain.created_at
        assert len(updated.dns_records) == 1
        assert len(state.notifications) == before + 1
        assert state.notifications.latest().level == NotificationLevel.SUCCESS
        assert len(store.saved) == saves + 1

    def test_update_domain_rejects_taken_name(self) -> None:
        dispatcher, state, _ = make_dispatcher()
        domain, _ = seed_world(dispatcher)
        other = Domain.new("example.org", ManualDns())
        dispatcher.update(CreateDomain(other))
        before = len(state.notifications)

        dispatcher.update(UpdateDomain(other.id, dataclasses.replace(other, name="example.com")))

        assert state.get_domain(other.id).name == "example.org"
        assert len(state.notifications) == before + 1
        assert state.notifications.latest().level == NotificationLevel.ERROR

    def test_update_node_replaces_in_place(self) -> None:
        dispatcher, state, _ = make_dispatcher()
        _, node = seed_world(dispatcher)
        before = len(state.notifications)

        changed = dataclasses.replace(node, name="edge-renamed", ip_address="10.0.0.9")
        dispatcher.update(UpdateNode(node.id, changed))

        updated = state.get_node(node.id)
        assert len(state.nodes) == 1
        assert updated.name == "edge-renamed"
        assert updated.ip_address == "10.0.0.9"
        assert len(state.notifications) == before + 1
        assert state.notifications.latest().level == NotificationLevel.SUCCESS

    def test_update_node_with_invalid_ip_keeps_node(self) -> None:
        dispatcher, state, _ = make_dispatcher()
        _, node = seed_world(dispatcher)
        before = len(state.notifications)

        dispatcher.update(UpdateNode(node.id, dataclasses.replace(node, ip_address="nowhere")))

        assert state.get_node(node.id).ip_address == "10.0.0.5"
        assert len(state.notifications) == before + 1
        assert state.notifications.latest().level == NotificationLevel.ERROR

    def test_update_dns_record_replaces_position(self) -> None:
        dispatcher, state, _ = make_dispatcher()
        domain, _ = seed_world(dispatcher)
        dispatcher.update(AddDnsRecord(domain.id, DnsRecord(DnsRecordType.A, "www", "1.2.3.4", 300)))
        dispatcher.update(AddDnsRecord(domain.id, DnsRecord(DnsRecordType.MX, "@", "mail", 600)))
        before = len(state.notifications)

        record = DnsRecord(DnsRecordType.CNAME, "www", "example.com")
        dispatcher.update(UpdateDnsRecord(domain.id, 0, record))

        records = state.get_domain(domain.id).dns_records
        assert [r.record_type for r in records] == [DnsRecordType.CNAME, DnsRecordType.MX]
        assert records[0].ttl == state.settings.default_dns_ttl
        assert len(state.notifications) == before + 1
        assert state.notifications.latest().level == NotificationLevel.SUCCESS

    def test_update_dns_record_out_of_range(self) -> None:
        dispatcher, state, _ = make_dispatcher()
        domain, _ = seed_world(dispatcher)
        before = len(state.notifications)

        dispatcher.update(UpdateDnsRecord(domain.id, 0, DnsRecord(DnsRecordType.A, "www", "1.2.3.4")))

        assert state.get_domain(domain.id).dns_records == []
        assert len(state.notifications) == before + 1
        assert state.notifications.latest().level == NotificationLevel.ERROR

    @given(intent=st.sampled_from(["site", "domain", "record", "node"]))
    @settings(max_examples=20)
    def test_update_of_unknown_id_is_one_error(self, intent: str) -> None:
        """
        Property 7: Updating an entity that does not exist changes nothing
        and appends exactly one error notification.
        """
        store = MemoryStore()
        dispatcher, state, spawner = make_dispatcher(store)
        domain, node = seed_world(dispatcher)
        before, saves = len(state.notifications), len(store.saved)

        action = {
            "site": UpdateSite("missing", new_site(domain, node)),
            "domain": UpdateDomain("missing", Domain.new("other.example", ManualDns())),
            "record": UpdateDnsRecord("missing", 0, DnsRecord(DnsRecordType.A, "www", "1.2.3.4")),
            "node": UpdateNode("missing", Node.new("edge-9", "http://10.0.0.9", "k", "10.0.0.9")),
        }[intent]
        dispatcher.update(action)

        assert len(state.notifications) == before + 1
        assert state.notifications.latest().level == NotificationLevel.ERROR
        assert len(store.saved) == saves
        assert spawner.spawned == []
        assert [d.name for d in state.domains] == ["example.com"]
        assert [n.name for n in state.nodes] == ["edge-1"]
        assert state.sites == []


class TestSiteLifecycleMergeProperty:
    """Tests for stop, restart and node statistics completions."""

    def test_stop_completion_marks_site_stopped(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        domain, node = seed_world(dispatcher)
        site = new_site(domain, node)
        site.status = SiteStatus.RUNNING
        state.sites.append(site)

        dispatcher.update(StopSite(site.id))
        operation_id, job = spawner.spawned[0]
        assert job.kind == OperationKind.STOP_SITE
        before = len(state.notifications)

        dispatcher.update(OperationCompleted.ok(operation_id, SiteStopped(site.id)))

        assert state.get_site(site.id).status == SiteStatus.STOPPED
        assert len(state.notifications) == before + 1
        assert state.notifications.latest().level == NotificationLevel.SUCCESS

    def test_restart_completion_marks_site_running(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        domain, node = seed_world(dispatcher)
        site = new_site(domain, node)
        site.status = SiteStatus.STOPPED
        state.sites.append(site)

        dispatcher.update(RestartSite(site.id))
        operation_id, job = spawner.spawned[0]
        assert job.kind == OperationKind.RESTART_SITE
        assert spawner.status_at_spawn == [OperationStatus.IN_PROGRESS]
        assert state.get_site(site.id).status == SiteStatus.STOPPED
        before = len(state.notifications)

        dispatcher.update(OperationCompleted.ok(operation_id, SiteRestarted(site.id)))

        assert state.get_site(site.id).status == SiteStatus.RUNNING
        assert state.registry.get(operation_id).status == OperationStatus.COMPLETED
        assert len(state.notifications) == before + 1

    def test_failed_restart_keeps_status(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        domain, node = seed_world(dispatcher)
        site = new_site(domain, node)
        site.status = SiteStatus.STOPPED
        state.sites.append(site)
        dispatcher.update(RestartSite(site.id))
        operation_id, _ = spawner.spawned[0]

        dispatcher.update(OperationCompleted.failed(operation_id, "container missing"))

        assert state.get_site(site.id).status == SiteStatus.STOPPED
        assert state.notifications.latest().level == NotificationLevel.ERROR

    def test_node_stats_merge(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        _, node = seed_world(dispatcher)

        dispatcher.update(FetchNodeStats(node.id))
        operation_id, job = spawner.spawned[0]
        assert isinstance(job, NodeJob)
        assert job.kind == OperationKind.FETCH_NODE_STATS
        before = len(state.notifications)

        docker = DockerInfo("24.0", 3, 7)
        traefik = TraefikInfo("2.11", 4, 4)
        dispatcher.update(OperationCompleted.ok(operation_id, NodeStats(node.id, docker, traefik)))

        updated = state.get_node(node.id)
        assert updated.docker_info == docker
        assert updated.traefik_info == traefik
        assert len(state.notifications) == before + 1
        assert state.notifications.latest().level == NotificationLevel.INFO

    def test_node_stats_are_deduplicated(self) -> None:
        dispatcher, state, spawner = make_dispatcher()
        _, node = seed_world(dispatcher)

        dispatcher.update(FetchNodeStats(node.id))
        dispatcher.update(FetchNodeStats(node.id))

        assert len(spawner.spawned) == 1
        assert count_level(state, NotificationLevel.WARNING) == 1


class TestLateDnsSyncProperty:
    """Tests for sync results that arrive after their domain is gone."""

    def test_sync_for_deleted_domain_is_dropped(self) -> None:
        store = MemoryStore()
        dispatcher, state, spawner = make_dispatcher(store)
        domain, _ = seed_world(dispatcher)
        dispatcher.update(SyncDnsRecords(domain.id))
        operation_id, _ = spawner.spawned[0]
        dispatcher.update(DeleteDomain(domain.id))
        notifications, saves = list(state.notifications), len(store.saved)

        remote = (DnsRecord(DnsRecordType.A, "example.com", "1.2.3.4", 300, False, "rec-1"),)
        dispatcher.update(OperationCompleted.ok(operation_id, DnsSynced(domain.id, remote)))

        assert state.registry.get(operation_id).status == OperationStatus.COMPLETED
        assert list(state.notifications) == notifications
        assert len(store.saved) == saves
        assert state.domains == []


class TestReloadFromDiskProperty:
    """Tests for LoadConfig against a real inventory file."""

    @given(document=st.sampled_from([
        'settings = "oops"\n',
        '[[sites]]\nid = "s1"\nenvironment_vars = 5\n',
        '[[domains]]\nid = "d1"\nname = "example.com"\ncreated_at = "now"\n'
        'dns_provider = "cloudflare"\n',
        "not = = toml\n",
    ]))
    @settings(max_examples=20)
    def test_reload_of_broken_file_keeps_state(self, document: str) -> None:
        """
        Property 8: Reloading a broken inventory file surfaces one error
        notification and leaves the in-memory inventory untouched.
        """
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "config.toml"
            state = InventoryState(settings=Settings(auto_save=False))
            spawner = RecordingSpawner()
            spawner.state = state
            dispatcher = ActionDispatcher(state, spawner, InventoryStore(path))
            domain, node = seed_world(dispatcher)
            path.write_text(document, encoding="utf-8")
            before = len(state.notifications)

            dispatcher.update(LoadConfig())

            assert state.get_domain(domain.id) is not None
            assert state.get_node(node.id) is not None
            assert len(state.notifications) == before + 1
            latest = state.notifications.latest()
            assert latest.level == NotificationLevel.ERROR
            assert latest.message.startswith("Reload failed")
