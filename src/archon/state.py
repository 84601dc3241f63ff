"""
Inventory State: the single aggregate owned by the event loop.

Holds the persisted inventory together with the transient UI state
(navigation, selection cursors, notifications, cached logs and metrics)
and the operation registry. Only ActionDispatcher mutates it.

Lookups are linear scans; fleets are small. Sites reference domains and
nodes by id, and a lookup for a missing referent returns None.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .config import DEFAULT_CONFIG_PATH, Settings
from .enums import ListKind
from .inventory_store import Inventory
from .models import ContainerMetrics, DnsRecord, Domain, Node, Site
from .navigation import SCREEN_LISTS, Navigator, SelectionState, View
from .notifications import NotificationQueue
from .operations import OperationRegistry


@dataclass
class InventoryState:
    """The authoritative console state."""

    sites: list[Site] = field(default_factory=list)
    domains: list[Domain] = field(default_factory=list)
    nodes: list[Node] = field(default_factory=list)
    settings: Settings = field(default_factory=Settings)
    config_path: Path = DEFAULT_CONFIG_PATH
    navigator: Navigator = field(default_factory=Navigator)
    selection: SelectionState = field(default_factory=SelectionState)
    registry: OperationRegistry = field(default_factory=OperationRegistry)
    notifications: NotificationQueue = field(default_factory=NotificationQueue)
    site_logs: dict[str, list[str]] = field(default_factory=dict)
    site_metrics: dict[str, ContainerMetrics] = field(default_factory=dict)
    should_quit: bool = False

    @classmethod
    def from_inventory(cls, inventory: Inventory, config_path: Path) -> "InventoryState":
        """Build a fresh state around a loaded inventory."""
        state = cls(config_path=config_path)
        state.apply_inventory(inventory)
        return state

    # Lookups

    def get_site(self, site_id: str) -> Optional[Site]:
        return next((s for s in self.sites if s.id == site_id), None)

    def get_domain(self, domain_id: str) -> Optional[Domain]:
        return next((d for d in self.domains if d.id == domain_id), None)

    def get_node(self, node_id: str) -> Optional[Node]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def domain_for(self, site: Site) -> Optional[Domain]:
        return self.get_domain(site.domain_id)

    def node_for(self, site: Site) -> Optional[Node]:
        return self.get_node(site.node_id)

    def sites_on_node(self, node_id: str) -> list[Site]:
        return [s for s in self.sites if s.node_id == node_id]

    # Removal

    def remove_site(self, site_id: str) -> Optional[Site]:
        site = self.get_site(site_id)
        if site is not None:
            self.sites.remove(site)
            self.site_logs.pop(site_id, None)
            self.site_metrics.pop(site_id, None)
            self.selection.clamp(ListKind.SITES, len(self.sites))
        return site

    def remove_domain(self, domain_id: str) -> Optional[Domain]:
        domain = self.get_domain(domain_id)
        if domain is not None:
            self.domains.remove(domain)
            self.selection.clamp(ListKind.DOMAINS, len(self.domains))
        return domain

    def remove_node(self, node_id: str) -> Optional[Node]:
        node = self.get_node(node_id)
        if node is not None:
            self.nodes.remove(node)
            self.selection.clamp(ListKind.NODES, len(self.nodes))
        return node

    # Navigation and selection

    @property
    def view(self) -> View:
        return self.navigator.current

    def current_list(self) -> Optional[ListKind]:
        """The list the current screen's selection keys act on."""
        return SCREEN_LISTS.get(self.view.screen)

    def editing_domain(self) -> Optional[Domain]:
        """Domain whose records the DNS editor shows, if any."""
        if self.view.target_id is None:
            return None
        return self.get_domain(self.view.target_id)

    def dns_records_in_view(self) -> list[DnsRecord]:
        domain = self.editing_domain()
        return domain.dns_records if domain is not None else []

    def list_length(self, kind: ListKind) -> int:
        if kind == ListKind.SITES:
            return len(self.sites)
        if kind == ListKind.DOMAINS:
            return len(self.domains)
        if kind == ListKind.NODES:
            return len(self.nodes)
        return len(self.dns_records_in_view())

    def selected_index(self, kind: ListKind) -> Optional[int]:
        return self.selection.index(kind, self.list_length(kind))

    def selected_site(self) -> Optional[Site]:
        index = self.selected_index(ListKind.SITES)
        return self.sites[index] if index is not None else None

    def selected_domain(self) -> Optional[Domain]:
        index = self.selected_index(ListKind.DOMAINS)
        return self.domains[index] if index is not None else None

    def selected_node(self) -> Optional[Node]:
        index = self.selected_index(ListKind.NODES)
        return self.nodes[index] if index is not None else None

    def clamp_selection(self) -> None:
        for kind in ListKind:
            self.selection.clamp(kind, self.list_length(kind))

    # Persistence boundary

    def to_inventory(self) -> Inventory:
        """Snapshot of what gets persisted."""
        return Inventory(
            sites=list(self.sites),
            domains=list(self.domains),
            nodes=list(self.nodes),
            settings=self.settings,
        )

    def apply_inventory(self, inventory: Inventory) -> None:
        """
        Replace the persisted part of the state.

        Registry, notifications and navigation are kept; cursors are clamped
        to the new list lengths.
        """
        self.sites = list(inventory.sites)
        self.domains = list(inventory.domains)
        self.nodes = list(inventory.nodes)
        self.settings = inventory.settings
        self.clamp_selection()
