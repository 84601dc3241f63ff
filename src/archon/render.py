"""
Text rendering of the console state.

render() is a pure function of the state: it never performs I/O and never
mutates anything. TerminalRenderer writes the rendered frame to a stream.
"""

import sys
from typing import Optional, TextIO

from .enums import ListKind, NotificationLevel, Screen
from .models import Domain, Node, Site
from .state import InventoryState


LEVEL_MARKS = {
    NotificationLevel.INFO: "i",
    NotificationLevel.SUCCESS: "+",
    NotificationLevel.WARNING: "!",
    NotificationLevel.ERROR: "x",
}

SCREEN_TITLES = {
    Screen.DASHBOARD: "Dashboard",
    Screen.SITES_LIST: "Sites",
    Screen.SITE_CREATE: "New site",
    Screen.SITE_EDIT: "Edit site",
    Screen.SITE_DETAIL: "Site",
    Screen.DOMAINS_LIST: "Domains",
    Screen.DOMAIN_CREATE: "New domain",
    Screen.DOMAIN_EDIT: "Edit domain",
    Screen.DOMAIN_DNS_EDITOR: "DNS records",
    Screen.NODES_LIST: "Nodes",
    Screen.NODE_CREATE: "New node",
    Screen.NODE_EDIT: "Edit node",
    Screen.NODE_DETAIL: "Node",
    Screen.HELP: "Help",
}

HELP_TEXT = [
    "Global: q quit, ? help, b/esc back, w save, z dismiss notification",
    "Dashboard: 1 dashboard, 2 sites, 3 domains, 4 nodes, r reload",
    "Lists: j/down next, k/up previous, c create, enter open, e edit, x delete",
    "Sites: D deploy, S stop, R restart, l logs, m metrics",
    "Domains: enter DNS records, y sync DNS; Nodes: h health check, t stats",
    "Commands (on an edit screen they replace the entity being edited):",
    "  :node NAME ENDPOINT API_KEY IP",
    "  :domain NAME [manual | cloudflare TOKEN ZONE_ID | route53 ACCESS SECRET ZONE_ID]",
    "  :site NAME DOMAIN NODE IMAGE PORT",
    "  :record TYPE NAME VALUE [TTL]",
    "  :record N TYPE NAME VALUE [TTL]   replace record N",
]

EDIT_HINTS = {
    Screen.SITE_EDIT: "Enter :site NAME DOMAIN NODE IMAGE PORT",
    Screen.DOMAIN_EDIT: "Enter :domain NAME [provider ...]",
    Screen.NODE_EDIT: "Enter :node NAME ENDPOINT API_KEY IP",
}


def render(state: InventoryState) -> str:
    """Render one frame for the current view."""
    view = state.view
    lines = [f"Archon :: {SCREEN_TITLES[view.screen]}", ""]

    screen = view.screen
    if screen == Screen.DASHBOARD:
        lines.extend(_dashboard(state))
    elif screen == Screen.SITES_LIST:
        lines.extend(_list(state, ListKind.SITES, [_site_row(state, s) for s in state.sites]))
    elif screen == Screen.DOMAINS_LIST:
        lines.extend(_list(state, ListKind.DOMAINS, [_domain_row(d) for d in state.domains]))
    elif screen == Screen.NODES_LIST:
        lines.extend(_list(state, ListKind.NODES, [_node_row(n) for n in state.nodes]))
    elif screen == Screen.DOMAIN_DNS_EDITOR:
        lines.extend(_dns_editor(state))
    elif screen == Screen.SITE_DETAIL:
        lines.extend(_site_detail(state, view.target_id))
    elif screen == Screen.NODE_DETAIL:
        lines.extend(_node_detail(state, view.target_id))
    elif screen == Screen.HELP:
        lines.extend(HELP_TEXT)
    elif screen == Screen.SITE_CREATE:
        lines.append("Enter :site NAME DOMAIN NODE IMAGE PORT")
    elif screen == Screen.DOMAIN_CREATE:
        lines.append("Enter :domain NAME [provider ...]")
    elif screen == Screen.NODE_CREATE:
        lines.append("Enter :node NAME ENDPOINT API_KEY IP")
    elif screen in EDIT_HINTS:
        lines.extend(_edit_form(state, screen, view.target_id))

    lines.append("")
    lines.extend(_status_bar(state))
    return "\n".join(lines)


def _dashboard(state: InventoryState) -> list[str]:
    running = sum(1 for s in state.sites if s.status.value == "running")
    online = sum(1 for n in state.nodes if n.status.value == "online")
    return [
        f"Sites:   {len(state.sites)} ({running} running)",
        f"Domains: {len(state.domains)}",
        f"Nodes:   {len(state.nodes)} ({online} online)",
        f"Operations in progress: {len(state.registry.pending())}",
    ]


def _list(state: InventoryState, kind: ListKind, rows: list[str]) -> list[str]:
    if not rows:
        return ["(empty)"]
    selected = state.selected_index(kind)
    return [
        f"{'>' if index == selected else ' '} {row}"
        for index, row in enumerate(rows)
    ]


def _site_row(state: InventoryState, site: Site) -> str:
    domain = state.domain_for(site)
    node = state.node_for(site)
    return (
        f"{site.name:<20} {site.status.value:<10} "
        f"{domain.name if domain else '?':<24} {node.name if node else '?'}"
    )


def _domain_row(domain: Domain) -> str:
    return (
        f"{domain.name:<30} {domain.dns_provider.provider_name:<10} "
        f"{len(domain.dns_records)} records"
    )


def _node_row(node: Node) -> str:
    return f"{node.name:<20} {node.status.value:<9} {node.ip_address:<16} {node.api_endpoint}"


def _dns_editor(state: InventoryState) -> list[str]:
    domain = state.editing_domain()
    if domain is None:
        return ["Domain not found"]
    rows = [
        f"{position:>2}. {r.record_type.value:<6} {r.name:<24} {r.value:<30} "
        f"ttl={r.ttl if r.ttl is not None else '-'}"
        + (" proxied" if r.proxied else "")
        for position, r in enumerate(domain.dns_records, start=1)
    ]
    return [f"{domain.name} ({domain.dns_provider.provider_name})", ""] + _list(
        state, ListKind.DNS_RECORDS, rows
    )


def _site_detail(state: InventoryState, site_id: Optional[str]) -> list[str]:
    site = state.get_site(site_id) if site_id else None
    if site is None:
        return ["Site not found"]
    domain = state.domain_for(site)
    node = state.node_for(site)
    lines = [
        f"Name:    {site.name}",
        f"Status:  {site.status.value}",
        f"Image:   {site.docker_image}",
        f"Port:    {site.port}",
        f"Domain:  {domain.name if domain else 'not found'}",
        f"Node:    {node.name if node else 'not found'}",
        f"TLS:     {'on' if site.ssl_enabled else 'off'}",
    ]
    metrics = state.site_metrics.get(site.id)
    if metrics is not None:
        lines.append(
            f"CPU {metrics.cpu_usage_percent:.1f}%  "
            f"Memory {metrics.memory_usage_mb}/{metrics.memory_limit_mb} MB  "
            f"Net rx {metrics.network_rx_bytes} tx {metrics.network_tx_bytes}"
        )
    logs = state.site_logs.get(site.id)
    if logs:
        lines.append("")
        lines.append("Logs:")
        lines.extend(f"  {line}" for line in logs[-20:])
    return lines


def _node_detail(state: InventoryState, node_id: Optional[str]) -> list[str]:
    node = state.get_node(node_id) if node_id else None
    if node is None:
        return ["Node not found"]
    lines = [
        f"Name:      {node.name}",
        f"Status:    {node.status.value}",
        f"Endpoint:  {node.api_endpoint}",
        f"IP:        {node.ip_address}",
        f"Checked:   {node.last_health_check or 'never'}",
        f"Sites:     {len(state.sites_on_node(node.id))}",
    ]
    if node.docker_info is not None:
        d = node.docker_info
        lines.append(f"Docker {d.version}: {d.containers_running} running, {d.images_count} images")
    if node.traefik_info is not None:
        t = node.traefik_info
        lines.append(f"Traefik {t.version}: {t.routers_count} routers, {t.services_count} services")
    return lines


def _edit_form(state: InventoryState, screen: Screen, target_id: Optional[str]) -> list[str]:
    if target_id is None:
        return ["Nothing selected"]
    if screen == Screen.SITE_EDIT:
        site = state.get_site(target_id)
        if site is None:
            return ["Site not found"]
        domain = state.domain_for(site)
        node = state.node_for(site)
        current = (
            f"{site.name} {domain.name if domain else site.domain_id} "
            f"{node.name if node else site.node_id} {site.docker_image} {site.port}"
        )
    elif screen == Screen.DOMAIN_EDIT:
        domain = state.get_domain(target_id)
        if domain is None:
            return ["Domain not found"]
        current = f"{domain.name} {domain.dns_provider.provider_name}"
    else:
        node = state.get_node(target_id)
        if node is None:
            return ["Node not found"]
        current = f"{node.name} {node.api_endpoint} ******** {node.ip_address}"
    return [f"Current: {current}", EDIT_HINTS[screen]]


def _status_bar(state: InventoryState) -> list[str]:
    latest = state.notifications.latest()
    if latest is None:
        return ["-"]
    pending = len(state.notifications)
    suffix = f" (+{pending - 1})" if pending > 1 else ""
    return [f"[{LEVEL_MARKS[latest.level]}] {latest.message}{suffix}"]


class TerminalRenderer:
    """Writes frames to a terminal stream."""

    CLEAR = "\x1b[2J\x1b[H"

    def __init__(self, stream: Optional[TextIO] = None, clear: bool = True) -> None:
        self._stream = stream or sys.stdout
        self._clear = clear

    def draw(self, state: InventoryState) -> None:
        frame = render(state)
        if self._clear:
            self._stream.write(self.CLEAR)
        self._stream.write(frame + "\n> ")
        self._stream.flush()
