"""
Input mapping: raw console input to actions.

The console reads one line at a time. A line is either a key (a single
character or a named key such as "up", "down", "enter", "esc") interpreted
against the current screen, or a colon command that creates an entity:

    :node NAME ENDPOINT API_KEY IP
    :domain NAME [manual | cloudflare TOKEN ZONE_ID | route53 ACCESS SECRET ZONE_ID]
    :site NAME DOMAIN NODE IMAGE PORT
    :record TYPE NAME VALUE [TTL]      (DNS editor only)

On an edit screen the matching command replaces the entity being edited
instead of creating a new one. In the DNS editor, ":record N TYPE NAME
VALUE [TTL]" replaces the record at position N (counting from 1).

The mapper only reads the state to resolve the current selection; it
never mutates it.
"""

import dataclasses
import shlex
from typing import Optional

from .actions import (
    Action,
    AddDnsRecord,
    AddNode,
    CheckNodeHealth,
    CreateDomain,
    CreateSite,
    DeleteDnsRecord,
    DeleteDomain,
    DeleteSite,
    DeploySite,
    DismissNotification,
    FetchLogs,
    FetchMetrics,
    FetchNodeStats,
    LoadConfig,
    NavigateBack,
    NavigateTo,
    Quit,
    RemoveNode,
    RestartSite,
    SaveConfig,
    SelectNext,
    SelectPrevious,
    ShowNotification,
    StopSite,
    SyncDnsRecords,
    UpdateDnsRecord,
    UpdateDomain,
    UpdateNode,
    UpdateSite,
)
from .enums import DnsRecordType, ListKind, Screen
from .models import CloudflareDns, DnsRecord, Domain, ManualDns, Node, Route53Dns, Site
from .notifications import Notification
from .state import InventoryState


GLOBAL_KEYS = {
    "q": Quit(),
    "?": NavigateTo(Screen.HELP),
    "esc": NavigateBack(),
    "b": NavigateBack(),
    "w": SaveConfig(),
    "z": DismissNotification(),
}

DASHBOARD_KEYS = {
    "1": NavigateTo(Screen.DASHBOARD),
    "d": NavigateTo(Screen.DASHBOARD),
    "2": NavigateTo(Screen.SITES_LIST),
    "s": NavigateTo(Screen.SITES_LIST),
    "3": NavigateTo(Screen.DOMAINS_LIST),
    "4": NavigateTo(Screen.NODES_LIST),
    "n": NavigateTo(Screen.NODES_LIST),
    "r": LoadConfig(),
}

LIST_KEYS = {
    "up": SelectPrevious(),
    "k": SelectPrevious(),
    "down": SelectNext(),
    "j": SelectNext(),
}

CREATE_SCREENS = {
    Screen.SITES_LIST: Screen.SITE_CREATE,
    Screen.DOMAINS_LIST: Screen.DOMAIN_CREATE,
    Screen.NODES_LIST: Screen.NODE_CREATE,
}


def map_input(line: str, state: InventoryState) -> Optional[Action]:
    """
    Translate one line of input into an action.

    Args:
        line: Raw input line
        state: Current state, read-only

    Returns:
        The action, or None if the input means nothing on this screen
    """
    text = line.strip()
    if not text:
        return None
    if text.startswith(":"):
        return _map_command(text[1:], state)

    key = text if len(text) == 1 else text.lower()
    if key in GLOBAL_KEYS:
        return GLOBAL_KEYS[key]

    screen = state.view.screen
    if screen == Screen.DASHBOARD:
        return DASHBOARD_KEYS.get(key)
    if key in LIST_KEYS and state.current_list() is not None:
        return LIST_KEYS[key]
    if key == "c" and screen in CREATE_SCREENS:
        return NavigateTo(CREATE_SCREENS[screen])

    if screen == Screen.SITES_LIST:
        return _map_sites_key(key, state)
    if screen == Screen.DOMAINS_LIST:
        return _map_domains_key(key, state)
    if screen == Screen.NODES_LIST:
        return _map_nodes_key(key, state)
    if screen == Screen.DOMAIN_DNS_EDITOR:
        return _map_dns_editor_key(key, state)
    if screen == Screen.SITE_DETAIL and state.view.target_id:
        return _site_action(key, state.view.target_id)
    if screen == Screen.NODE_DETAIL and state.view.target_id:
        return _node_action(key, state.view.target_id)
    return None


def _map_sites_key(key: str, state: InventoryState) -> Optional[Action]:
    site = state.selected_site()
    if site is None:
        return None
    if key == "enter":
        return NavigateTo(Screen.SITE_DETAIL, site.id)
    if key == "e":
        return NavigateTo(Screen.SITE_EDIT, site.id)
    return _site_action(key, site.id)


def _site_action(key: str, site_id: str) -> Optional[Action]:
    actions = {
        "D": DeploySite(site_id),
        "x": DeleteSite(site_id),
        "S": StopSite(site_id),
        "R": RestartSite(site_id),
        "l": FetchLogs(site_id),
        "m": FetchMetrics(site_id),
    }
    return actions.get(key)


def _map_domains_key(key: str, state: InventoryState) -> Optional[Action]:
    domain = state.selected_domain()
    if domain is None:
        return None
    if key == "enter":
        return NavigateTo(Screen.DOMAIN_DNS_EDITOR, domain.id)
    if key == "e":
        return NavigateTo(Screen.DOMAIN_EDIT, domain.id)
    if key == "y":
        return SyncDnsRecords(domain.id)
    if key == "x":
        return DeleteDomain(domain.id)
    return None


def _map_nodes_key(key: str, state: InventoryState) -> Optional[Action]:
    node = state.selected_node()
    if node is None:
        return None
    if key == "enter":
        return NavigateTo(Screen.NODE_DETAIL, node.id)
    if key == "e":
        return NavigateTo(Screen.NODE_EDIT, node.id)
    if key == "x":
        return RemoveNode(node.id)
    return _node_action(key, node.id)


def _node_action(key: str, node_id: str) -> Optional[Action]:
    if key == "h":
        return CheckNodeHealth(node_id)
    if key == "t":
        return FetchNodeStats(node_id)
    return None


def _map_dns_editor_key(key: str, state: InventoryState) -> Optional[Action]:
    domain = state.editing_domain()
    if domain is None:
        return None
    if key == "y":
        return SyncDnsRecords(domain.id)
    if key == "x":
        index = state.selected_index(ListKind.DNS_RECORDS)
        if index is not None:
            return DeleteDnsRecord(domain.id, index)
    return None


# Colon commands


def _usage(text: str) -> Action:
    return ShowNotification(Notification.error(f"Usage: {text}"))


def _edit_target(state: InventoryState, screen: Screen) -> Optional[str]:
    """Id of the entity being edited when the current view is that edit screen."""
    if state.view.screen == screen:
        return state.view.target_id
    return None


def _map_command(command: str, state: InventoryState) -> Optional[Action]:
    try:
        parts = shlex.split(command)
    except ValueError as e:
        return ShowNotification(Notification.error(f"Cannot parse command: {e}"))
    if not parts:
        return None

    name, args = parts[0].lower(), parts[1:]
    if name == "node":
        return _command_node(args, state)
    if name == "domain":
        return _command_domain(args, state)
    if name == "site":
        return _command_site(args, state)
    if name == "record":
        return _command_record(args, state)
    return ShowNotification(Notification.error(f"Unknown command: {name}"))


def _command_node(args: list[str], state: InventoryState) -> Action:
    if len(args) != 4:
        return _usage(":node NAME ENDPOINT API_KEY IP")
    name, endpoint, api_key, ip_address = args

    node_id = _edit_target(state, Screen.NODE_EDIT)
    if node_id is None:
        return AddNode(Node.new(name, endpoint, api_key, ip_address))
    current = state.get_node(node_id)
    if current is None:
        return ShowNotification(Notification.error(f"Node {node_id} not found"))
    return UpdateNode(node_id, dataclasses.replace(
        current, name=name, api_endpoint=endpoint, api_key=api_key, ip_address=ip_address
    ))


def _command_domain(args: list[str], state: InventoryState) -> Action:
    usage = ":domain NAME [manual | cloudflare TOKEN ZONE_ID | route53 ACCESS SECRET ZONE_ID]"
    if not args:
        return _usage(usage)

    name, rest = args[0], args[1:]
    provider_name = rest[0].lower() if rest else "manual"
    provider_args = rest[1:]

    if provider_name == "manual" and not provider_args:
        provider = ManualDns()
    elif provider_name == "cloudflare" and len(provider_args) == 2:
        provider = CloudflareDns(api_token=provider_args[0], zone_id=provider_args[1])
    elif provider_name == "route53" and len(provider_args) == 3:
        provider = Route53Dns(
            access_key=provider_args[0],
            secret_key=provider_args[1],
            hosted_zone_id=provider_args[2],
        )
    else:
        return _usage(usage)

    domain_id = _edit_target(state, Screen.DOMAIN_EDIT)
    if domain_id is None:
        return CreateDomain(Domain.new(name, provider))
    current = state.get_domain(domain_id)
    if current is None:
        return ShowNotification(Notification.error(f"Domain {domain_id} not found"))
    # Records stay with the domain
    return UpdateDomain(domain_id, dataclasses.replace(
        current, name=name, dns_provider=provider, dns_records=list(current.dns_records)
    ))


def _command_site(args: list[str], state: InventoryState) -> Action:
    usage = ":site NAME DOMAIN NODE IMAGE PORT"
    if len(args) != 5:
        return _usage(usage)
    name, domain_ref, node_ref, image, port_text = args
    try:
        port = int(port_text)
    except ValueError:
        return _usage(usage)

    # Domains and nodes may be given by name or id
    domain = next((d for d in state.domains if d.name == domain_ref.lower()), None)
    node = next((n for n in state.nodes if n.name == node_ref), None)
    domain_id = domain.id if domain is not None else domain_ref
    node_id = node.id if node is not None else node_ref

    site_id = _edit_target(state, Screen.SITE_EDIT)
    if site_id is None:
        return CreateSite(Site.new(name, domain_id, node_id, image, port))
    current = state.get_site(site_id)
    if current is None:
        return ShowNotification(Notification.error(f"Site {site_id} not found"))
    return UpdateSite(site_id, dataclasses.replace(
        current,
        name=name,
        domain_id=domain_id,
        node_id=node_id,
        docker_image=image,
        port=port,
        environment_vars=dict(current.environment_vars),
        config_files=list(current.config_files),
    ))


def _command_record(args: list[str], state: InventoryState) -> Action:
    usage = ":record [N] TYPE NAME VALUE [TTL]"
    domain = state.editing_domain() if state.view.screen == Screen.DOMAIN_DNS_EDITOR else None
    if domain is None:
        return ShowNotification(Notification.error("Open a domain's DNS editor first"))

    position = None
    if args and args[0].isdecimal():
        position, args = int(args[0]), args[1:]
    if position == 0 or len(args) not in (3, 4):
        return _usage(usage)
    try:
        record_type = DnsRecordType.parse(args[0])
        ttl = int(args[3]) if len(args) == 4 else None
    except ValueError:
        return _usage(usage)

    if position is None:
        return AddDnsRecord(domain.id, DnsRecord(record_type, args[1], args[2], ttl))
    index = position - 1
    # The edited record keeps its provider id and proxied flag
    record_id = None
    if 0 <= index < len(domain.dns_records):
        current = domain.dns_records[index]
        record_id = current.id
        proxied = current.proxied
    else:
        proxied = False
    return UpdateDnsRecord(
        domain.id, index, DnsRecord(record_type, args[1], args[2], ttl, proxied, record_id)
    )
