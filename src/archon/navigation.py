"""
Screen navigation and list selection.

Navigation is a stack of previously visited views. Each list has its own
cursor; cursors move with wraparound and are only meaningful while their
list is non-empty.
"""

from dataclasses import dataclass, field
from typing import Optional

from .enums import ListKind, Screen


@dataclass(frozen=True)
class View:
    """A screen, optionally focused on one entity."""

    screen: Screen = Screen.DASHBOARD
    target_id: Optional[str] = None


# Which list a screen's selection keys act on
SCREEN_LISTS = {
    Screen.SITES_LIST: ListKind.SITES,
    Screen.DOMAINS_LIST: ListKind.DOMAINS,
    Screen.NODES_LIST: ListKind.NODES,
    Screen.DOMAIN_DNS_EDITOR: ListKind.DNS_RECORDS,
}


class Navigator:
    """Current view plus the back stack."""

    def __init__(self, initial: Optional[View] = None) -> None:
        self._current = initial or View()
        self._history: list[View] = []

    @property
    def current(self) -> View:
        return self._current

    @property
    def depth(self) -> int:
        return len(self._history)

    def navigate_to(self, view: View) -> None:
        """Push the current view and switch to a new one."""
        self._history.append(self._current)
        self._current = view

    def navigate_back(self) -> bool:
        """Pop the previous view; no-op when the stack is empty."""
        if not self._history:
            return False
        self._current = self._history.pop()
        return True


@dataclass
class SelectionState:
    """Cursor per selectable list."""

    cursors: dict[ListKind, int] = field(
        default_factory=lambda: {kind: 0 for kind in ListKind}
    )

    def index(self, kind: ListKind, length: int) -> Optional[int]:
        """The cursor for a list of the given length, or None when it is empty."""
        if length <= 0:
            return None
        return min(self.cursors.get(kind, 0), length - 1)

    def select_next(self, kind: ListKind, length: int) -> None:
        if length <= 0:
            return
        self.cursors[kind] = (self.cursors.get(kind, 0) + 1) % length

    def select_previous(self, kind: ListKind, length: int) -> None:
        if length <= 0:
            return
        self.cursors[kind] = (self.cursors.get(kind, 0) + length - 1) % length

    def select(self, kind: ListKind, index: int, length: int) -> bool:
        """Jump to an index; rejected when out of range."""
        if not 0 <= index < length:
            return False
        self.cursors[kind] = index
        return True

    def clamp(self, kind: ListKind, length: int) -> None:
        """Keep the cursor inside [0, length) after the list shrank."""
        if length <= 0:
            self.cursors[kind] = 0
        elif self.cursors.get(kind, 0) >= length:
            self.cursors[kind] = length - 1
