"""
User-facing notifications.

Provides the Notification value and the bounded FIFO queue the console
shows in its status bar. The queue keeps the most recent MAX_NOTIFICATIONS
entries; older ones are evicted first.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Iterator, Optional

from .enums import NotificationLevel
from .models import utc_now


MAX_NOTIFICATIONS = 50


@dataclass(frozen=True)
class Notification:
    """A status message shown to the operator."""

    message: str
    level: NotificationLevel
    timestamp: str = field(default_factory=utc_now)

    @classmethod
    def info(cls, message: str) -> "Notification":
        return cls(message, NotificationLevel.INFO)

    @classmethod
    def success(cls, message: str) -> "Notification":
        return cls(message, NotificationLevel.SUCCESS)

    @classmethod
    def warning(cls, message: str) -> "Notification":
        return cls(message, NotificationLevel.WARNING)

    @classmethod
    def error(cls, message: str) -> "Notification":
        return cls(message, NotificationLevel.ERROR)


class NotificationQueue:
    """
    Bounded FIFO of notifications.

    push() appends at the back and evicts from the front once the queue
    exceeds its capacity; dismiss() pops the oldest entry.
    """

    def __init__(self, capacity: int = MAX_NOTIFICATIONS) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._items: deque[Notification] = deque()

    def push(self, notification: Notification) -> None:
        """Append a notification, evicting the oldest beyond capacity."""
        self._items.append(notification)
        while len(self._items) > self._capacity:
            self._items.popleft()

    def emit(self, message: str, level: NotificationLevel) -> Notification:
        """Create and push a notification."""
        notification = Notification(message, level)
        self.push(notification)
        return notification

    def dismiss(self) -> Optional[Notification]:
        """Remove and return the oldest notification, if any."""
        if not self._items:
            return None
        return self._items.popleft()

    def latest(self) -> Optional[Notification]:
        """The most recent notification, if any."""
        return self._items[-1] if self._items else None

    def count(self, level: NotificationLevel) -> int:
        """Number of queued notifications at the given level."""
        return sum(1 for n in self._items if n.level == level)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Notification]:
        return iter(list(self._items))
