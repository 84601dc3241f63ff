"""
Operation Registry for background work.

Every background unit is registered here, with a freshly minted id, before
it is spawned. An entry starts InProgress and moves exactly once to
Completed or Failed; terminal entries are never reopened. Only the newest
MAX_TERMINAL_OPERATIONS terminal entries are kept, in-progress entries are
never evicted.
"""

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from .enums import OperationKind, OperationStatus
from .models import new_id, utc_now


MAX_TERMINAL_OPERATIONS = 100


@dataclass
class AsyncOperation:
    """One tracked unit of background work."""

    id: str
    kind: OperationKind
    target_id: str
    status: OperationStatus = OperationStatus.IN_PROGRESS
    started_at: str = field(default_factory=utc_now)
    finished_at: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != OperationStatus.IN_PROGRESS


class OperationRegistry:
    """
    Tracks background operations by id.

    Insertion order is preserved so that eviction drops the oldest terminal
    entries first.
    """

    def __init__(self, max_terminal: int = MAX_TERMINAL_OPERATIONS) -> None:
        self._operations: dict[str, AsyncOperation] = {}
        self._max_terminal = max_terminal

    def register(self, kind: OperationKind, target_id: str) -> AsyncOperation:
        """
        Mint an id and record a new in-progress operation.

        Args:
            kind: What the operation does
            target_id: Id of the entity it acts on

        Returns:
            The registered AsyncOperation
        """
        operation = AsyncOperation(id=new_id(), kind=kind, target_id=target_id)
        self._operations[operation.id] = operation
        return operation

    def get(self, operation_id: str) -> Optional[AsyncOperation]:
        return self._operations.get(operation_id)

    def complete(self, operation_id: str) -> bool:
        """
        Mark an operation Completed.

        Returns:
            True if the transition happened; False for unknown ids and
            entries that are already terminal
        """
        return self._finish(operation_id, OperationStatus.COMPLETED, None)

    def fail(self, operation_id: str, reason: str) -> bool:
        """Mark an operation Failed; same return contract as complete()."""
        return self._finish(operation_id, OperationStatus.FAILED, reason)

    def in_flight(
        self,
        target_id: str,
        kinds: Optional[Iterable[OperationKind]] = None,
    ) -> list[AsyncOperation]:
        """In-progress operations on a target, optionally filtered by kind."""
        wanted = set(kinds) if kinds is not None else None
        return [
            op for op in self._operations.values()
            if op.target_id == target_id
            and not op.is_terminal
            and (wanted is None or op.kind in wanted)
        ]

    def pending(self) -> list[AsyncOperation]:
        """All in-progress operations, oldest first."""
        return [op for op in self._operations.values() if not op.is_terminal]

    def _finish(
        self,
        operation_id: str,
        status: OperationStatus,
        reason: Optional[str],
    ) -> bool:
        operation = self._operations.get(operation_id)
        if operation is None or operation.is_terminal:
            return False

        operation.status = status
        operation.error = reason
        operation.finished_at = utc_now()
        self._evict_terminal()
        return True

    def _evict_terminal(self) -> None:
        terminal = [op.id for op in self._operations.values() if op.is_terminal]
        excess = len(terminal) - self._max_terminal
        for operation_id in terminal[:max(excess, 0)]:
            del self._operations[operation_id]

    def __len__(self) -> int:
        return len(self._operations)

    def __iter__(self) -> Iterator[AsyncOperation]:
        return iter(list(self._operations.values()))

    def __contains__(self, operation_id: object) -> bool:
        return operation_id in self._operations
