"""Explicit application state shared by the task store and its readers."""

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from .backend.base import Identity
from .task import Task, TaskFilter

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[Tuple[Task, ...]], None]


class AppState:
    """Current user, current filter and the latest task snapshot.

    ``snapshot`` is None until the first push arrives; after that it is a
    tuple that is replaced wholesale, never patched. Only the task store
    writes it (through :meth:`publish_snapshot`); everything else reads it
    or listens for changes with :meth:`subscribe`.
    """

    def __init__(self, current_filter: str = TaskFilter.ALL):
        self.current_user: Optional[Identity] = None
        self.display_name: Optional[str] = None
        self.current_filter = TaskFilter.validate(current_filter)
        self._snapshot: Optional[Tuple[Task, ...]] = None
        self._listeners: List[SnapshotListener] = []

    @property
    def snapshot(self) -> Optional[Tuple[Task, ...]]:
        return self._snapshot

    @property
    def tasks(self) -> Tuple[Task, ...]:
        """The snapshot, or an empty tuple before the first push."""
        return self._snapshot if self._snapshot is not None else ()

    @property
    def has_snapshot(self) -> bool:
        return self._snapshot is not None

    def set_filter(self, predicate: str) -> None:
        self.current_filter = TaskFilter.validate(predicate)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call ``listener`` with every new snapshot; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish_snapshot(self, tasks: Sequence[Task]) -> None:
        """Replace the snapshot and notify listeners."""
        self._snapshot = tuple(tasks)
        logger.debug("Snapshot replaced: %d task(s)", len(self._snapshot))
        for listener in list(self._listeners):
            listener(self._snapshot)

    def clear(self) -> None:
        """Empty the snapshot, as after sign-out."""
        self.publish_snapshot(())
