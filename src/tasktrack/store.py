"""Task store: mirrors the signed-in user's tasks and forwards mutations.

The store never edits its snapshot in response to a mutation. Every write
goes to the backend, and the backend's next push replaces the snapshot.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from .backend.base import SERVER_TIMESTAMP, Backend, Document, Identity, Subscription
from .errors import BackendError, PermissionDeniedError, ValidationError
from .state import AppState
from .task import Category, Task, TaskFilter

logger = logging.getLogger(__name__)

T = TypeVar("T")
ErrorHandler = Callable[[BackendError], None]


def sort_newest_first(tasks: Sequence[Task]) -> List[Task]:
    """Sort by ``created_at`` descending.

    Tasks whose creation time is still unknown go after dated tasks and keep
    their relative order (``sorted`` is stable).
    """
    return sorted(
        tasks,
        key=lambda t: (t.created_at is None, -t.created_at.timestamp() if t.created_at else 0.0),
    )


def filter_tasks(snapshot: Sequence[Task], predicate: str) -> List[Task]:
    """Return the tasks matching ``predicate``, preserving snapshot order.

    ``predicate`` is ``all``, ``active``, ``completed`` or a category name.
    """
    TaskFilter.validate(predicate)
    return [task for task in snapshot if TaskFilter.matches(task, predicate)]


def documents_to_tasks(documents: Sequence[Document]) -> List[Task]:
    """Convert a pushed document set into a sorted task list."""
    return sort_newest_first([Task.from_document(doc.id, doc.data) for doc in documents])


class TaskStore:
    """Owns the snapshot of the current user's tasks."""

    def __init__(self, backend: Backend, state: AppState,
                 collection: str = "tasks",
                 timeout: Optional[float] = None,
                 on_error: Optional[ErrorHandler] = None):
        self.backend = backend
        self.state = state
        self.collection = collection
        self.timeout = timeout
        self.on_error = on_error
        self._subscription: Optional[Subscription] = None
        self._detaching = False

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    # ------------------------------------------------------------------
    # Subscription lifecycle
    # ------------------------------------------------------------------

    def attach(self, user: Identity) -> None:
        """Open the live subscription for ``user``, closing any previous one."""
        self.detach(clear=False)
        self.state.current_user = user
        logger.debug("Subscribing to %s for %s", self.collection, user.uid)
        self._subscription = self.backend.subscribe(
            self.collection, user.uid, self._on_push, self._on_subscription_error
        )

    def detach(self, clear: bool = True) -> None:
        """Cancel the subscription and, by default, empty the snapshot."""
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            self._detaching = True
            try:
                subscription.cancel()
            finally:
                self._detaching = False
            logger.debug("Cancelled %s subscription", self.collection)
        if clear:
            self.state.clear()

    def _on_push(self, documents: Sequence[Document]) -> None:
        self.state.publish_snapshot(documents_to_tasks(documents))

    def _signing_out(self) -> bool:
        identity = self.backend.current_identity
        user = self.state.current_user
        return self._detaching or user is None or identity is None or identity.uid != user.uid

    def _on_subscription_error(self, error: Exception) -> None:
        if isinstance(error, PermissionDeniedError) and self._signing_out():
            # Expected while signing out or switching users
            logger.debug("Ignoring subscription error during sign-out: %s", error)
            return

        if not isinstance(error, BackendError):
            error = BackendError(str(error))
        logger.error("Error loading tasks: %s", error)
        if self.on_error is not None:
            self.on_error(error)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def _call(self, action: str, call: Awaitable[T]) -> T:
        try:
            if self.timeout is None:
                return await call
            return await asyncio.wait_for(call, self.timeout)
        except asyncio.TimeoutError:
            logger.error("Timed out %s after %ss", action, self.timeout)
            raise BackendError(f"Request timed out after {self.timeout} seconds", code="deadline-exceeded")
        except BackendError as e:
            logger.error("Error %s: %s", action, e)
            raise

    def _require_user(self) -> Identity:
        if self.state.current_user is None:
            raise ValidationError("Not signed in", field_name="user")
        return self.state.current_user

    async def create(self, text: str, category: str) -> str:
        """Submit a new task; returns the id assigned by the backend."""
        text = (text or "").strip()
        if not text:
            raise ValidationError("Please enter a task", field_name="text")
        parsed = Category.parse(category)
        if parsed is None:
            raise ValidationError(f"Unknown category: {category}", field_name="category")
        user = self._require_user()

        return await self._call("adding task", self.backend.create(self.collection, {
            "owner_id": user.uid,
            "text": text,
            "category": parsed.value,
            "completed": False,
            "created_at": SERVER_TIMESTAMP,
            "completed_at": None,
        }))

    async def toggle_complete(self, task_id: str, completed: bool) -> None:
        self._require_user()
        await self._call("updating task", self.backend.update(self.collection, task_id, {
            "completed": completed,
            "completed_at": SERVER_TIMESTAMP if completed else None,
        }))

    async def rename(self, task_id: str, new_text: str) -> None:
        new_text = (new_text or "").strip()
        if not new_text:
            raise ValidationError("Task text cannot be empty", field_name="text")
        self._require_user()
        await self._call("updating task", self.backend.update(self.collection, task_id, {
            "text": new_text,
        }))

    async def delete(self, task_id: str) -> None:
        self._require_user()
        await self._call("deleting task", self.backend.delete(self.collection, task_id))

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get(self, task_id: str) -> Optional[Task]:
        """Look up a task in the current snapshot by id or unique id prefix."""
        matches = [t for t in self.state.tasks if t.id == task_id]
        if not matches:
            matches = [t for t in self.state.tasks if t.id.startswith(task_id)]
        return matches[0] if len(matches) == 1 else None

    def filtered(self, predicate: Optional[str] = None) -> List[Task]:
        return filter_tasks(self.state.tasks, predicate or self.state.current_filter)
