"""Command handlers for user actions.

Each handler calls the store or the auth session and turns the outcome into
a :class:`CommandResult` carrying the notification to show. Validation and
backend failures are reported through the result instead of being raised,
so the caller's state is unchanged and the user can simply retry.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .auth import AuthSession
from .errors import BackendError, ValidationError
from .services.notifications import Notification, NotificationCenter
from .store import TaskStore

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of a command"""
    ok: bool
    notification: Optional[Notification] = None
    value: Any = None

    @property
    def message(self) -> str:
        return self.notification.message if self.notification else ""


class Commands:
    """Entry points for every user action."""

    def __init__(self, store: TaskStore, auth: AuthSession,
                 notifications: Optional[NotificationCenter] = None):
        self.store = store
        self.auth = auth
        self.notifications = notifications or NotificationCenter()
        self.store.on_error = self._on_store_error

    def _ok(self, message: str, value: Any = None) -> CommandResult:
        return CommandResult(ok=True, notification=self.notifications.show(message, True), value=value)

    def _fail(self, message: str) -> CommandResult:
        return CommandResult(ok=False, notification=self.notifications.show(message, False))

    def _on_store_error(self, error: BackendError) -> None:
        self.notifications.show(f"Error loading tasks: {error.message}", False)

    # Tasks

    async def add_task(self, text: str, category: str) -> CommandResult:
        try:
            task_id = await self.store.create(text, category)
        except ValidationError as e:
            return self._fail(str(e))
        except BackendError as e:
            return self._fail(f"Error adding task: {e.message}")
        return self._ok("Task added successfully", value=task_id)

    async def set_completed(self, task_id: str, completed: bool) -> CommandResult:
        try:
            await self.store.toggle_complete(task_id, completed)
        except ValidationError as e:
            return self._fail(str(e))
        except BackendError as e:
            return self._fail(f"Error updating task: {e.message}")
        return self._ok("Task updated successfully")

    async def rename_task(self, task_id: str, new_text: Optional[str]) -> CommandResult:
        if new_text is None or not new_text.strip():
            # Cancelled or blank edit prompt: nothing to do
            return CommandResult(ok=False)
        try:
            await self.store.rename(task_id, new_text)
        except ValidationError as e:
            return self._fail(str(e))
        except BackendError as e:
            return self._fail(f"Error updating task: {e.message}")
        return self._ok("Task updated successfully")

    async def delete_task(self, task_id: str) -> CommandResult:
        try:
            await self.store.delete(task_id)
        except ValidationError as e:
            return self._fail(str(e))
        except BackendError as e:
            return self._fail(f"Error deleting task: {e.message}")
        return self._ok("Task deleted successfully")

    def set_filter(self, predicate: str) -> CommandResult:
        try:
            self.store.state.set_filter(predicate)
        except ValidationError as e:
            return self._fail(str(e))
        return CommandResult(ok=True, value=predicate)

    # Accounts

    async def sign_up(self, name: str, email: str, password: str, confirm_password: str) -> CommandResult:
        try:
            identity = await self.auth.sign_up(name, email, password, confirm_password)
        except ValidationError as e:
            return self._fail(str(e))
        except BackendError as e:
            return self._fail(f"Error creating account: {e.message}")
        return self._ok("Account created successfully! Please sign in.", value=identity)

    async def sign_in(self, email: str, password: str) -> CommandResult:
        try:
            identity = await self.auth.sign_in(email, password)
        except (ValidationError, BackendError) as e:
            return self._fail(str(e))
        return CommandResult(ok=True, value=identity)

    async def sign_out(self) -> CommandResult:
        try:
            await self.auth.sign_out()
        except BackendError as e:
            return self._fail(f"Error signing out: {e.message}")
        return self._ok("Signed out successfully")
