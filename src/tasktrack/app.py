"""Wiring of backend, state, store, auth and command handlers."""

import logging
from dataclasses import dataclass
from typing import Optional

from .auth import AuthSession
from .backend.base import Backend
from .backend.local import LocalBackend
from .backend.models import TaskDocument, UserProfileDocument
from .commands import Commands
from .config import ConfigModel, get_config
from .services.notifications import NotificationCenter
from .state import AppState
from .store import TaskStore

logger = logging.getLogger(__name__)


@dataclass
class TaskTrackApp:
    """One running application instance."""
    config: ConfigModel
    backend: Backend
    state: AppState
    store: TaskStore
    auth: AuthSession
    notifications: NotificationCenter
    commands: Commands

    def start(self) -> "TaskTrackApp":
        self.auth.start()
        return self

    def stop(self) -> None:
        self.auth.stop()


def create_backend(config: ConfigModel) -> Backend:
    return LocalBackend(
        config.get_database_path(),
        document_models={
            config.tasks_collection: TaskDocument,
            config.users_collection: UserProfileDocument,
        },
    )


def create_app(config: Optional[ConfigModel] = None, backend: Optional[Backend] = None) -> TaskTrackApp:
    """Build an application; call ``start()`` to begin following auth state."""
    config = config or get_config()
    backend = backend or create_backend(config)
    logger.debug("Creating app with data dir %s", config.data_dir)

    state = AppState(current_filter=config.default_filter)
    store = TaskStore(backend, state,
                      collection=config.tasks_collection,
                      timeout=config.mutation_timeout)
    auth = AuthSession(backend, store, state, users_collection=config.users_collection)
    notifications = NotificationCenter(duration=config.notification_seconds)
    commands = Commands(store, auth, notifications)
    return TaskTrackApp(config=config, backend=backend, state=state, store=store,
                        auth=auth, notifications=notifications, commands=commands)
