"""tasktrack - A personal task tracker with live sync and productivity analytics."""

__version__ = "0.1.0"
__author__ = "tasktrack Team"

from .task import Task, Category, TaskFilter
from .errors import TaskTrackError, ValidationError, BackendError, PermissionDeniedError
from .state import AppState
from .store import TaskStore, filter_tasks

__all__ = [
    "Task",
    "Category",
    "TaskFilter",
    "TaskTrackError",
    "ValidationError",
    "BackendError",
    "PermissionDeniedError",
    "AppState",
    "TaskStore",
    "filter_tasks",
    "__version__",
]
