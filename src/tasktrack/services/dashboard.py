"""Dashboard view model.

Turns the application state into what the dashboard shows: four stat tiles
and the list of recent tasks, plus the empty-state message when that list
is empty.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from ..state import AppState
from ..store import filter_tasks
from ..task import Task, TaskFilter
from .analytics import created_today, summary

DEFAULT_RECENT_LIMIT = 5
EMPTY_ALL_MESSAGE = "Get started by adding a new task!"
EMPTY_FILTERED_MESSAGE = "No tasks match your current filter"


@dataclass
class StatTiles:
    """Numbers shown across the top of the dashboard"""
    total: int = 0
    completed: int = 0
    active: int = 0
    today: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "active": self.active,
            "today": self.today,
        }


@dataclass
class DashboardView:
    """Everything needed to render the dashboard"""
    filter: str
    tiles: StatTiles
    recent: List[Task] = field(default_factory=list)
    filtered: List[Task] = field(default_factory=list)
    loaded: bool = False

    @property
    def empty_message(self) -> Optional[str]:
        if self.recent:
            return None
        return empty_message(self.filter)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filter": self.filter,
            "tiles": self.tiles.to_dict(),
            "recent": [t.to_dict() for t in self.recent],
            "empty_message": self.empty_message,
        }


def empty_message(predicate: str) -> str:
    return EMPTY_ALL_MESSAGE if predicate == TaskFilter.ALL else EMPTY_FILTERED_MESSAGE


def build_tiles(tasks: List[Task], today: Optional[Union[date, datetime]] = None) -> StatTiles:
    totals = summary(tasks)
    return StatTiles(
        total=totals.total,
        completed=totals.completed,
        active=totals.active,
        today=created_today(tasks, today),
    )


def build_dashboard(state: AppState, today: Optional[Union[date, datetime]] = None,
                    recent_limit: int = DEFAULT_RECENT_LIMIT) -> DashboardView:
    """Build the dashboard for the current snapshot and filter.

    With the ``all`` filter only the newest ``recent_limit`` tasks are
    listed; any other filter lists every match. Tiles always describe the
    whole snapshot.
    """
    tasks = list(state.tasks)
    filtered = filter_tasks(tasks, state.current_filter)
    recent = filtered[:recent_limit] if state.current_filter == TaskFilter.ALL else filtered
    return DashboardView(
        filter=state.current_filter,
        tiles=build_tiles(tasks, today),
        recent=recent,
        filtered=filtered,
        loaded=state.has_snapshot,
    )
