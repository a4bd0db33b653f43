"""Analytics over a task snapshot.

Everything here is a pure function of the task list (and, where a notion of
"now" matters, an explicit reference time). Nothing touches the backend.

Provides:
- Totals and completion rate
- Average days from creation to completion
- Task counts per category
- Completions per weekday of the current week
- Creations per month over the trailing six months
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from ..task import Category, Task
from ..utils.datetime import (
    format_month_label,
    local_date,
    now_utc,
    shift_month,
    start_of_week,
    sunday_index,
    to_iso_string,
    to_local,
)

WEEKDAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
MONTHS_SHOWN = 6
SECONDS_PER_DAY = 24 * 60 * 60

DateLike = Union[date, datetime]


def js_round(value: float) -> int:
    """Round half up, like JavaScript's ``Math.round``."""
    return int(math.floor(value + 0.5))


def _as_local_date(value: Optional[DateLike]) -> date:
    if value is None:
        return local_date(now_utc())
    if isinstance(value, datetime):
        return local_date(value)
    return value


@dataclass
class TaskSummary:
    """Raw totals over a snapshot"""
    total: int
    completed: int
    active: int
    completion_rate: int  # percent, 0-100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "active": self.active,
            "completion_rate": self.completion_rate,
        }


@dataclass
class ChartSeries:
    """Labels and the counts plotted against them"""
    labels: List[str]
    data: List[int]

    def to_dict(self) -> Dict[str, Any]:
        return {"labels": list(self.labels), "data": list(self.data)}


def summary(tasks: Sequence[Task]) -> TaskSummary:
    """Count total, completed and active tasks.

    The completion rate is 0 for an empty list rather than a division error.
    """
    total = len(tasks)
    completed = sum(1 for t in tasks if t.completed)
    rate = js_round(100 * completed / total) if total else 0
    return TaskSummary(total=total, completed=completed, active=total - completed, completion_rate=rate)


def completion_days(task: Task) -> Optional[int]:
    """Whole days between creation and completion, rounded up.

    Uses the absolute difference so clock skew cannot produce a negative
    duration. Zero elapsed time stays 0. None if either time is unknown.
    """
    if not task.completion_known:
        return None
    elapsed = abs((task.completed_at - task.created_at).total_seconds())
    return math.ceil(elapsed / SECONDS_PER_DAY)


def average_completion_days(tasks: Sequence[Task]) -> int:
    """Mean of :func:`completion_days` over completed tasks, rounded; 0 if none qualify."""
    durations = [d for d in (completion_days(t) for t in tasks) if d is not None]
    if not durations:
        return 0
    return js_round(sum(durations) / len(durations))


def by_category(tasks: Sequence[Task]) -> Dict[str, int]:
    """Count tasks per category; unrecognized categories are left out."""
    counts = {category.value: 0 for category in Category}
    for task in tasks:
        if task.category in counts:
            counts[task.category] += 1
    return counts


def completion_split(tasks: Sequence[Task]) -> ChartSeries:
    """Completed versus active counts."""
    s = summary(tasks)
    return ChartSeries(labels=["Completed", "Active"], data=[s.completed, s.active])


def weekly_completions(tasks: Sequence[Task], today: Optional[DateLike] = None) -> ChartSeries:
    """Completions per day of the current week, labelled Monday to Sunday.

    The week starts on the most recent Sunday on or before ``today`` and ends
    at ``today`` inclusive, compared by local calendar day. Counts are
    gathered Sunday-first and then rotated so Sunday is the last slot.
    """
    today = _as_local_date(today)
    week_start = start_of_week(today)

    week = [0] * 7
    for task in tasks:
        if not (task.completed and task.completed_at):
            continue
        day = local_date(task.completed_at)
        if week_start <= day <= today:
            week[sunday_index(day)] += 1

    return ChartSeries(labels=list(WEEKDAY_LABELS), data=week[1:] + week[:1])


def monthly_creations(tasks: Sequence[Task], now: Optional[DateLike] = None) -> ChartSeries:
    """Tasks created per month for the six months ending with ``now``'s month.

    Labels run oldest to newest as ``"MMM YYYY"``.
    """
    reference = _as_local_date(now)
    labels = [format_month_label(*shift_month(reference.year, reference.month, -offset))
              for offset in range(MONTHS_SHOWN - 1, -1, -1)]

    counts = [0] * MONTHS_SHOWN
    for task in tasks:
        if task.created_at is None:
            continue
        created = to_local(task.created_at)
        month_diff = (reference.year - created.year) * 12 + (reference.month - created.month)
        if 0 <= month_diff < MONTHS_SHOWN:
            counts[MONTHS_SHOWN - 1 - month_diff] += 1

    return ChartSeries(labels=labels, data=counts)


def created_today(tasks: Sequence[Task], today: Optional[DateLike] = None) -> int:
    """Number of tasks created on ``today`` (local calendar day)."""
    today = _as_local_date(today)
    return sum(1 for task in tasks if task.created_on(today))


@dataclass
class AnalyticsReport:
    """Every figure shown on the analytics page"""
    generated_at: datetime
    summary: TaskSummary
    average_completion_days: int
    by_category: Dict[str, int] = field(default_factory=dict)
    completion: Optional[ChartSeries] = None
    weekly: Optional[ChartSeries] = None
    monthly: Optional[ChartSeries] = None

    @property
    def category_series(self) -> ChartSeries:
        return ChartSeries(
            labels=[Category(value).label for value in self.by_category],
            data=list(self.by_category.values()),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "generated_at": to_iso_string(self.generated_at),
            "summary": self.summary.to_dict(),
            "average_completion_days": self.average_completion_days,
            "by_category": dict(self.by_category),
            "completion": self.completion.to_dict() if self.completion else None,
            "weekly": self.weekly.to_dict() if self.weekly else None,
            "monthly": self.monthly.to_dict() if self.monthly else None,
        }


def build_report(tasks: Sequence[Task], now: Optional[datetime] = None) -> AnalyticsReport:
    """Compute the full analytics report for ``tasks`` as of ``now``."""
    now = now or now_utc()
    return AnalyticsReport(
        generated_at=now,
        summary=summary(tasks),
        average_completion_days=average_completion_days(tasks),
        by_category=by_category(tasks),
        completion=completion_split(tasks),
        weekly=weekly_completions(tasks, now),
        monthly=monthly_creations(tasks, now),
    )
