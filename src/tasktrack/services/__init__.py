"""Services built on top of the task snapshot."""

from .analytics import (
    AnalyticsReport,
    ChartSeries,
    TaskSummary,
    average_completion_days,
    build_report,
    by_category,
    completion_split,
    created_today,
    monthly_creations,
    summary,
    weekly_completions,
)
from .dashboard import DashboardView, StatTiles, build_dashboard
from .notifications import Notification, NotificationCenter, NotificationKind

__all__ = [
    "AnalyticsReport",
    "ChartSeries",
    "TaskSummary",
    "average_completion_days",
    "build_report",
    "by_category",
    "completion_split",
    "created_today",
    "monthly_creations",
    "summary",
    "weekly_completions",
    "DashboardView",
    "StatTiles",
    "build_dashboard",
    "Notification",
    "NotificationCenter",
    "NotificationKind",
]
