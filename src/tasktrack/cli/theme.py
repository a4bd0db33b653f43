"""Rich theme and console helpers for the tasktrack CLI."""

from rich.console import Console
from rich.theme import Theme

from ..config import get_config
from ..task import Category

CATEGORY_COLORS = {
    Category.WORK.value: "#6C63FF",
    Category.PERSONAL.value: "#36D6C3",
    Category.SHOPPING.value: "#FF6B8B",
    Category.HEALTH.value: "#10B981",
    Category.EDUCATION.value: "#F59E0B",
}

TASKTRACK_THEME = Theme({
    "muted": "#718CA1",
    "header": "#6C63FF bold",
    "success": "#10B981 bold",
    "error": "#F78C6C bold",
    "done": "#718CA1 strike",
    "tile": "#FFFFFF bold",
    **{f"category_{name}": color for name, color in CATEGORY_COLORS.items()},
})


def get_themed_console() -> Console:
    """Get a console that honours the ``no_color`` setting."""
    config = get_config()
    return Console(theme=TASKTRACK_THEME, no_color=config.no_color)


def category_style(category: str) -> str:
    return f"category_{category}" if category in CATEGORY_COLORS else "muted"
