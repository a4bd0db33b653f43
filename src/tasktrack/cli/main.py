"""Command-line interface for tasktrack."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Iterable

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..app import TaskTrackApp, create_app
from ..auth import avatar_initial
from ..commands import CommandResult
from ..config import get_config, load_config
from ..services.dashboard import build_dashboard, empty_message
from ..services.notifications import Notification
from ..store import filter_tasks
from ..task import Category, Task, TaskFilter
from ..utils.datetime import format_display_date, to_local
from .analytics_commands import analytics
from .theme import category_style, get_themed_console

logger = logging.getLogger(__name__)

SHORT_ID_LENGTH = 8
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_console() -> Console:
    """Get a themed console that reflects current configuration."""
    return get_themed_console()


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, get_config().log_level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)


def get_app(ctx: click.Context) -> TaskTrackApp:
    """Application for this invocation, created on first use."""
    ctx.ensure_object(dict)
    if ctx.obj.get("app") is None:
        app = create_app(get_config()).start()
        # Restored sessions need the profile name, not the e-mail fallback
        run(app.auth.load_profile())
        ctx.obj["app"] = app
    return ctx.obj["app"]


def run(coro):
    return asyncio.run(coro)


def print_notification(notification: Notification) -> None:
    if notification.success:
        get_console().print(f"[success]✅ {notification.message}[/success]")
    else:
        get_console().print(f"[error]❌ {notification.message}[/error]")


def finish(result: CommandResult) -> None:
    """Print the command's notification and exit non-zero on failure."""
    if result.notification is not None:
        print_notification(result.notification)
    if not result.ok:
        sys.exit(1)


def require_user(app: TaskTrackApp) -> None:
    if app.state.current_user is None:
        get_console().print("[error]❌ Not signed in. Run 'tasktrack login' first.[/error]")
        sys.exit(1)


def resolve_task(app: TaskTrackApp, task_id: str) -> Task:
    task = app.store.get(task_id)
    if task is None:
        get_console().print(f"[error]❌ Task {task_id} not found[/error]")
        sys.exit(1)
    return task


def format_date(task: Task) -> str:
    if task.created_at is None:
        return ""
    date_format = get_config().date_format
    if not date_format:
        return format_display_date(task.created_at)
    return to_local(task.created_at).strftime(date_format)


def task_table(tasks: Iterable[Task], title: str) -> Table:
    table = Table(title=title, title_style="header", show_lines=False)
    table.add_column("ID", style="muted", no_wrap=True)
    table.add_column("", no_wrap=True)
    table.add_column("Task")
    table.add_column("Category", no_wrap=True)
    table.add_column("Added", style="muted", no_wrap=True)
    for task in tasks:
        text = f"[done]{task.text}[/done]" if task.completed else task.text
        table.add_row(
            task.id[:SHORT_ID_LENGTH],
            "✔" if task.completed else "○",
            text,
            f"[{category_style(task.category)}]{task.category}[/]",
            format_date(task),
        )
    return table


@click.group(invoke_without_command=True)
@click.option("--config", type=click.Path(), help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx, config, verbose):
    """tasktrack - track tasks and see how productive you are."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    try:
        if config:
            load_config(Path(config))
        else:
            get_config()
    except Exception as e:
        get_console().print(f"[error]Configuration error: {e}[/error]")
        sys.exit(1)

    configure_logging(verbose)

    if ctx.invoked_subcommand is None:
        ctx.invoke(dashboard)


# ============================================================================
# Accounts
# ============================================================================

@main.command()
@click.option("--name", prompt=True, help="Display name")
@click.option("--email", prompt=True, help="E-mail address")
@click.option("--password", prompt=True, hide_input=True, help="Password (6+ characters)")
@click.option("--confirm-password", prompt="Confirm password", hide_input=True, help="Repeat the password")
@click.pass_context
def signup(ctx, name, email, password, confirm_password):
    """Create an account."""
    app = get_app(ctx)
    finish(run(app.commands.sign_up(name, email, password, confirm_password)))


@main.command()
@click.option("--email", prompt=True, help="E-mail address")
@click.option("--password", prompt=True, hide_input=True, help="Password")
@click.pass_context
def login(ctx, email, password):
    """Sign in."""
    app = get_app(ctx)
    result = run(app.commands.sign_in(email, password))
    if result.ok:
        get_console().print(f"[success]✅ Signed in as {app.state.display_name}[/success]")
    finish(result)


@main.command()
@click.pass_context
def logout(ctx):
    """Sign out."""
    app = get_app(ctx)
    require_user(app)
    finish(run(app.commands.sign_out()))


@main.command()
@click.pass_context
def whoami(ctx):
    """Show the signed-in user."""
    app = get_app(ctx)
    require_user(app)
    name = app.state.display_name
    email = app.state.current_user.email
    get_console().print(f"[tile]({avatar_initial(name)})[/tile] [header]{name}[/header] [muted]<{email}>[/muted]")


# ============================================================================
# Tasks
# ============================================================================

@main.command()
@click.argument("text", nargs=-1, required=True)
@click.option("--category", "-c", type=click.Choice(Category.values()), help="Task category")
@click.pass_context
def add(ctx, text, category):
    """Add a task."""
    app = get_app(ctx)
    require_user(app)
    finish(run(app.commands.add_task(" ".join(text), category or app.config.default_category)))


@main.command(name="list")
@click.option("--filter", "-f", "predicate", type=click.Choice(TaskFilter.choices()),
              help="Show only matching tasks")
@click.pass_context
def list_tasks(ctx, predicate):
    """List tasks."""
    app = get_app(ctx)
    require_user(app)
    predicate = predicate or app.state.current_filter
    tasks = filter_tasks(app.state.tasks, predicate)
    if not tasks:
        get_console().print(f"[muted]📭 No tasks found. {empty_message(predicate)}[/muted]")
        return
    get_console().print(task_table(tasks, f"Tasks ({predicate})"))


@main.command()
@click.argument("task_id")
@click.pass_context
def done(ctx, task_id):
    """Mark a task as completed."""
    app = get_app(ctx)
    require_user(app)
    task = resolve_task(app, task_id)
    finish(run(app.commands.set_completed(task.id, True)))


@main.command()
@click.argument("task_id")
@click.pass_context
def undo(ctx, task_id):
    """Mark a completed task as active again."""
    app = get_app(ctx)
    require_user(app)
    task = resolve_task(app, task_id)
    finish(run(app.commands.set_completed(task.id, False)))


@main.command()
@click.argument("task_id")
@click.argument("text", nargs=-1)
@click.pass_context
def edit(ctx, task_id, text):
    """Change a task's text (prompts when TEXT is omitted)."""
    app = get_app(ctx)
    require_user(app)
    task = resolve_task(app, task_id)
    new_text = " ".join(text) if text else click.prompt("Edit task", default=task.text)
    result = run(app.commands.rename_task(task.id, new_text))
    if result.notification is None:
        get_console().print("[muted]No changes made[/muted]")
        return
    finish(result)


@main.command()
@click.argument("task_id")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt")
@click.pass_context
def delete(ctx, task_id, yes):
    """Delete a task."""
    app = get_app(ctx)
    require_user(app)
    task = resolve_task(app, task_id)
    if app.config.confirm_deletion and not yes:
        if not click.confirm(f"Are you sure you want to delete '{task.text}'?"):
            get_console().print("[muted]Cancelled[/muted]")
            return
    finish(run(app.commands.delete_task(task.id)))


# ============================================================================
# Dashboard
# ============================================================================

@main.command()
@click.option("--filter", "-f", "predicate", type=click.Choice(TaskFilter.choices()),
              help="Filter the task list")
@click.pass_context
def dashboard(ctx, predicate=None):
    """Show stat tiles and recent tasks."""
    app = get_app(ctx)
    require_user(app)
    if predicate:
        app.state.set_filter(predicate)

    view = build_dashboard(app.state, recent_limit=app.config.dashboard_recent_limit)
    name = app.state.display_name or app.state.current_user.email
    get_console().print(Panel.fit(f"[header]📋 Dashboard[/header]  [tile]({avatar_initial(name)})[/tile] [muted]{name}[/muted]", border_style="header"))

    tiles = Table.grid(padding=(0, 4))
    for _ in range(4):
        tiles.add_column(justify="center")
    tiles.add_row("[muted]Total[/muted]", "[muted]Completed[/muted]", "[muted]Active[/muted]", "[muted]Today[/muted]")
    tiles.add_row(*(f"[tile]{value}[/tile]" for value in view.tiles.to_dict().values()))
    get_console().print(tiles)
    get_console().print()

    if view.empty_message:
        get_console().print(Panel(f"[muted]{view.empty_message}[/muted]", title="No tasks found"))
        return
    get_console().print(task_table(view.recent, "Recent tasks"))


main.add_command(analytics)
