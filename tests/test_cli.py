"""End-to-end tests for the click CLI."""

import json
from datetime import datetime

import pytest
from click.testing import CliRunner

from tasktrack.app import create_app
from tasktrack.cli.main import format_date, main
from tasktrack.config import get_config
from tasktrack.task import Task


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner, *args, **kwargs):
    return runner.invoke(main, list(args), **kwargs)


def only_task_id():
    app = create_app(get_config()).start()
    try:
        (task,) = app.state.tasks
        return task.id
    finally:
        app.stop()


@pytest.fixture
def logged_in(runner):
    result = invoke(runner, "signup", "--name", "Ada", "--email", "ada@example.com",
                    "--password", "secret123", "--confirm-password", "secret123")
    assert result.exit_code == 0, result.output
    result = invoke(runner, "login", "--email", "ada@example.com", "--password", "secret123")
    assert result.exit_code == 0, result.output
    return runner


class TestAccounts:

    def test_signup_then_login(self, runner):
        result = invoke(runner, "signup", "--name", "Ada", "--email", "ada@example.com",
                        "--password", "secret123", "--confirm-password", "secret123")
        assert result.exit_code == 0
        assert "Account created successfully! Please sign in." in result.output

        result = invoke(runner, "login", "--email", "ada@example.com", "--password", "secret123")
        assert result.exit_code == 0
        assert "Signed in as Ada" in result.output

    def test_signup_password_mismatch(self, runner):
        result = invoke(runner, "signup", "--name", "Ada", "--email", "ada@example.com",
                        "--password", "secret123", "--confirm-password", "secret999")
        assert result.exit_code == 1
        assert "Passwords do not match" in result.output

    def test_login_failure(self, runner):
        result = invoke(runner, "login", "--email", "ada@example.com", "--password", "secret123")
        assert result.exit_code == 1
        assert "Invalid email or password" in result.output

    def test_whoami_and_logout(self, logged_in):
        result = invoke(logged_in, "whoami")
        assert "(A)" in result.output
        assert "Ada" in result.output
        assert "ada@example.com" in result.output

        result = invoke(logged_in, "logout")
        assert result.exit_code == 0
        assert "Signed out successfully" in result.output

        result = invoke(logged_in, "list")
        assert result.exit_code == 1
        assert "Not signed in" in result.output


class TestTasks:

    def test_add_and_list(self, logged_in):
        result = invoke(logged_in, "add", "Buy", "milk", "-c", "shopping")
        assert result.exit_code == 0
        assert "Task added successfully" in result.output

        result = invoke(logged_in, "list")
        assert "Buy milk" in result.output

        result = invoke(logged_in, "list", "--filter", "completed")
        assert "Buy milk" not in result.output
        assert "No tasks match your current filter" in result.output

    def test_add_rejects_unknown_category(self, logged_in):
        result = invoke(logged_in, "add", "Buy milk", "-c", "urgent")
        assert result.exit_code != 0

    def test_done_undo_edit_delete(self, logged_in):
        invoke(logged_in, "add", "Write report")
        task_id = only_task_id()

        result = invoke(logged_in, "done", task_id[:8])
        assert "Task updated successfully" in result.output

        result = invoke(logged_in, "analytics", "--format", "json")
        report = json.loads(result.stdout)
        assert report["summary"]["completed"] == 1
        assert report["summary"]["completion_rate"] == 100

        result = invoke(logged_in, "undo", task_id)
        assert result.exit_code == 0

        result = invoke(logged_in, "edit", task_id, "Write", "final", "report")
        assert "Task updated successfully" in result.output
        assert "Write final report" in invoke(logged_in, "list").output

        result = invoke(logged_in, "delete", task_id, "--yes")
        assert "Task deleted successfully" in result.output
        assert "Get started by adding a new task!" in invoke(logged_in, "list").output

    def test_delete_can_be_cancelled(self, logged_in):
        invoke(logged_in, "add", "Keep me")
        task_id = only_task_id()

        result = invoke(logged_in, "delete", task_id, input="n\n")

        assert "Cancelled" in result.output
        assert "Keep me" in invoke(logged_in, "list").output

    def test_unknown_task_id(self, logged_in):
        result = invoke(logged_in, "done", "nope")
        assert result.exit_code == 1
        assert "not found" in result.output


class TestDashboardAndAnalytics:

    def test_dashboard_is_default(self, logged_in):
        invoke(logged_in, "add", "Write report")
        result = invoke(logged_in)

        assert result.exit_code == 0
        assert "Dashboard" in result.output
        assert "Write report" in result.output

    def test_empty_dashboard(self, logged_in):
        result = invoke(logged_in, "dashboard")
        assert "Get started by adding a new task!" in result.output

    def test_analytics_text(self, logged_in):
        invoke(logged_in, "add", "Write report", "-c", "education")
        result = invoke(logged_in, "analytics")

        assert result.exit_code == 0
        for title in ("Tasks by Category", "Completion Status", "Weekly Productivity", "Tasks Over Time"):
            assert title in result.output

    def test_analytics_export(self, logged_in, tmp_path):
        invoke(logged_in, "add", "Write report")
        target = tmp_path / "report.json"

        result = invoke(logged_in, "analytics", "--export", str(target))

        assert result.exit_code == 0
        assert json.loads(target.read_text())["summary"]["total"] == 1

    def test_restored_session_uses_profile_name(self, logged_in):
        result = invoke(logged_in, "dashboard")

        assert "Ada" in result.output
        assert "(A)" in result.output


class TestDateFormatting:

    def make_task(self):
        return Task(id="t1", owner_id="u1", text="x", created_at=datetime(2024, 3, 5, 12, 0).astimezone())

    def test_default_day_not_zero_padded(self):
        assert format_date(self.make_task()) == "Mar 5, 2024"

    def test_custom_format(self):
        get_config().date_format = "%Y-%m-%d"
        assert format_date(self.make_task()) == "2024-03-05"

    def test_unknown_date_blank(self):
        assert format_date(Task(id="t1", owner_id="u1", text="x")) == ""
