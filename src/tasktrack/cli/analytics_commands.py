"""CLI analytics command for tasktrack.

Prints the headline statistics and the data behind the four analytics
charts: tasks by category, completion status, weekly productivity and tasks
created over time.
"""

import json
import sys
from typing import List, Optional, Tuple

import click
import tabulate

from ..services.analytics import AnalyticsReport, ChartSeries, build_report


def format_table(series: ChartSeries, value_header: str, tablefmt: str = "simple") -> str:
    """Format a chart series as a two-column table"""
    rows = list(zip(series.labels, series.data))
    return tabulate.tabulate(rows, headers=["", value_header], tablefmt=tablefmt)


def bar(value: int, peak: int, width: int = 20) -> str:
    if peak <= 0:
        return ""
    return "█" * max(1 if value else 0, round(width * value / peak))


def print_section(title: str, content: str = ""):
    """Print a formatted section"""
    click.echo(f"\n{title}")
    click.echo("-" * len(title))
    if content:
        click.echo(content)


def format_report(report: AnalyticsReport) -> Tuple[str, List[Tuple[str, str]]]:
    """Render the report as a stats block plus titled chart sections"""
    totals = report.summary
    stats = tabulate.tabulate(
        [
            ["Total tasks", totals.total],
            ["Completed", totals.completed],
            ["Completion rate", f"{totals.completion_rate}%"],
            ["Avg. days to complete", report.average_completion_days],
        ],
        tablefmt="plain",
    )

    weekly_peak = max(report.weekly.data, default=0)
    weekly_rows = [[label, count, bar(count, weekly_peak)]
                   for label, count in zip(report.weekly.labels, report.weekly.data)]

    return stats, [
        ("Tasks by Category", format_table(report.category_series, "Tasks")),
        ("Completion Status", format_table(report.completion, "Tasks")),
        ("Weekly Productivity", tabulate.tabulate(weekly_rows, headers=["Day", "Completed", ""])),
        ("Tasks Over Time", format_table(report.monthly, "Created")),
    ]


@click.command(name="analytics")
@click.option("--format", "-f", "output_format", type=click.Choice(["text", "json"]),
              default="text", help="Output format")
@click.option("--export", "-e", type=click.Path(), help="Also write the JSON report to a file")
@click.pass_context
def analytics(ctx, output_format: str, export: Optional[str]):
    """Show productivity statistics and chart data."""
    from .main import get_app, require_user

    app = get_app(ctx)
    require_user(app)
    report = build_report(app.state.tasks)

    if export:
        try:
            with open(export, "w") as f:
                json.dump(report.to_dict(), f, indent=2)
        except OSError as e:
            click.echo(f"Export failed: {e}", err=True)
            sys.exit(1)

    if output_format == "json":
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    stats, sections = format_report(report)
    click.echo(stats)
    for title, content in sections:
        print_section(title, content)
    if export:
        click.echo(f"\nReport exported to {export}")
