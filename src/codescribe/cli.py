"""Codescribe CLI entry points."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from codescribe.config import load_settings
from codescribe.pipeline import (
    STATUS_FAILED,
    Pipeline,
    RunContext,
    RunReport,
)
from codescribe.scanner import UnitMode
from codescribe.store import NotionStore

DEFAULT_REPO_PATH = "./repo"
DEFAULT_FEATURE_PATH = "./src"

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _render_report(report: RunReport) -> None:
    """Print a per-unit summary table."""
    from rich.console import Console
    from rich.table import Table

    console = Console()
    table = Table(title=f"Documentation run ({report.mode.value} mode): {report.root}")
    table.add_column("Unit")
    table.add_column("Record")
    table.add_column("Status")

    for result in report.results:
        if result.status == STATUS_FAILED:
            status = f"[red]failed ({result.stage})[/]"
        else:
            status = f"[green]{result.status}[/]"
        table.add_row(result.unit_key, result.title or "-", status)

    console.print(table)
    console.print(
        f"Scanned {report.scanned} files: {report.created} created, "
        f"{report.updated} updated, {report.failed} failed, {report.skipped} skipped."
    )


def _run(mode: UnitMode, path: Path) -> None:
    logging.basicConfig(level=logging.INFO, format=_LOG_FORMAT)

    try:
        settings = load_settings(Path.cwd())
        store = NotionStore(settings.notion_api_key, settings.notion_database_id)
        try:
            pipeline = Pipeline(RunContext(settings=settings, store=store))
            if mode is UnitMode.FEATURE:
                report = pipeline.run_feature(path)
            else:
                report = pipeline.run_files(path)
        finally:
            store.close()
    except Exception as exc:  # any failure of the run itself exits 1
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    _render_report(report)
    click.echo("\n✓ Documentation generation complete!")


@click.command()
@click.argument(
    "path",
    required=False,
    default=DEFAULT_REPO_PATH,
    type=click.Path(file_okay=True, dir_okay=True, path_type=Path),
)
def main(path: Path) -> None:
    """Document every source file under PATH as its own Notion page.

    Failed files are logged and skipped; the run continues.
    """
    _run(UnitMode.FILE, path)


@click.command()
@click.argument(
    "path",
    required=False,
    default=DEFAULT_FEATURE_PATH,
    type=click.Path(file_okay=True, dir_okay=True, path_type=Path),
)
def feature_main(path: Path) -> None:
    """Document the feature under PATH as a single Notion page.

    The page is keyed by the directory name.  Any failure aborts the run.
    """
    _run(UnitMode.FEATURE, path)
