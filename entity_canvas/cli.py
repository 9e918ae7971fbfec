"""CLI for entity canvas."""

import sys
from pathlib import Path
from typing import Annotated, Literal

import structlog
from cyclopts import App, Parameter

from entity_canvas.backends import JsonCanvasStore, VaultArchiveSink, VaultRecordSource
from entity_canvas.config import get_config, layout_config_from
from entity_canvas.config_commands import config_app
from entity_canvas.errors import CollaboratorError, PassFailedError
from entity_canvas.layout import LayoutConfig
from entity_canvas.pipeline import PassResult, plan_pass, run_pass
from entity_canvas.reports import Report

logger = structlog.get_logger()

app = App(
    help="Entity Canvas - lay out milestones, stories and tasks on a canvas",
)

app.command(config_app)


def configure_logging(log_level: str) -> None:
    """Configure structlog with the specified log level."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(min_level=log_level.lower()))


def get_paths(vault: str | None = None, canvas: str | None = None) -> tuple[Path, Path, str]:
    """Resolve the vault folder, canvas file and archive folder from options and config."""
    config = get_config()
    vault_path = Path(vault or config.get("vault.path"))
    canvas_path = Path(canvas or config.get("canvas.path"))
    if not canvas_path.is_absolute():
        canvas_path = vault_path / canvas_path
    return vault_path, canvas_path, config.get("vault.archive_folder")


def get_layout() -> LayoutConfig:
    """Layout settings from config; exits with a message if a value is not a number."""
    try:
        return layout_config_from(get_config())
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def print_reports(reports: list[Report]) -> None:
    for report in reports:
        marker = "!" if report.severity != "info" else "-"
        print(f"  {marker} {report.message}")


def print_result(command: str, result: PassResult, verbose: bool) -> None:
    summary = result.summary
    print(
        f"{command.capitalize()}: added {summary.added}, archived {summary.archived}, "
        f"removed {summary.removed}, repositioned {summary.repositioned}"
    )
    shown = result.reports if verbose else [r for r in result.reports if r.severity != "info"]
    if shown:
        print(f"\n{len(shown)} notice(s):")
        print_reports(shown)


def _run(command: str, vault: str | None, canvas: str | None, verbose: bool) -> None:
    vault_path, canvas_path, archive_folder = get_paths(vault, canvas)
    logger.debug("Running command", command=command, vault=str(vault_path), canvas=str(canvas_path))
    try:
        result = run_pass(
            VaultRecordSource(vault_path, archive_folder),
            JsonCanvasStore(canvas_path),
            VaultArchiveSink(vault_path, archive_folder),
            reposition=command == "reposition",
            config=get_layout(),
        )
    except PassFailedError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print_result(command, result, verbose)


@app.command
def populate(vault: str | None = None, canvas: str | None = None, verbose: bool = False) -> None:
    """Add missing entities to the canvas, archive flagged ones and drop stale nodes.

    Nodes that are already on the canvas keep their position.

    Args:
        vault: Vault folder (defaults to the vault.path setting)
        canvas: Canvas file, relative to the vault (defaults to the canvas.path setting)
        verbose: Also show informational notices
    """
    _run("populate", vault, canvas, verbose)


@app.command
def reposition(vault: str | None = None, canvas: str | None = None, verbose: bool = False) -> None:
    """Populate, then move every entity node to its computed position.

    Args:
        vault: Vault folder (defaults to the vault.path setting)
        canvas: Canvas file, relative to the vault (defaults to the canvas.path setting)
        verbose: Also show informational notices
    """
    _run("reposition", vault, canvas, verbose)


@app.command
def check(vault: str | None = None, canvas: str | None = None) -> None:
    """Report parse problems, broken references, cycles and field mismatches without writing anything.

    Args:
        vault: Vault folder (defaults to the vault.path setting)
        canvas: Canvas file, relative to the vault (defaults to the canvas.path setting)
    """
    vault_path, canvas_path, archive_folder = get_paths(vault, canvas)
    try:
        items = VaultRecordSource(vault_path, archive_folder).items()
        document = JsonCanvasStore(canvas_path).load()
    except CollaboratorError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    plan = plan_pass(document, items, reposition=True, config=get_layout())
    layout = plan.layout
    print(f"Found {len(plan.records)} record(s), {len(layout.lanes)} lane(s), {len(layout.orphans)} orphan(s)")
    if not plan.reports.reports:
        print("No problems found")
        return
    print(f"\n{len(plan.reports)} notice(s):")
    print_reports(plan.reports.reports)


@app.meta.default
def main(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "critical",
) -> None:
    """Main entry point with global options."""
    configure_logging(log_level)
    app(tokens)


if __name__ == "__main__":
    app.meta()
