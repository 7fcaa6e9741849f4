# === NAVMAP v1 ===
# {
#   "module": "SnapshotChangelog.cli",
#   "purpose": "Typer command-line interface for the snapshot changelog pipeline.",
#   "sections": [
#     {"id": "version-callback", "name": "_version_callback", "anchor": "function-version-callback", "kind": "function"},
#     {"id": "main-callback", "name": "main_callback", "anchor": "function-main-callback", "kind": "function"},
#     {"id": "process-cmd", "name": "process_cmd", "anchor": "function-process-cmd", "kind": "function"},
#     {"id": "versions-cmd", "name": "versions_cmd", "anchor": "function-versions-cmd", "kind": "function"},
#     {"id": "cli-main", "name": "cli_main", "anchor": "function-cli-main", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Typer command-line interface for the snapshot changelog pipeline.

Commands:
- ``process FROM TO``: diff two snapshot versions, forward-apply any fix
  overlay, summarize, record a changelog entry, and notify.
- ``versions``: list the snapshot files discovered under a base directory.

LLM and webhook options fall back to the ``LLM_*`` and ``WEBHOOK_*``
environment variables.  Fatal errors print a single ``[ERROR]`` line and exit
with status 1.

Example:
    $ snapshot-changelog process v1 v2 --base-dir snapshots --dry-run
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional, Sequence

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .errors import ConfigurationError, SnapshotChangelogError
from .locator import discover_snapshots
from .logging_utils import setup_logging
from .pipeline import PipelineResult, process
from .settings import DEFAULT_CHANGELOG, DEFAULT_LLM_MODEL, build_pipeline_config, get_settings

__all__ = ["app", "cli_main", "main"]

logger = logging.getLogger(__name__)

_console = Console()

app = typer.Typer(
    name="snapshot-changelog",
    help="Track changes between timestamped JSON snapshots and publish a changelog.",
    no_args_is_help=True,
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"snapshot-changelog {__version__}")
        raise typer.Exit(0)


@app.callback()
def main_callback(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Track changes between timestamped JSON snapshots."""


def _fail(exc: BaseException) -> NoReturn:
    typer.echo(f"[ERROR] {exc}", err=True)
    raise typer.Exit(1)


def _print_result(result: PipelineResult) -> None:
    context = result.context
    table = Table(title=f"{context.from_version} -> {context.to_version}")
    table.add_column("Artifact")
    table.add_column("Path")
    rows = (
        ("changes patch", context.changes_patch_path),
        ("fix patch", context.fix_patch_path),
        ("fixed snapshot", context.fix_applied_path),
        ("summary", context.summary_path),
        ("changelog", context.changelog_path),
    )
    for label, path in rows:
        if path is not None:
            table.add_row(label, str(path))
    _console.print(table)
    if result.skipped:
        _console.print(f"[dim]Skipped: {', '.join(result.skipped)}[/dim]")


@app.command("process")
def process_cmd(
    from_version: str = typer.Argument(..., metavar="FROM", help="Source version label"),
    to_version: str = typer.Argument(..., metavar="TO", help="Target version label"),
    base_dir: Path = typer.Option(Path("."), "--base-dir", help="Directory searched for snapshots"),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", help="Directory for patch files (defaults to --base-dir)"
    ),
    llm_endpoint: Optional[str] = typer.Option(
        None, "--llm-endpoint", envvar="LLM_ENDPOINT", help="Chat-completions endpoint URL"
    ),
    llm_api_key: Optional[str] = typer.Option(
        None, "--llm-api-key", envvar="LLM_API_KEY", help="Bearer token for the LLM endpoint"
    ),
    llm_model: str = typer.Option(
        DEFAULT_LLM_MODEL, "--llm-model", envvar="LLM_MODEL", help="Model identifier"
    ),
    webhook_url: Optional[str] = typer.Option(
        None, "--webhook-url", envvar="WEBHOOK_URL", help="Webhook receiving notifications"
    ),
    webhook_token: Optional[str] = typer.Option(
        None, "--webhook-token", envvar="WEBHOOK_TOKEN", help="Bearer token for the webhook"
    ),
    changelog: Path = typer.Option(DEFAULT_CHANGELOG, "--changelog", help="Changelog file"),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Show what would happen without making changes"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file", help="Also write JSON-lines logs to this file"
    ),
) -> None:
    """Diff FROM against TO and publish the result."""

    try:
        settings = get_settings()
        config = build_pipeline_config(
            {
                "from_version": from_version,
                "to_version": to_version,
                "base_dir": base_dir,
                "output_dir": output_dir,
                "llm_endpoint": llm_endpoint,
                "llm_api_key": llm_api_key,
                "llm_model": llm_model,
                "webhook_url": webhook_url,
                "webhook_token": webhook_token,
                "changelog_path": changelog,
                "dry_run": dry_run,
                "verbose": verbose,
            }
        )
    except ConfigurationError as exc:
        _fail(exc)

    logging_settings = settings.logging
    setup_logging(
        level="DEBUG" if verbose else logging_settings.level,
        log_file=log_file or logging_settings.log_file,
        max_log_size_mb=logging_settings.max_log_size_mb,
        backup_count=logging_settings.backup_count,
    )
    if dry_run:
        _console.print("[yellow]DRY-RUN MODE: No changes will be made[/yellow]")

    try:
        result = process(config, settings=settings)
    except SnapshotChangelogError as exc:
        _fail(exc)
    except Exception as exc:
        logger.debug("Unexpected pipeline failure", exc_info=True)
        _fail(exc)
    _print_result(result)


@app.command("versions")
def versions_cmd(
    base_dir: Path = typer.Option(Path("."), "--base-dir", help="Directory searched for snapshots"),
) -> None:
    """List snapshot files found under --base-dir."""

    if not base_dir.is_dir():
        _fail(ConfigurationError(f"Base directory {base_dir} does not exist"))
    snapshots = discover_snapshots(base_dir)
    if not snapshots:
        _console.print(f"No snapshots found under {base_dir}")
        return
    table = Table()
    table.add_column("Version")
    table.add_column("Timestamp")
    table.add_column("Kind")
    table.add_column("Path")
    for snapshot in snapshots:
        table.add_row(snapshot.version, snapshot.timestamp, snapshot.kind, str(snapshot.path))
    _console.print(table)


def cli_main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CLI and return a process exit code.

    Usage errors exit with ``1`` rather than Click's default ``2``.
    """

    command = typer.main.get_command(app)
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        command.main(args=args, prog_name="snapshot-changelog", standalone_mode=True)
    except SystemExit as exc:
        code = exc.code
        if code is None:
            return 0
        if not isinstance(code, int):
            return 1
        return 1 if code == 2 else code
    return 0


def main() -> None:
    raise SystemExit(cli_main())
