import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from xref import __version__
from xref.config import (
    CONFIG_FILE_NAME,
    XRefConfig,
    apply_overrides,
    create_source_code_manager,
    create_storage,
    default_config_text,
    load_config,
    validate_config,
)
from xref.errors import ConfigurationError, SourceControlError, StorageError
from xref.file_provider import FileSystemFileProvider
from xref.lint import create_registry
from xref.lint_engine import LintEngine, ProjectCheckLintEngine, SimpleLintEngine
from xref.models import Severity
from xref.report import Report, count_by_severity, report_to_json
from xref.source_code_manager import HEAD, INDEX, WORKING_TREE

app = typer.Typer(
    help="xref-lint - find problems in PHP source code",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger("xref")

SEVERITY_STYLES = {
    Severity.FATAL: "red",
    Severity.ERROR: "red",
    Severity.WARNING: "yellow",
    Severity.NOTICE: "green",
}


def _setup_logging(verbose: bool) -> None:
    handler = RichHandler(console=err_console, show_path=False, show_time=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


def _load(config_path: Optional[Path], defines: list[str], report_level: Optional[str]) -> XRefConfig:
    """Resolve configuration; exits with code 2 on a broken setup."""
    try:
        config = load_config(Path.cwd(), config_path)
        apply_overrides(config, defines)
        # -r is a shortcut for -d lint.report-level=...
        if report_level is not None:
            config.lint.report_level = report_level
        validate_config(config)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)
    return config


def _create_engine(
    config: XRefConfig,
    use_cache: bool,
    rewrite_cache: bool,
    progress: bool,
) -> LintEngine:
    registry = create_registry(config.lint.plugins, config.lint.ignore_missing_class)

    storage = None
    if use_cache:
        try:
            storage = create_storage(config, Path.cwd())
        except StorageError as e:
            logger.warning(f"Running without cache: {e}")

    def show_progress(current: int, total: int, file_name: str) -> None:
        err_console.print(f"[dim][{current}/{total}][/dim] {escape(file_name)}")

    engine_class = ProjectCheckLintEngine if config.xref.project_check else SimpleLintEngine
    return engine_class(
        registry,
        storage=storage,
        report_level=config.report_level,
        ignored_errors=config.lint.ignore_errors,
        rewrite_cache=rewrite_cache,
        progress=show_progress if progress else None,
    )


def _git_revisions(git_cached: bool, git_rev: Optional[str]) -> tuple[str, str | None]:
    """Map --git, --git-cached and --git-rev to (old revision, new revision).

    new revision is None when a single revision is checked as a whole.
    """
    if git_rev:
        parts = git_rev.split(":")
        if len(parts) == 2 and all(parts):
            return parts[0], parts[1]
        if len(parts) == 1:
            return parts[0], None
        raise ConfigurationError(f"Invalid revision specification: {git_rev}")
    return HEAD, INDEX if git_cached else WORKING_TREE


def _print_text_report(report: Report) -> None:
    for file_name, defects in report.items():
        console.print(f"File: {escape(file_name)}", highlight=False)
        for defect in defects:
            style = SEVERITY_STYLES[defect.severity]
            line = "    line %4d: %-8s (%s): %s" % (
                defect.line_number,
                defect.severity.label,
                defect.error_code,
                defect.message,
            )
            console.print(f"[{style}]{escape(line)}[/{style}]", highlight=False)


def _print_stats(engine: LintEngine, report: Report) -> None:
    counts = count_by_severity(report)
    stats = [
        ("Total files", engine.stats["total_files"]),
        ("Files parsed", engine.stats["parsed_files"]),
        ("Cache hits", engine.stats["cache_hit"]),
        ("Files with defects", len(report)),
        ("Errors", counts[Severity.ERROR] + counts[Severity.FATAL]),
        ("Warnings", counts[Severity.WARNING]),
        ("Notices", counts[Severity.NOTICE]),
    ]
    for label, value in stats:
        console.print(f"{label + ':':<22}{value}", highlight=False)


@app.command()
def lint(
    paths: Optional[list[str]] = typer.Argument(None, help="Files or directories to check"),
    output: str = typer.Option("text", "--output", "-o", help="Either 'text' or 'json'"),
    report_level: Optional[str] = typer.Option(
        None, "--report-level", "-r", help="Either 'errors', 'warnings' or 'notices'"
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Don't use the lint cache"),
    rewrite_cache: bool = typer.Option(False, "--rewrite-cache", help="Recompute and overwrite cached results"),
    git: bool = typer.Option(False, "--git", help="Find new defects in files modified since HEAD"),
    git_cached: bool = typer.Option(False, "--git-cached", help="Compare files staged for commit with HEAD"),
    git_rev: Optional[str] = typer.Option(
        None, "--git-rev", help="Check revision REV, or find defects added from FROM to TO (FROM:TO)"
    ),
    define: Optional[list[str]] = typer.Option(
        None, "--define", "-d", help="Override a config value: section.key=value"
    ),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file to use"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging and run statistics"),
    progress: bool = typer.Option(False, "--progress", help="Show files as they are checked"),
):
    """Check PHP files and report defects.

    Exits with code 1 if any errors or warnings are reported.

    Examples:
        xref-lint lint src/
        xref-lint lint --git-cached -o json
        xref-lint lint --git-rev main:feature
    """
    _setup_logging(verbose)
    if output not in ("text", "json"):
        typer.echo(f"Error: unknown output format: {output}", err=True)
        raise typer.Exit(code=2)

    config = _load(config_path, define or [], report_level)
    try:
        engine = _create_engine(config, not no_cache, rewrite_cache, progress)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)
    extensions = engine.registry.supported_extensions()

    with engine:
        try:
            if git or git_cached or git_rev:
                if paths:
                    logger.warning("File names to check are ignored in git mode")
                old_rev, new_rev = _git_revisions(git_cached, git_rev)
                scm = create_source_code_manager(config, Path.cwd())
                old_provider = scm.get_file_provider(old_rev, extensions)
                old_provider.exclude_paths(config.project.exclude_paths)
                if new_rev is None:
                    report = engine.get_report(old_provider)
                else:
                    new_provider = scm.get_file_provider(new_rev, extensions)
                    new_provider.exclude_paths(config.project.exclude_paths)
                    modified = scm.get_list_of_modified_files(old_rev, new_rev)
                    report = engine.get_incremental_report(old_provider, new_provider, modified)
            else:
                file_provider = FileSystemFileProvider(
                    Path.cwd(),
                    paths or config.project.source_code_dirs,
                    extensions,
                )
                file_provider.exclude_paths(config.project.exclude_paths)
                report = engine.get_report(file_provider)
        except (ConfigurationError, SourceControlError) as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(code=2)

    if output == "json":
        typer.echo(json.dumps(report_to_json(report), indent=2))
    else:
        _print_text_report(report)
        if verbose:
            _print_stats(engine, report)

    counts = count_by_severity(report)
    if counts[Severity.FATAL] + counts[Severity.ERROR] + counts[Severity.WARNING] > 0:
        raise typer.Exit(code=1)


@app.command()
def errors(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file to use"),
):
    """List every error code with its severity and message."""
    config = _load(config_path, [], None)
    try:
        engine = _create_engine(config, use_cache=False, rewrite_cache=False, progress=False)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)
    for code, description in engine.get_error_map().items():
        style = SEVERITY_STYLES[description.severity]
        console.print(
            f"{code}  [{style}]{description.severity.label:<8}[/{style}]  {escape(description.message)}",
            highlight=False,
        )


@app.command()
def init(
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
):
    """Create a default .xref config file and fill the lint cache."""
    _setup_logging(verbose)
    config_file = Path.cwd() / CONFIG_FILE_NAME
    if config_file.exists():
        typer.echo(f"{CONFIG_FILE_NAME} already exists, keeping it")
    else:
        config_file.write_text(default_config_text())
        typer.echo(f"Created {CONFIG_FILE_NAME}")

    config = _load(None, [], None)
    try:
        engine = _create_engine(config, use_cache=True, rewrite_cache=False, progress=False)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)
    file_provider = FileSystemFileProvider(
        Path.cwd(),
        config.project.source_code_dirs,
        engine.registry.supported_extensions(),
    )
    file_provider.exclude_paths(config.project.exclude_paths)
    with engine:
        engine.get_report(file_provider)
    typer.echo(f"Cached results for {engine.stats['total_files']} files")


def _version_callback(value: bool):
    """Show version and exit."""
    if value:
        console.print(f"xref version {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    )):
    pass
