"""Command-line interface for the Rhino Mocks to NSubstitute migration tool.

The ``typer`` application validates options, builds a
:class:`~.context.MigrationConfig` and delegates to
:func:`splurge_rhino_to_nsubstitute.main.migrate`.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import logging
from typing import cast

import typer
import yaml

from . import main as main_module
from .cli_adapters import build_config_from_cli
from .cli_helpers import (
    attach_progress_handlers,
    create_event_bus,
    render_dry_run,
    set_quiet_mode,
    setup_logging,
    setup_logging_with_level,
    validate_source_files_with_patterns,
)
from .context import ContextManager, MigrationConfig
from .exceptions import ConfigurationError

app = typer.Typer(
    name="splurge-rhino-to-nsubstitute",
    help="Migrate Rhino Mocks style tests to NSubstitute style",
    add_completion=False,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "splurge-rhino-to-nsubstitute.yaml"


def _load_base_config(config_file: str | None) -> MigrationConfig:
    if config_file is None:
        return MigrationConfig()
    config_result = ContextManager.load_config_from_file(config_file)
    if not config_result.is_success():
        typer.echo(f"Error loading configuration file: {config_result.error}")
        raise typer.Exit(code=1)
    logger.info(f"Loaded configuration from: {config_file}")
    return cast(MigrationConfig, config_result.data)


@app.command("migrate")
def migrate(
    source_files: list[str] | None = typer.Argument(None, help="Source files or directories"),
    root_directory: str | None = typer.Option(None, "--dir", "-d", help="Root directory to search for input files"),
    file_patterns: list[str] | None = typer.Option(
        None, "--file", "-f", help="Glob patterns for input files (repeatable, default test_*.py)"
    ),
    recurse: bool | None = typer.Option(None, "--recurse/--no-recurse", help="Recurse directories when searching"),
    target_root: str | None = typer.Option(None, "--target-root", "-t", help="Directory for output files"),
    skip_backup: bool = typer.Option(False, "--skip-backup", help="Do not back up original files"),
    backup_root: str | None = typer.Option(None, "--backup-root", help="Directory for backup files"),
    line_length: int | None = typer.Option(None, "--line-length", help="Maximum line length for formatting"),
    suffix: str | None = typer.Option(None, "--suffix", help="Suffix appended to the target filename stem"),
    ext: str | None = typer.Option(None, "--ext", help="Override the target file extension"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the converted code instead of writing files"),
    diff: bool = typer.Option(False, "--diff", help="With --dry-run, show unified diffs"),
    list_files: bool = typer.Option(False, "--list", help="With --dry-run, list files only"),
    posix: bool = typer.Option(False, "--posix", help="Display paths with forward slashes"),
    fail_fast: bool = typer.Option(False, "--fail-fast", help="Stop on the first error"),
    continue_on_error: bool = typer.Option(False, "--continue-on-error", help="Keep going when a file fails"),
    config_file: str | None = typer.Option(None, "--config", "-c", help="YAML configuration file"),
    no_format: bool = typer.Option(False, "--no-format", help="Skip isort and black formatting"),
    no_imports: bool = typer.Option(False, "--no-imports", help="Do not add NSubstitute style imports"),
    keep_source_imports: bool = typer.Option(
        False, "--keep-source-imports", help="Keep Rhino Mocks style imports even when unused"
    ),
    source_module: str | None = typer.Option(None, "--source-module", help="Module providing the Rhino Mocks API"),
    target_module: str | None = typer.Option(None, "--target-module", help="Module providing the NSubstitute API"),
    info: bool = typer.Option(False, "--info", help="Enable info logging output"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging output"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)"),
) -> None:
    """Rewrite Rhino Mocks style test files into NSubstitute style.

    Examples:
        splurge-rhino-to-nsubstitute migrate tests/test_service.py

        splurge-rhino-to-nsubstitute migrate --dry-run --diff -d tests

        splurge-rhino-to-nsubstitute migrate -c migration.yaml tests/
    """
    if info and debug:
        typer.echo("Error: --info and --debug cannot be used together.")
        raise typer.Exit(code=2)
    if fail_fast and continue_on_error:
        typer.echo("Error: --fail-fast and --continue-on-error cannot be used together.")
        raise typer.Exit(code=2)
    if diff and list_files:
        typer.echo("Error: --diff and --list cannot be used together.")
        raise typer.Exit(code=2)

    base_config = _load_base_config(config_file)
    cli_kwargs: dict[str, object] = {
        "root_directory": root_directory,
        "file_patterns": file_patterns or None,
        "recurse_directories": recurse,
        "target_root": target_root,
        "backup_root": backup_root,
        "line_length": line_length,
        "target_suffix": suffix,
        "target_extension": ext,
        "log_level": log_level,
        "source_module": source_module,
        "target_module": target_module,
        "verbose": True if (info or debug) else None,
    }
    # Flags only override the file configuration when given.
    if skip_backup:
        cli_kwargs["backup_originals"] = False
    if dry_run:
        cli_kwargs["dry_run"] = True
    if fail_fast:
        cli_kwargs["fail_fast"] = True
    if continue_on_error:
        cli_kwargs["continue_on_error"] = True
    if no_format:
        cli_kwargs["format_output"] = False
    if no_imports:
        cli_kwargs["transform_imports"] = False
    if keep_source_imports:
        cli_kwargs["remove_unused_imports"] = False

    try:
        config = build_config_from_cli(base_config, cli_kwargs)
    except (ConfigurationError, ValueError) as e:
        typer.echo(f"Error: {e}")
        raise typer.Exit(code=2) from e

    if debug or info:
        setup_logging(debug)
    else:
        setup_logging_with_level(config.log_level)
        set_quiet_mode(True)

    valid_files = validate_source_files_with_patterns(
        source_files or [], config.root_directory, config.file_patterns, config.recurse_directories, config.source_module
    )
    if not valid_files:
        typer.echo("No Rhino Mocks files found to migrate.")
        raise typer.Exit(code=1)
    logger.info(f"Found {len(valid_files)} files to process")

    event_bus = create_event_bus()
    attach_progress_handlers(event_bus)
    result = main_module.migrate(valid_files, config=config, event_bus=event_bus)

    if result.is_error():
        typer.echo(f"Migration failed: {result.error}")
        raise typer.Exit(code=1)

    for warning in result.warnings or []:
        logger.warning(warning)
    logger.info(f"Migrated: {len(result.data or [])} files")

    if config.dry_run:
        metadata = result.metadata or {}
        for block in render_dry_run(
            metadata.get("generated_code", {}),
            metadata.get("source_files", {}),
            show_diff=diff,
            list_only=list_files,
            force_posix=posix,
        ):
            typer.echo(block)

    if (result.metadata or {}).get("failed_files"):
        raise typer.Exit(code=1)


@app.command("version")
def version() -> None:
    """Show the version of splurge-rhino-to-nsubstitute."""
    from . import __version__

    typer.echo(f"splurge-rhino-to-nsubstitute {__version__}")


@app.command("init-config")
def init_config(
    output_file: str = typer.Argument(DEFAULT_CONFIG_FILE, help="Configuration file to create"),
) -> None:
    """Write a YAML configuration file populated with the default settings."""
    defaults = MigrationConfig().to_dict()
    try:
        with open(output_file, "w", encoding="utf-8") as f:
            yaml.dump(defaults, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        typer.echo(f"Failed to create configuration file: {e}")
        raise typer.Exit(code=1) from e
    typer.echo(f"Configuration file created: {output_file}")


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
