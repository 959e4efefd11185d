"""Command line interface for autoprune."""

from __future__ import annotations

import asyncio
import difflib
from pathlib import Path
from typing import Any

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from autoprune.cleanup import CleanupPipeline, CleanupResult, DirectoryScanner
from autoprune.config import ConfigError, ConfigManager, PruneConfig, resolve_with_precedence
from autoprune.log import configure_logging
from autoprune.rules import PruneError, Tag

console = Console()

_POLICY_OPTIONS = ("hours", "days", "weeks", "months", "years", "keep_latest")


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    original: Exception | None = None,
) -> None:
    """Report an error and stop the command.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Whether JSON mode is active.
        original: Exception that caused the failure.

    Raises:
        SystemExit: In JSON mode, after printing the error payload.
        click.ClickException: Otherwise.
    """
    if json_output:
        console.print_json(data={"error": {"code": code, "message": message}})
        raise SystemExit(1)

    raise click.ClickException(message) from original


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Print ``message`` unless quiet or summary-only mode hides it.

    Args:
        message: Renderable or string to emit.
        mode: One of ``detail``, ``summary``, ``warning`` or ``error``.
        quiet: Whether quiet mode is active.
        summary_only: Whether only summary lines should be emitted.
    """
    if quiet and mode != "error":
        return
    if summary_only and mode not in {"summary", "warning", "error"}:
        return
    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _assign_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign ``value`` at the dotted ``path`` inside ``target``.

    Raises:
        ConfigError: If a non-mapping value is encountered along the path.
    """
    node = target
    for segment in path[:-1]:
        existing = node.get(segment)
        if existing is None:
            existing = {}
            node[segment] = existing
        elif not isinstance(existing, dict):
            raise ConfigError(
                f"Cannot assign into '{segment}' because it is not a mapping in the config file."
            )
        node = existing
    node[path[-1]] = value


def _load_config(
    ctx: click.Context,
    cli_overrides: dict[str, Any] | None = None,
) -> PruneConfig:
    """Load configuration and configure logging for the invocation."""
    config = ConfigManager().load(cli_overrides=cli_overrides)
    verbosity = ctx.find_root().params.get("verbose", 0)
    if verbosity >= 2:
        level: int | str = "DEBUG"
    elif verbosity == 1:
        level = "INFO"
    else:
        level = config.logging.level
    configure_logging(
        level,
        log_file=config.logging.file,
        max_bytes=config.logging.max_size_mb * 1024 * 1024,
        backup_count=config.logging.backup_count,
    )
    return config


def _output_modes(
    ctx: click.Context,
    config: PruneConfig,
    *,
    json_output: bool,
    quiet: bool,
    summary_mode: bool,
) -> tuple[bool, bool]:
    """Resolve quiet/summary flags against configured defaults.

    Raises:
        click.ClickException: If incompatible modes are requested.
    """
    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE

    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    summary_only = summary_mode if explicit_summary else config.cli.summary_default

    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        if explicit_summary and summary_only:
            raise click.ClickException("--json cannot be combined with --summary.")
        return False, False

    if quiet_enabled and summary_only:
        raise click.ClickException(
            "Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags."
        )
    return quiet_enabled, summary_only


def _scanner(config: PruneConfig) -> DirectoryScanner:
    return DirectoryScanner(
        include_hidden=config.scan.include_hidden,
        follow_symlinks=config.scan.follow_symlinks,
    )


def _render_cleanup(result: CleanupResult, *, quiet: bool, summary_only: bool) -> None:
    """Print tables and the summary line for a cleanup run."""
    changes = Table(title="Planned changes" if result.dry_run else "Changes")
    changes.add_column("Action")
    changes.add_column("File")
    changes.add_column("Result")
    for source, destination in result.tagged:
        changes.add_row("tag", source.name, destination.name)
    for demotion in result.sweep.demoted:
        changes.add_row(f"untag {demotion.tag.label}", demotion.source.name, demotion.destination.name)
    for path in result.removed:
        changes.add_row("delete", path.name, "")

    if changes.row_count:
        _emit_message(changes, mode="detail", quiet=quiet, summary_only=summary_only)
    else:
        _emit_message(
            "[cyan]Nothing to prune.[/cyan]", mode="detail", quiet=quiet, summary_only=summary_only
        )

    if result.protected:
        _emit_message(
            f"[yellow]{len(result.protected)} untagged file(s) kept by the keep_latest floor.[/yellow]",
            mode="warning",
            quiet=quiet,
            summary_only=summary_only,
        )

    if result.errors:
        _emit_message("[red]Errors encountered:[/red]", mode="error", quiet=quiet, summary_only=summary_only)
        for entry in result.errors:
            _emit_message(f"  - {entry}", mode="error", quiet=quiet, summary_only=summary_only)

    metrics: dict[str, Any] = {
        key: result.counts[key] for key in ("tagged", "demoted", "removed", "protected", "errors")
    }
    if result.dry_run:
        metrics["dry_run"] = True
    _emit_message(
        _format_summary_line("Prune", result.root, metrics),
        mode="summary",
        quiet=quiet,
        summary_only=summary_only,
    )


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v info, -vv debug).")
@click.version_option(package_name="autoprune")
def cli(verbose: int) -> None:
    """Autoprune keeps backup directories trimmed with tiered retention tags."""


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--dry-run", is_flag=True, help="Preview changes without modifying files.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the run.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.option("--keep-untagged", is_flag=True, help="Do not delete files left without tags.")
@click.option("--no-tag", is_flag=True, help="Do not tag new untagged files before sweeping.")
@click.option("--hours", type=click.IntRange(min=0), help="Hourly-tagged copies to keep.")
@click.option("--days", type=click.IntRange(min=0), help="Daily-tagged copies to keep.")
@click.option("--weeks", type=click.IntRange(min=0), help="Weekly-tagged copies to keep.")
@click.option("--months", type=click.IntRange(min=0), help="Monthly-tagged copies to keep.")
@click.option("--years", type=click.IntRange(min=0), help="Yearly-tagged copies to keep.")
@click.option("--keep-latest", type=click.IntRange(min=0), help="Minimum number of backups kept.")
@click.pass_context
def prune(
    ctx: click.Context,
    path: Path,
    dry_run: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
    keep_untagged: bool,
    no_tag: bool,
    **policy: int | None,
) -> None:
    """Tag, sweep and delete backups stored in PATH.

    New untagged files receive every tier they qualify for, tiers holding too
    many old copies lose their oldest tags, and files left without any tag
    are deleted (except the newest keep_latest files).
    """
    overrides = {
        f"rules.auto_prune.{name}": value
        for name, value in policy.items()
        if name in _POLICY_OPTIONS and value is not None
    }
    try:
        config = _load_config(ctx, overrides or None)
        quiet_enabled, summary_only = _output_modes(
            ctx, config, json_output=json_output, quiet=quiet, summary_mode=summary_mode
        )
        pipeline = CleanupPipeline(
            config.rules,
            _scanner(config),
            dry_run=dry_run,
            delete_untagged=not keep_untagged,
            tag_new=not no_tag,
        )
        result = asyncio.run(pipeline.run(path.expanduser().resolve()))
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return
    except PruneError as exc:
        _handle_cli_error(str(exc), code="prune_error", json_output=json_output, original=exc)
        return
    except click.ClickException as exc:
        _handle_cli_error(
            exc.format_message(), code="cli_error", json_output=json_output, original=exc
        )
        return

    if json_output:
        console.print_json(data=result.json_payload)
        return

    _render_cleanup(result, quiet=quiet_enabled, summary_only=summary_only)


@cli.command()
@click.argument(
    "files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.pass_context
def tag(ctx: click.Context, files: tuple[Path, ...]) -> None:
    """Add every applicable retention tag to FILES."""
    try:
        _load_config(ctx)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    failures = 0
    for file in files:
        try:
            destination = Tag.tag(file)
        except PruneError as exc:
            console.print(f"[red]{exc}[/red]")
            failures += 1
            continue
        if destination == file:
            console.print(f"[yellow]{file.name}: no tags applied.[/yellow]")
        else:
            console.print(f"{file.name} -> {destination.name}")

    if failures:
        raise click.ClickException(f"{failures} file(s) could not be tagged.")


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("candidate", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "json_output", is_flag=True, help="Emit the decision as JSON.")
@click.pass_context
def check(ctx: click.Context, path: Path, candidate: Path, json_output: bool) -> None:
    """Report whether CANDIDATE would be kept if added to PATH.

    Exits with status 1 when the configured rules would reject it.
    """
    try:
        config = _load_config(ctx)
        pipeline = CleanupPipeline(config.rules, _scanner(config))
        keep = asyncio.run(pipeline.admit(path.expanduser().resolve(), candidate.expanduser().resolve()))
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return
    except PruneError as exc:
        _handle_cli_error(str(exc), code="prune_error", json_output=json_output, original=exc)
        return

    if json_output:
        console.print_json(data={"candidate": candidate.as_posix(), "keep": keep})
    elif keep:
        console.print(f"[green]{candidate.name} would be kept.[/green]")
    else:
        console.print(f"[yellow]{candidate.name} would not survive the retention rules.[/yellow]")

    if not keep:
        ctx.exit(1)


@cli.group()
def config() -> None:
    """Manage autoprune configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    manager = ConfigManager()
    try:
        effective = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(effective.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="YAML value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value at the dotted KEY, e.g. rules.auto_prune.days."""
    manager = ConfigManager()
    manager.ensure_exists()

    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'rules.auto_prune.days'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    before = manager.read_text().splitlines()
    try:
        file_data = manager.load_file_overrides()
        _assign_nested(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=PruneConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    after = manager.read_text().splitlines()

    # The timestamp line always changes; compare everything else.
    body_before = [line for line in before if not line.startswith("# Last updated:")]
    body_after = [line for line in after if not line.startswith("# Last updated:")]
    if body_before == body_after:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    diff = difflib.unified_diff(
        before,
        after,
        fromfile="config.yaml (before)",
        tofile="config.yaml (after)",
        lineterm="",
    )
    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Edit retention rules and settings in $EDITOR.

    The edited file is validated before it replaces the current one, so a
    typo in rules.auto_prune never reaches a prune run.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    current = manager.read_text()
    edited = click.edit(current, extension=".yaml")
    if edited is None or edited == current:
        console.print("[yellow]Configuration left unchanged.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Edited configuration is not valid YAML: {exc}") from exc
    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        effective = resolve_with_precedence(defaults=PruneConfig(), file_overrides=parsed)
    except ConfigError as exc:
        raise click.ClickException(f"Edited configuration rejected: {exc}") from exc

    manager.save(parsed)
    policy = effective.rules.auto_prune
    if policy is None:
        console.print("[yellow]Configuration updated; auto-prune is disabled.[/yellow]")
        return
    limits = ", ".join(f"{name}={value}" for name, value in policy.model_dump().items())
    console.print(f"[green]Configuration updated; auto-prune keeps {limits}.[/green]")


def main() -> None:
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
