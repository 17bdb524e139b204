"""CLI entrypoint for cstyle."""

from __future__ import annotations

import json
import logging
import signal
import sys
from pathlib import Path
from threading import Event
from typing import Annotated

import typer

from cstyle import __version__
from cstyle.config import AppConfig, default_config_template, load_app_config
from cstyle.engine import RunReport, check_units
from cstyle.output import render_human, render_json
from cstyle.rules import RuleSet, build_rules, list_rule_info
from cstyle.rules.base import Rule, RuleConfigError
from cstyle.units import SourceUnit, collect_paths, pair_units, source_file

app = typer.Typer(
    name="cstyle",
    no_args_is_help=True,
    help="Check C sources against a configurable catalog of coding-convention rules.",
)


def version_callback(value: bool) -> None:
    """Print version and exit when --version is provided."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit.", callback=version_callback),
    ] = False,
) -> None:
    """Root command callback."""
    _ = version


@app.command("check")
def check_command(
    paths: Annotated[
        list[Path] | None,
        typer.Argument(help="Files or directories to check; directories are searched for *.c/*.h."),
    ] = None,
    stdin: Annotated[bool, typer.Option(help="Read a single file from stdin.")] = False,
    stdin_name: Annotated[
        str, typer.Option(help="File name reported for --stdin input; its suffix sets the role.")
    ] = "stdin.c",
    repo: Annotated[Path, typer.Option(help="Repository path used for config lookup.")] = Path(
        "."
    ),
    format: Annotated[
        str | None, typer.Option(help="Output format: human|json.", show_default="human")
    ] = None,
    max_line_width: Annotated[
        int | None, typer.Option(help="Maximum line width in bytes.", show_default="80")
    ] = None,
    indent_width: Annotated[
        int | None, typer.Option(help="Indentation step in columns.", show_default="4")
    ] = None,
    enable: Annotated[list[str] | None, typer.Option(help="Enable a rule id.")] = None,
    disable: Annotated[list[str] | None, typer.Option(help="Disable a rule id.")] = None,
    jobs: Annotated[
        int | None, typer.Option(help="Number of units checked in parallel.", show_default="4")
    ] = None,
    include: Annotated[list[str] | None, typer.Option(help="Include glob pattern.")] = None,
    exclude: Annotated[list[str] | None, typer.Option(help="Exclude glob pattern.")] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Log progress to stderr.")] = False,
) -> None:
    """Check C sources and report convention violations."""
    _configure_logging(verbose)
    app_config = _load_config_or_raise(repo, config_file)
    _apply_overrides(
        app_config,
        format=format,
        max_line_width=max_line_width,
        indent_width=indent_width,
        jobs=jobs,
        enable=enable,
        disable=disable,
        include=include,
        exclude=exclude,
    )
    rule_set = app_config.to_rule_set()
    _build_configured_rules_or_raise(rule_set)

    if stdin and paths:
        raise typer.BadParameter("Use either PATHS or --stdin, not both.")
    if stdin:
        text = sys.stdin.read()
        item = source_file(stdin_name, text=text)
        units = pair_units([item])
    elif paths:
        selected = collect_paths(paths, include=app_config.include, exclude=app_config.exclude)
        units = pair_units(source_file(path.as_posix()) for path in selected)
    else:
        raise typer.BadParameter("Provide PATHS to check or use --stdin.")

    report = _run_with_interrupt(units, rule_set, workers=app_config.jobs)
    if app_config.format == "json":
        typer.echo(render_json(report))
    else:
        typer.echo(render_human(report))
    raise typer.Exit(code=report.exit_code)


@app.command("rules")
def rules_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """List available rules and whether the configuration enables them."""
    output_format = _format_or_raise(format)
    app_config = _load_config_or_raise(repo, config_file)
    rule_set = app_config.to_rule_set()
    _build_configured_rules_or_raise(rule_set)
    rule_info = list_rule_info(rule_set)

    if output_format == "json":
        payload = {
            "rules": [
                {
                    "rule_id": item.rule_id,
                    "name": item.name,
                    "description": item.description,
                    "category": item.category,
                    "severity": item.severity,
                    "hook": item.hook,
                    "default_enabled": item.default_enabled,
                    "enabled": item.enabled,
                    "options": item.options,
                }
                for item in rule_info
            ],
            "meta": {"config_source": app_config.source},
        }
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = ["Available rules:"]
    for item in rule_info:
        status = "enabled" if item.enabled else "disabled"
        lines.append(
            f"- {item.rule_id} [{status}, {item.severity}, {item.category}] - {item.description}"
        )
    typer.echo("\n".join(lines))


@app.command("config")
def config_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Show resolved configuration."""
    output_format = _format_or_raise(format)
    app_config = _load_config_or_raise(repo, config_file)
    active_rules = _build_configured_rules_or_raise(app_config.to_rule_set())
    payload = app_config.to_dict()
    payload["active_rule_ids"] = [rule.rule_id for rule in active_rules]

    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [
        "Resolved configuration:",
        f"- source: {payload['source'] or 'defaults'}",
        f"- format: {payload['format']}",
        f"- max_line_width: {payload['max_line_width']}",
        f"- indent_width: {payload['indent_width']}",
        f"- jobs: {payload['jobs']}",
        f"- include: {payload['include']}",
        f"- exclude: {payload['exclude']}",
        f"- rules.enable: {payload['rules']['enable']}",
        f"- rules.disable: {payload['rules']['disable']}",
        f"- naming: {payload['naming']}",
        f"- active_rule_ids: {payload['active_rule_ids']}",
    ]
    typer.echo("\n".join(lines))


@app.command("config-init")
def config_init_command(
    out: Annotated[Path, typer.Option(help="Output path for starter config TOML.")] = Path(
        ".cstyle.toml"
    ),
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite if file already exists."),
    ] = False,
) -> None:
    """Create a starter repository config file."""
    out_path = out.resolve()
    if out_path.exists() and not force:
        raise typer.BadParameter(
            f"Refusing to overwrite existing file: {out_path}. Use --force to overwrite."
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(default_config_template(), encoding="utf-8")
    typer.echo(f"Wrote starter config: {out_path}")


@app.command("config-validate")
def config_validate_command(
    repo: Annotated[Path, typer.Option(help="Repository path.")] = Path("."),
    config_file: Annotated[
        Path,
        typer.Option("--config", help="Path to config TOML file to validate."),
    ] = Path(".cstyle.toml"),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
) -> None:
    """Validate a config file and report active rules."""
    output_format = _format_or_raise(format)
    app_config = _load_config_or_raise(repo, config_file)
    active_rules = _build_configured_rules_or_raise(app_config.to_rule_set())
    payload = {
        "ok": True,
        "source": app_config.source,
        "active_rule_ids": [rule.rule_id for rule in active_rules],
    }
    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return
    typer.echo(
        "\n".join(
            [
                "Config is valid.",
                f"- source: {payload['source']}",
                f"- active_rule_ids: {payload['active_rule_ids']}",
            ]
        )
    )


def main() -> None:
    """Console script entrypoint."""
    app()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )


def _load_config_or_raise(repo: Path, config_file: Path | None = None) -> AppConfig:
    try:
        return load_app_config(repo, config_path=config_file)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc


def _build_configured_rules_or_raise(rule_set: RuleSet) -> list[Rule]:
    try:
        return build_rules(rule_set)
    except RuleConfigError as exc:
        raise typer.BadParameter(str(exc), param_hint="config.rules") from exc


def _format_or_raise(value: str) -> str:
    output_format = value.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")
    return output_format


def _apply_overrides(
    app_config: AppConfig,
    *,
    format: str | None,
    max_line_width: int | None,
    indent_width: int | None,
    jobs: int | None,
    enable: list[str] | None,
    disable: list[str] | None,
    include: list[str] | None,
    exclude: list[str] | None,
) -> None:
    if format is not None:
        app_config.format = _format_or_raise(format)
    if max_line_width is not None:
        app_config.max_line_width = max_line_width
    if indent_width is not None:
        app_config.indent_width = indent_width
    if jobs is not None:
        if jobs <= 0:
            raise typer.BadParameter("jobs must be > 0", param_hint="--jobs")
        app_config.jobs = jobs
    if include:
        app_config.include = list(include)
    if exclude:
        app_config.exclude = list(exclude)
    for rule_id in enable or []:
        if rule_id in app_config.rule_disable:
            app_config.rule_disable.remove(rule_id)
        if app_config.rule_enable is not None and rule_id not in app_config.rule_enable:
            app_config.rule_enable.append(rule_id)
        options = dict(app_config.rule_options.get(rule_id, {}))
        options["enabled"] = True
        app_config.rule_options[rule_id] = options
    for rule_id in disable or []:
        if rule_id not in app_config.rule_disable:
            app_config.rule_disable.append(rule_id)


def _run_with_interrupt(units: list[SourceUnit], rule_set: RuleSet, *, workers: int) -> RunReport:
    cancel = Event()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())
    try:
        return check_units(units, rule_set, workers=workers, cancel=cancel)
    except RuleConfigError as exc:
        raise typer.BadParameter(str(exc), param_hint="config.rules") from exc
    finally:
        signal.signal(signal.SIGINT, previous)
