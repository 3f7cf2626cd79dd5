from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .classify import classify
from .config import DATA_PATH, ConfigError, ExportConfig, load_config
from .copier import CopyError, CopyReport, OutcomeKind, copy_trees_by_roots

app = typer.Typer(help="Sort staged project files into resource and behavior packs.")
console = Console()
err_console = Console(stderr=True)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INVALID_INPUT = 2
EXIT_NOT_FOUND = 3


class OutputFormat(str, Enum):
    table = "table"
    json = "json"
    md = "md"


def _configure_logging(level: int) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every copied file."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors."),
) -> None:
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    _configure_logging(level)


def _json_print(payload: dict) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=True, sort_keys=True))


def _print_key_value_table(title: str, rows: list[tuple[str, str]]) -> None:
    table = Table(title=title)
    table.add_column("Field")
    table.add_column("Value")
    for key, value in rows:
        table.add_row(key, value)
    console.print(table)


def _emit_success(
    command: str,
    output_format: OutputFormat,
    data: dict,
    md_renderer: Callable[[dict], str] | None = None,
    table_renderer: Callable[[dict], None] | None = None,
) -> None:
    if output_format == OutputFormat.json:
        _json_print(
            {
                "ok": True,
                "command": command,
                "exit_code": EXIT_OK,
                "data": data,
            }
        )
        return

    if output_format == OutputFormat.md and md_renderer is not None:
        console.print(md_renderer(data))
        return

    if output_format == OutputFormat.table and table_renderer is not None:
        table_renderer(data)
        return

    if output_format == OutputFormat.md:
        lines = [f"# {command}", ""]
        lines.extend(f"- **{key}**: {value}" for key, value in data.items())
        console.print("\n".join(lines))
    else:
        _print_key_value_table(
            title=command,
            rows=[(str(key), str(value)) for key, value in data.items()],
        )


def _emit_error(
    command: str,
    output_format: OutputFormat,
    exit_code: int,
    code: str,
    message: str,
) -> None:
    if output_format == OutputFormat.json:
        _json_print(
            {
                "ok": False,
                "command": command,
                "exit_code": exit_code,
                "error": {
                    "code": code,
                    "message": message,
                },
            }
        )
    elif output_format == OutputFormat.md:
        console.print(f"# {command}\n\n- **status**: error\n- **code**: {code}\n- **message**: {message}", markup=False)
    else:
        console.print(f"[red]Error ({code}):[/red] ", end="")
        console.print(message, markup=False)

    raise typer.Exit(code=exit_code)


def _working_dir(command: str, working_dir: Path, output_format: OutputFormat) -> Path:
    root = working_dir.resolve()
    if not root.is_dir():
        _emit_error(
            command=command,
            output_format=output_format,
            exit_code=EXIT_INVALID_INPUT,
            code="invalid_working_dir",
            message=f"Working directory does not exist: {root}",
        )
        raise
    return root


def _load(
    command: str,
    working_dir: Path,
    config: Optional[Path],
    builtin: bool,
    output_format: OutputFormat,
    data_path: str = DATA_PATH,
) -> ExportConfig:
    try:
        return load_config(
            working_dir,
            config_path=config.resolve() if config else None,
            builtin=builtin,
            data_path=data_path,
        )
    except ConfigError as error:
        # A broken config is reported but does not fail the build step.
        _emit_error(
            command=command,
            output_format=output_format,
            exit_code=EXIT_OK,
            code="config_error",
            message=str(error),
        )
        raise


def _report_row(report: CopyReport) -> dict:
    row = {"root": str(report.root)}
    for kind in OutcomeKind:
        row[kind.value] = report.count(kind)
    row["problems"] = [
        {
            "kind": outcome.kind.value,
            "source": str(outcome.source),
            "target": str(outcome.target) if outcome.target else "",
            "cause": outcome.cause,
        }
        for outcome in report.outcomes
        if outcome.kind in (OutcomeKind.unmapped, OutcomeKind.exists, OutcomeKind.failed)
    ]
    return row


@app.command("export")
def export_files(
    working_dir: Path = typer.Argument(Path("."), help="Working directory holding the data folder and packs."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file (JSON or YAML)."),
    builtin: bool = typer.Option(False, "--builtin", help="Use the built-in extension table."),
    data_path: str = typer.Option(DATA_PATH, "--data-path", help="Staging directory relative to the working directory."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report destinations without copying."),
    output_format: OutputFormat = typer.Option(OutputFormat.table, "--format", help="Output format."),
):
    """Copy staged files into the RP and BP folders."""
    root = _working_dir("export", working_dir, output_format)
    export_config = _load("export", root, config, builtin, output_format, data_path=data_path)

    logging.getLogger(__name__).info("Copying files to packs...")
    try:
        reports = copy_trees_by_roots(root, export_config.rules, export_config.roots, data_path=data_path, dry_run=dry_run)
    except CopyError as error:
        _emit_error(
            command="export",
            output_format=output_format,
            exit_code=EXIT_ERROR,
            code="copy_error",
            message=str(error),
        )
        raise

    data = {
        "working_dir": str(root),
        "dry_run": dry_run,
        "roots": [_report_row(report) for report in reports],
    }

    def render_md(payload: dict) -> str:
        lines = [f"# Export: `{payload['working_dir']}`", ""]
        for item in payload["roots"]:
            counts = ", ".join(f"{kind.value}={item[kind.value]}" for kind in OutcomeKind)
            lines.append(f"- `{item['root']}` | {counts}")
            for problem in item["problems"]:
                lines.append(f"  - {problem['kind']}: `{problem['source']}`")
        return "\n".join(lines)

    def render_table(payload: dict) -> None:
        title = "Export (dry run)" if payload["dry_run"] else "Export"
        table = Table(title=title)
        table.add_column("Root")
        for kind in OutcomeKind:
            table.add_column(kind.value.capitalize(), justify="right")
        for item in payload["roots"]:
            table.add_row(item["root"], *(str(item[kind.value]) for kind in OutcomeKind))
        console.print(table)

    _emit_success(command="export", output_format=output_format, data=data, md_renderer=render_md, table_renderer=render_table)


@app.command("classify")
def classify_path(
    relative_path: str = typer.Argument(..., help="File path relative to a source root."),
    working_dir: Path = typer.Argument(Path("."), help="Working directory holding the data folder."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file (JSON or YAML)."),
    builtin: bool = typer.Option(False, "--builtin", help="Use the built-in extension table."),
    data_path: str = typer.Option(DATA_PATH, "--data-path", help="Staging directory holding the default config."),
    output_format: OutputFormat = typer.Option(OutputFormat.table, "--format", help="Output format."),
):
    """Show where a single staged file would be copied."""
    root = _working_dir("classify", working_dir, output_format)
    export_config = _load("classify", root, config, builtin, output_format, data_path=data_path)
    target = classify(relative_path, export_config.rules)
    if target is None:
        _emit_error(
            command="classify",
            output_format=output_format,
            exit_code=EXIT_NOT_FOUND,
            code="unmapped",
            message=f'Unable to map "{relative_path}" to the pack file.',
        )
        raise

    data = {"path": relative_path, "target": target.as_posix(), "mode": export_config.rules.mode.value}
    _emit_success(command="classify", output_format=output_format, data=data)


@app.command("rules")
def list_rules(
    working_dir: Path = typer.Argument(Path("."), help="Working directory holding the data folder."),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file (JSON or YAML)."),
    builtin: bool = typer.Option(False, "--builtin", help="Use the built-in extension table."),
    data_path: str = typer.Option(DATA_PATH, "--data-path", help="Staging directory holding the default config."),
    output_format: OutputFormat = typer.Option(OutputFormat.table, "--format", help="Output format."),
):
    """List the effective rules in match order."""
    root = _working_dir("rules", working_dir, output_format)
    export_config = _load("rules", root, config, builtin, output_format, data_path=data_path)
    data = {
        "mode": export_config.rules.mode.value,
        "source": str(export_config.source) if export_config.source else "builtin",
        "roots": list(export_config.roots),
        "rules": [{"suffix": rule.suffix, "destination": rule.template} for rule in export_config.rules.rules],
    }

    def render_md(payload: dict) -> str:
        lines = [f"# Rules ({payload['mode']})", ""]
        lines.append(f"- **source**: `{payload['source']}`")
        lines.append(f"- **roots**: {', '.join(payload['roots'])}")
        lines.append("")
        lines.extend(f"- `{item['suffix']}` -> `{item['destination']}`" for item in payload["rules"])
        return "\n".join(lines)

    def render_table(payload: dict) -> None:
        table = Table(title=f"Rules ({payload['mode']}) from {payload['source']}")
        table.add_column("Suffix")
        table.add_column("Destination")
        for item in payload["rules"]:
            table.add_row(item["suffix"], item["destination"])
        console.print(table)

    _emit_success(command="rules", output_format=output_format, data=data, md_renderer=render_md, table_renderer=render_table)


@app.command("version")
def version(
    output_format: OutputFormat = typer.Option(OutputFormat.table, "--format", help="Output format."),
) -> None:
    """Print version."""
    _emit_success(command="version", output_format=output_format, data={"version": __version__})


if __name__ == "__main__":
    app()
