"""Typer CLI entrypoint for scaudit audits."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

import typer
from rich.console import Console
from rich.logging import RichHandler

from packages.auditor.engine import Auditor
from packages.config.settings import (
    DETECTOR_NAMES,
    SEVERITY_NAMES,
    ConfigError,
    ConfigManager,
)
from packages.exporters.console import render_report
from packages.exporters.json_report import to_json, write_json
from packages.solidity_adapter.parse import ParseError, parse_file

__version__ = "0.1.0"

app = typer.Typer(add_completion=False)
err_console = Console(stderr=True)


def _normalize_names(value: Optional[str], valid: Sequence[str], option: str) -> Optional[List[str]]:
    if value is None:
        return None
    names = []
    for part in value.split(","):
        name = part.strip().lower()
        if not name:
            continue
        if name not in valid:
            raise typer.BadParameter(
                f"Unsupported value '{part.strip()}' for {option}. Choose from {sorted(valid)}"
            )
        if name not in names:
            names.append(name)
    return names


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _load_config(config_path: Optional[Path]) -> ConfigManager:
    if config_path is None:
        return ConfigManager.load()
    try:
        return ConfigManager.from_path(config_path)
    except ConfigError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"scaudit {__version__}")
        raise typer.Exit()


@app.command()
def audit(
    file: Path = typer.Argument(..., help="Solidity file to audit"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Explicit config file"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
    severity: Optional[str] = typer.Option(
        None, "--severity", help="Comma-separated severities to show, e.g. high,medium"
    ),
    detectors: Optional[str] = typer.Option(
        None, "--detectors", help="Comma-separated detectors to run: reentrancy,overflow,gas,access"
    ),
    json_output: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Also write the JSON report to this path"),
    workers: int = typer.Option(1, "--workers", min=1, help="Run detectors on N threads"),
    version: Optional[bool] = typer.Option(
        None, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """Audit a Solidity source file for common vulnerability patterns."""

    selected_severities = _normalize_names(severity, SEVERITY_NAMES, "--severity")
    selected_detectors = _normalize_names(detectors, DETECTOR_NAMES, "--detectors")

    config = _load_config(config_path).with_overrides(
        detectors=selected_detectors,
        severities=selected_severities,
        output_format="json" if json_output else None,
        verbose=True if verbose else None,
        colors=False if no_color else None,
    )
    _configure_logging(config.is_verbose())

    as_json = config.get_output_format() == "json"
    console = Console(no_color=not config.use_colors(), highlight=False)

    if not as_json:
        console.print(f"[bold blue]Smart Contract Auditor v{__version__}[/]")
        console.print(f"[dim]Analyzing contract: {file}[/]")

    if not file.exists():
        err_console.print(f"[red]Error: File not found: {file}[/]")
        raise typer.Exit(code=1)

    try:
        unit = parse_file(file)
    except ParseError as exc:
        err_console.print(f"[red]Error: {exc}[/]")
        raise typer.Exit(code=1) from exc

    auditor = Auditor(unit, config, max_workers=workers)
    if config.is_verbose() and not as_json:
        active = ", ".join(detector.name for detector in auditor.detectors) or "none"
        console.print(f"[dim]Detectors: {active}[/]")
        console.print(f"[dim]Rules: {config.get_config().get('rules', {})}[/]")

    result = auditor.run().visible(config)

    if as_json:
        typer.echo(to_json(result))
    else:
        render_report(console, result)

    if out is not None:
        write_json(out, result)
        if not as_json:
            console.print(f"[dim]JSON report written to {out}[/]")

    raise typer.Exit(code=0)


if __name__ == "__main__":  # pragma: no cover - manual execution
    app()
