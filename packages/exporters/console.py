# Console report: rich table of findings, summary line and detector diagnostics.
from __future__ import annotations

from rich.console import Console
from rich.table import Table

from packages.schema.models import SEVERITY_ORDER, AuditResult, Severity

SEVERITY_STYLES = {
    Severity.HIGH: "bold red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "cyan",
    Severity.INFO: "dim",
}


def render_report(console: Console, result: AuditResult) -> None:
    for diagnostic in result.diagnostics:
        console.print(f"[yellow]Warning: detector '{diagnostic.detector}' failed: {diagnostic.message}[/]")

    if not result.vulnerabilities:
        console.print("[green]No vulnerabilities found[/]")
    else:
        console.print(_findings_table(result))

    console.print(summary_line(result))


def summary_line(result: AuditResult) -> str:
    parts = []
    for severity in SEVERITY_ORDER:
        count = result.summary.get(severity.key, 0)
        style = SEVERITY_STYLES[severity]
        parts.append(f"[{style}]{severity.value}: {count}[/]")
    return "Summary: " + "  ".join(parts)


def _findings_table(result: AuditResult) -> Table:
    table = Table(title="Audit findings")
    table.add_column("Severity")
    table.add_column("Type")
    table.add_column("Location")
    table.add_column("Line", justify="right")
    table.add_column("Description")
    for finding in result.vulnerabilities:
        style = SEVERITY_STYLES[finding.severity]
        table.add_row(
            f"[{style}]{finding.severity.value}[/]",
            finding.type,
            f"{finding.contract}.{finding.function}",
            str(finding.line),
            finding.description,
        )
    return table
