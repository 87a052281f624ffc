import json

from rich.console import Console

from packages.exporters.console import render_report, summary_line
from packages.exporters.json_report import to_json, to_payload, write_json
from packages.schema.models import AuditResult, Diagnostic, Finding, Severity


def _result(**overrides) -> AuditResult:
    data = {
        "vulnerabilities": [
            Finding(
                type="GAS_STORAGE_OPTIMIZATION",
                severity=Severity.LOW,
                contract="Token",
                function="sync",
                line="multiple",
                description="Storage variable 'total' read 3 times. Consider caching in memory.",
            )
        ],
        "summary": {"high": 0, "medium": 0, "low": 1, "info": 0},
    }
    data.update(overrides)
    return AuditResult(**data)


def test_payload_shape():
    payload = to_payload(_result())

    assert set(payload) == {"vulnerabilities", "summary"}
    assert payload["vulnerabilities"][0] == {
        "type": "GAS_STORAGE_OPTIMIZATION",
        "severity": "LOW",
        "contract": "Token",
        "function": "sync",
        "line": "multiple",
        "description": "Storage variable 'total' read 3 times. Consider caching in memory.",
    }


def test_payload_keeps_diagnostics_when_present():
    payload = to_payload(_result(diagnostics=[Diagnostic(detector="gas", message="KeyError: 'x'")]))

    assert payload["diagnostics"] == [{"detector": "gas", "message": "KeyError: 'x'"}]


def test_write_json_creates_parent_directories(tmp_path):
    path = tmp_path / "nested" / "report.json"

    write_json(path, _result())

    assert json.loads(path.read_text()) == json.loads(to_json(_result()))


def test_console_report_lists_findings_and_warnings():
    console = Console(record=True, width=160, no_color=True)

    render_report(console, _result(diagnostics=[Diagnostic(detector="access", message="ValueError: bad")]))

    text = console.export_text()
    assert "Warning: detector 'access' failed: ValueError: bad" in text
    assert "Token.sync" in text
    assert "Summary: HIGH: 0  MEDIUM: 0  LOW: 1  INFO: 0" in text


def test_summary_line_markup():
    assert summary_line(AuditResult()).startswith("Summary: [bold red]HIGH: 0[/]")
