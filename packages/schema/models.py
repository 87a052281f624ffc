# Report models shared by detectors, the auditor and exporters. Keep names/fields stable.
from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from packages.config.settings import ConfigManager


class Severity(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFO = "INFO"

    @property
    def key(self) -> str:
        """Lowercase name used by the summary and the severity filter."""
        return self.value.lower()


SEVERITY_ORDER = (Severity.HIGH, Severity.MEDIUM, Severity.LOW, Severity.INFO)

Line = Union[int, Literal["unknown", "multiple"]]

CONTRACT_SCOPE = "contract"
STATE_VARIABLE_SCOPE = "state variable"


class Finding(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    severity: Severity
    contract: str
    function: str
    line: Line = "unknown"
    description: str


class Diagnostic(BaseModel):
    model_config = ConfigDict(frozen=True)

    detector: str
    message: str


def empty_summary() -> Dict[str, int]:
    return {severity.key: 0 for severity in SEVERITY_ORDER}


class AuditResult(BaseModel):
    vulnerabilities: List[Finding] = Field(default_factory=list)
    summary: Dict[str, int] = Field(default_factory=empty_summary)
    diagnostics: List[Diagnostic] = Field(default_factory=list)

    def visible(self, config: "ConfigManager | None" = None) -> "AuditResult":
        """Return the result as reporters show it: filtered findings, same summary."""

        if config is None:
            return self.model_copy()
        shown = [
            finding
            for finding in self.vulnerabilities
            if config.should_show_severity(finding.severity.value)
        ]
        return AuditResult(
            vulnerabilities=shown,
            summary=dict(self.summary),
            diagnostics=list(self.diagnostics),
        )
