# JSON report writer. Emits the displayed result: filtered findings and their summary.
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from packages.schema.models import AuditResult


def to_payload(result: AuditResult) -> Dict[str, Any]:
    payload = result.model_dump(mode="json")
    if not payload["diagnostics"]:
        del payload["diagnostics"]
    return payload


def to_json(result: AuditResult, indent: int = 2) -> str:
    return json.dumps(to_payload(result), indent=indent, ensure_ascii=False)


def write_json(path: Path, result: AuditResult) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        f.write(to_json(result))
        f.write("\n")
