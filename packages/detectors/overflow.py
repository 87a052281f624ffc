"""Integer overflow: unchecked arithmetic under compilers older than 0.8."""
from __future__ import annotations

import re
from typing import List, Optional

from packages.detectors import policy
from packages.detectors.base import Detector, function_name, make_finding
from packages.schema.ast import (
    Assignment,
    AstNode,
    BinaryOperation,
    ContractDefinition,
    SourceUnit,
    find,
)
from packages.schema.models import Finding, Severity
from packages.solidity_adapter.parse import (
    get_contracts,
    get_functions,
    get_imports,
    get_pragma,
    get_using_for,
)

_VERSION_RE = re.compile(policy.VERSION_PATTERN)


class OverflowDetector(Detector):
    name = "overflow"

    def detect(self, unit: SourceUnit) -> List[Finding]:
        findings: List[Finding] = []
        pragma = get_pragma(unit, "solidity")
        if not needs_overflow_checks(pragma.value if pragma is not None else None):
            return findings

        imports_safe_math = any(
            policy.SAFE_MATH_LIBRARY in directive.path for directive in get_imports(unit)
        )
        for contract in get_contracts(unit):
            if imports_safe_math or _uses_safe_math(contract):
                continue
            self._check_contract(contract, findings)
        return findings

    def _check_contract(self, contract: ContractDefinition, findings: List[Finding]) -> None:
        for function in get_functions(contract):
            if function.body is None:
                continue
            for node in find(function.body, _is_risky_arithmetic):
                operator = node.operator  # type: ignore[attr-defined]
                findings.append(
                    make_finding(
                        "INTEGER_OVERFLOW",
                        Severity.MEDIUM,
                        contract.name,
                        function_name(function),
                        node.line,
                        f"Potential integer overflow in {operator} operation. Consider using SafeMath.",
                    )
                )


def needs_overflow_checks(version: Optional[str]) -> bool:
    """True unless the pragma pins a compiler with checked arithmetic (>= 0.8)."""

    if not version:
        return True
    match = _VERSION_RE.search(version)
    if match is None:
        return True
    major, minor = int(match.group(1)), int(match.group(2))
    return major == 0 and minor < policy.CHECKED_ARITHMETIC_MINOR


def _uses_safe_math(contract: ContractDefinition) -> bool:
    return any(
        declaration.library_name == policy.SAFE_MATH_LIBRARY
        for declaration in get_using_for(contract)
    )


def _is_risky_arithmetic(node: AstNode) -> bool:
    if isinstance(node, BinaryOperation):
        return node.operator in policy.OVERFLOW_OPERATORS
    if isinstance(node, Assignment):
        return node.operator in policy.OVERFLOW_ASSIGNMENTS
    return False
