"""Reentrancy: state written after an external call in the same statement list."""
from __future__ import annotations

from typing import List

from packages.detectors import policy
from packages.detectors.base import (
    Detector,
    function_name,
    is_call_to,
    is_external_call,
    is_read_only,
    make_finding,
    outside_nested_statements,
)
from packages.schema.ast import (
    Assignment,
    AstNode,
    ContractDefinition,
    ExpressionStatement,
    FunctionDefinition,
    SourceUnit,
    contains,
)
from packages.schema.models import Finding, Severity
from packages.solidity_adapter.parse import get_contracts, get_functions


class ReentrancyDetector(Detector):
    name = "reentrancy"

    def detect(self, unit: SourceUnit) -> List[Finding]:
        findings: List[Finding] = []
        for contract in get_contracts(unit):
            self._check_contract(contract, findings)
        return findings

    def _check_contract(self, contract: ContractDefinition, findings: List[Finding]) -> None:
        for function in get_functions(contract):
            if is_read_only(function) or not contains(function.body, is_external_call):
                continue
            if _state_change_after_external_call(function):
                findings.append(
                    make_finding(
                        "REENTRANCY",
                        Severity.HIGH,
                        contract.name,
                        function_name(function),
                        function.line,
                        "Potential reentrancy vulnerability: state changes after external call",
                    )
                )


def _state_change_after_external_call(function: FunctionDefinition) -> bool:
    # Linear over the top-level statements only; branches and loop bodies are not reordered.
    if function.body is None:
        return False

    seen_external_call = False
    for statement in function.body.statements:
        if contains(statement, is_external_call, outside_nested_statements):
            seen_external_call = True
        elif seen_external_call and _is_state_change(statement):
            return True
    return False


def _is_state_change(statement: AstNode) -> bool:
    if not isinstance(statement, ExpressionStatement):
        return False
    expression = statement.expression
    if isinstance(expression, Assignment):
        return True
    return expression is not None and is_call_to(expression, policy.REENTRANCY_STATE_CALLS)
