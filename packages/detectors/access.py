"""Access control: unguarded state-changing entry points and incomplete owner patterns."""
from __future__ import annotations

from typing import List, Set

from packages.detectors import policy
from packages.detectors.base import (
    Detector,
    function_name,
    is_assignment,
    is_call_to,
    is_read_only,
    make_finding,
)
from packages.schema.ast import (
    AstNode,
    ContractDefinition,
    FunctionDefinition,
    ModifierDefinition,
    SourceUnit,
    contains,
)
from packages.schema.models import CONTRACT_SCOPE, Finding, Severity
from packages.solidity_adapter.parse import (
    get_contracts,
    get_functions,
    get_modifiers,
    get_state_variables,
)


class AccessControlDetector(Detector):
    name = "access"

    def detect(self, unit: SourceUnit) -> List[Finding]:
        findings: List[Finding] = []
        for contract in get_contracts(unit):
            self._check_contract(contract, findings)
        return findings

    def _check_contract(self, contract: ContractDefinition, findings: List[Finding]) -> None:
        functions = get_functions(contract)
        guards = declared_access_modifiers(get_modifiers(contract))

        for function in functions:
            self._check_function(contract, function, guards, findings)

        self._check_ownership(contract, functions, findings)

    def _check_function(
        self,
        contract: ContractDefinition,
        function: FunctionDefinition,
        guards: Set[str],
        findings: List[Finding],
    ) -> None:
        if is_read_only(function) or function.is_constructor:
            return

        name = function_name(function)
        is_public = function.visibility == "public"

        if is_public and changes_state(function) and not has_access_control(function, guards):
            findings.append(
                make_finding(
                    "ACCESS_CONTROL_MISSING",
                    missing_access_severity(name),
                    contract.name,
                    name,
                    function.line,
                    f"Public function '{name}' modifies state without access control",
                )
            )

        if is_public and name.startswith("_"):
            findings.append(
                make_finding(
                    "ACCESS_CONTROL_VISIBILITY",
                    Severity.LOW,
                    contract.name,
                    name,
                    function.line,
                    f"Function '{name}' could be internal - only used internally",
                )
            )

    def _check_ownership(
        self,
        contract: ContractDefinition,
        functions: List[FunctionDefinition],
        findings: List[Finding],
    ) -> None:
        has_owner = any(
            variable.name in policy.OWNER_VARIABLES for variable in get_state_variables(contract)
        )
        uses_owner_guard = any(
            name in policy.OWNER_MODIFIERS
            for function in functions
            for name in function.modifier_names
        )

        if uses_owner_guard and not has_owner:
            findings.append(
                make_finding(
                    "ACCESS_CONTROL_OWNER_PATTERN",
                    Severity.MEDIUM,
                    contract.name,
                    CONTRACT_SCOPE,
                    "unknown",
                    "Contract uses owner modifiers but missing owner state variable",
                )
            )

        if has_owner and not _has_ownership_transfer(functions):
            findings.append(
                make_finding(
                    "ACCESS_CONTROL_OWNER_TRANSFER",
                    Severity.LOW,
                    contract.name,
                    CONTRACT_SCOPE,
                    "unknown",
                    "Contract has owner but missing ownership transfer functionality",
                )
            )


def is_access_control_modifier(name: str) -> bool:
    return name in policy.ACCESS_CONTROL_MODIFIERS


def declared_access_modifiers(modifiers: List[ModifierDefinition]) -> Set[str]:
    return {modifier.name for modifier in modifiers if is_access_control_modifier(modifier.name)}


def has_access_control(function: FunctionDefinition, guards: Set[str]) -> bool:
    return any(
        name in guards or is_access_control_modifier(name) for name in function.modifier_names
    )


def changes_state(function: FunctionDefinition) -> bool:
    return contains(function.body, _is_state_change)


def missing_access_severity(name: str) -> Severity:
    lowered = name.lower()
    if any(pattern in lowered for pattern in policy.DANGEROUS_FUNCTION_NAMES):
        return Severity.HIGH
    return Severity.MEDIUM


def _is_state_change(node: AstNode) -> bool:
    return is_assignment(node) or is_call_to(node, policy.STATE_MUTATING_CALLS)


def _has_ownership_transfer(functions: List[FunctionDefinition]) -> bool:
    for function in functions:
        lowered = function.name.lower()
        if any(pattern in lowered for pattern in policy.OWNERSHIP_TRANSFER_NAMES):
            return True
    return False
