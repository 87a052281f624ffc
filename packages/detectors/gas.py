"""Gas optimisation hints. Every finding here is LOW severity."""
from __future__ import annotations

from collections import Counter
from typing import Dict, List, Set, Union

from packages.detectors import policy
from packages.detectors.base import Detector, function_name, is_assignment, make_finding
from packages.schema.ast import (
    Assignment,
    AstNode,
    ContractDefinition,
    ForStatement,
    FunctionCall,
    FunctionDefinition,
    Identifier,
    IndexAccess,
    MemberAccess,
    SourceUnit,
    WhileStatement,
    contains,
    find,
    render,
    walk,
)
from packages.schema.models import STATE_VARIABLE_SCOPE, Finding, Severity
from packages.solidity_adapter.parse import get_contracts, get_functions, get_state_variables

Loop = Union[ForStatement, WhileStatement]

COMPLEX_TYPE_CATEGORIES = ("mapping", "array")


class GasOptimizationDetector(Detector):
    name = "gas"

    def detect(self, unit: SourceUnit) -> List[Finding]:
        findings: List[Finding] = []
        for contract in get_contracts(unit):
            self._check_contract(contract, findings)
        return findings

    def _check_contract(self, contract: ContractDefinition, findings: List[Finding]) -> None:
        # Constants are inlined by the compiler, so reading them costs no SLOAD.
        storage = {
            variable.name for variable in get_state_variables(contract) if not variable.is_constant
        }
        for function in get_functions(contract):
            if function.body is None:
                continue
            self._check_loops(contract, function, findings)
            self._check_repeated_calls(contract, function, findings)
            self._check_storage_reads(contract, function, storage, findings)

        self._check_public_complex_types(contract, findings)

    # -- loops ---------------------------------------------------------------

    def _check_loops(
        self, contract: ContractDefinition, function: FunctionDefinition, findings: List[Finding]
    ) -> None:
        loops = find(function.body, lambda node: isinstance(node, (ForStatement, WhileStatement)))
        for loop in loops:
            if has_unbounded_iteration(loop):  # type: ignore[arg-type]
                findings.append(
                    make_finding(
                        "GAS_UNBOUNDED_LOOP",
                        Severity.LOW,
                        contract.name,
                        function_name(function),
                        loop.line,
                        "Unbounded loop detected. Consider adding limits or using pagination.",
                    )
                )
            if self._has_expensive_operations(loop):  # type: ignore[arg-type]
                findings.append(
                    make_finding(
                        "GAS_EXPENSIVE_LOOP",
                        Severity.LOW,
                        contract.name,
                        function_name(function),
                        loop.line,
                        "Expensive operations detected in loop. Consider optimization.",
                    )
                )

    def _has_expensive_operations(self, loop: Loop) -> bool:
        return contains(
            loop.body,
            lambda node: is_assignment(node) or self._is_external_call(node),
        )

    # -- repeated external calls --------------------------------------------

    def _check_repeated_calls(
        self, contract: ContractDefinition, function: FunctionDefinition, findings: List[Finding]
    ) -> None:
        counts = Counter(self._call_signature(call) for call in self._collect_external_calls(function.body))
        for signature, count in counts.items():
            if count > policy.REPEATED_CALL_THRESHOLD:
                findings.append(
                    make_finding(
                        "GAS_REPEATED_CALLS",
                        Severity.LOW,
                        contract.name,
                        function_name(function),
                        "multiple",
                        f"Function makes {count} calls to {signature}. Consider caching the result.",
                    )
                )

    def _collect_external_calls(self, body: AstNode) -> List[FunctionCall]:
        """External calls worth caching. Deliberately empty: no call is collected yet."""

        return []

    def _is_external_call(self, node: AstNode) -> bool:
        """Expensive external call inside a loop. Deliberately never matches yet."""

        return False

    def _call_signature(self, call: FunctionCall) -> str:
        return "external_call"

    # -- storage reads -------------------------------------------------------

    def _check_storage_reads(
        self,
        contract: ContractDefinition,
        function: FunctionDefinition,
        storage: Set[str],
        findings: List[Finding],
    ) -> None:
        for variable, count in storage_reads(function, storage).items():
            if count > policy.STORAGE_READ_THRESHOLD:
                findings.append(
                    make_finding(
                        "GAS_STORAGE_OPTIMIZATION",
                        Severity.LOW,
                        contract.name,
                        function_name(function),
                        "multiple",
                        f"Storage variable '{variable}' read {count} times. Consider caching in memory.",
                    )
                )

    # -- state variables -----------------------------------------------------

    def _check_public_complex_types(self, contract: ContractDefinition, findings: List[Finding]) -> None:
        for variable in get_state_variables(contract):
            category = variable.type_name.category
            if variable.visibility != "public" or category not in COMPLEX_TYPE_CATEGORIES:
                continue
            findings.append(
                make_finding(
                    "GAS_PUBLIC_COMPLEX_TYPE",
                    Severity.LOW,
                    contract.name,
                    STATE_VARIABLE_SCOPE,
                    variable.line,
                    f"Public {category} '{variable.name}' generates expensive getter. "
                    "Consider private with custom getter.",
                )
            )


def has_unbounded_iteration(loop: Loop) -> bool:
    if isinstance(loop, WhileStatement):
        return True
    if loop.condition is None:
        return False
    # Textual check on the rendered condition, e.g. `i < users.length`.
    text = render(loop.condition).lower()
    return policy.LOOP_LENGTH_TERM in text and not any(
        term in text for term in policy.LOOP_BOUND_TERMS
    )


def storage_reads(function: FunctionDefinition, storage: Set[str]) -> Dict[str, int]:
    """Count reads of state variables in ``function``, first-read order."""

    written = {id(target) for target in _assignment_targets(function.body)}
    counts: Dict[str, int] = {}
    for node in walk(function.body):
        if isinstance(node, Identifier) and node.name in storage and id(node) not in written:
            counts[node.name] = counts.get(node.name, 0) + 1
    return counts


def _assignment_targets(body: AstNode) -> List[Identifier]:
    targets: List[Identifier] = []
    for node in walk(body):
        if not isinstance(node, Assignment) or node.operator != "=":
            continue
        target = node.left
        while isinstance(target, (IndexAccess, MemberAccess)):
            target = target.base if isinstance(target, IndexAccess) else target.expression
        if isinstance(target, Identifier):
            targets.append(target)
    return targets
