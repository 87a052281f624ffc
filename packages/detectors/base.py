"""Shared detector plumbing: the detector contract and predicates over AST nodes."""
from __future__ import annotations

from typing import Iterable, List

from packages.detectors import policy
from packages.schema.ast import (
    STATEMENT_KINDS,
    Assignment,
    AstNode,
    FunctionCall,
    FunctionDefinition,
    SourceUnit,
)
from packages.schema.models import Finding, Line, Severity


class Detector:
    """Stateless analysis over one source unit.

    Subclasses implement ``detect`` as a pure function of the unit: findings
    are collected into a list created per call and handed down to helpers,
    so repeated or concurrent calls never share state.
    """

    name: str = ""

    def detect(self, unit: SourceUnit) -> List[Finding]:
        raise NotImplementedError


def make_finding(
    type: str,
    severity: Severity,
    contract: str,
    function: str,
    line: Line,
    description: str,
) -> Finding:
    return Finding(
        type=type,
        severity=severity,
        contract=contract,
        function=function,
        line=line,
        description=description,
    )


def is_read_only(function: FunctionDefinition) -> bool:
    return function.mutability in policy.READ_ONLY_MUTABILITY


def is_call_to(node: AstNode, names: Iterable[str]) -> bool:
    if not isinstance(node, FunctionCall):
        return False
    identifiers = node.identifiers
    return any(name in identifiers for name in names)


def is_external_call(node: AstNode) -> bool:
    return is_call_to(node, policy.EXTERNAL_CALL_NAMES)


def is_assignment(node: AstNode) -> bool:
    return isinstance(node, Assignment)


def is_statement(node: AstNode) -> bool:
    return isinstance(node, STATEMENT_KINDS)


def outside_nested_statements(node: AstNode) -> bool:
    """Walker predicate: stay inside a statement's own expressions."""

    return not is_statement(node)


def function_name(function: FunctionDefinition) -> str:
    if function.name:
        return function.name
    if function.is_receive:
        return "receive"
    if function.is_fallback:
        return "fallback"
    return "<anonymous>"
