import pytest

from packages.detectors.overflow import OverflowDetector, needs_overflow_checks
from packages.schema.models import Severity
from solidity_fixtures import (
    binop,
    build,
    contract,
    for_,
    function,
    ident,
    import_,
    member,
    num,
    pragma,
    ret,
    stmt,
    using_for,
)


def _adder():
    return function("add", ret(binop("+", ident("a"), ident("b"), line=6)))


@pytest.mark.parametrize(
    "version, expected",
    [
        ("0.8.4", False),
        ("^0.8.0", False),
        ("1.0.0", False),
        ("^0.7.6", True),
        (">=0.6.0 <0.9.0", True),
        ("^0.8", True),
        (None, True),
    ],
)
def test_version_gate(version, expected):
    assert needs_overflow_checks(version) is expected


def test_checked_arithmetic_compiler_is_exempt():
    unit = build(pragma("0.8.4"), contract("Math", _adder()))

    assert OverflowDetector().detect(unit) == []


def test_compound_assignment_on_old_compiler():
    unit = build(
        pragma("0.6.2"),
        contract("Ledger", function("credit", stmt(binop("+=", ident("total"), ident("amount"), line=7)))),
    )

    findings = OverflowDetector().detect(unit)

    assert len(findings) == 1
    (finding,) = findings
    assert finding.type == "INTEGER_OVERFLOW"
    assert finding.severity is Severity.MEDIUM
    assert finding.function == "credit"
    assert finding.line == 7
    assert "+=" in finding.description


def test_missing_pragma_is_treated_as_unsafe():
    unit = build(contract("Math", _adder()))

    assert [f.line for f in OverflowDetector().detect(unit)] == [6]


def test_safe_math_import_skips_every_contract():
    unit = build(pragma("^0.5.0"), import_("@openzeppelin/contracts/math/SafeMath.sol"), contract("A", _adder()), contract("B", _adder()))

    assert OverflowDetector().detect(unit) == []


def test_using_safe_math_skips_only_that_contract():
    unit = build(pragma("^0.5.0"), contract("Safe", using_for("SafeMath"), _adder()), contract("Raw", _adder()))

    assert [f.contract for f in OverflowDetector().detect(unit)] == ["Raw"]


def test_only_arithmetic_operators_are_reported():
    body = [
        stmt(binop("=", ident("x"), binop("*", ident("a"), ident("b"), line=3), line=3)),
        stmt(binop("/=", ident("x"), num(2), line=4)),
        ret(binop("<", ident("x"), ident("y"), line=5)),
        for_(binop("<", ident("i"), member(ident("items"), "length")), stmt(binop("-=", ident("left"), num(1), line=9)), line=8),
    ]
    unit = build(pragma("0.4.24"), contract("Calc", function("run", *body)))

    findings = OverflowDetector().detect(unit)

    assert [(f.line, f.description.split(" in ")[1].split(" ")[0]) for f in findings] == [(3, "*"), (9, "-=")]


def test_functions_without_body_are_ignored():
    unit = build(pragma("0.4.24"), contract("I", function("f", has_body=False)))

    assert OverflowDetector().detect(unit) == []
