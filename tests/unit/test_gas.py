from packages.detectors.gas import GasOptimizationDetector
from packages.schema.ast import FunctionCall
from packages.schema.models import Severity
from solidity_fixtures import (
    array,
    binop,
    build,
    call,
    contract,
    elementary,
    for_,
    function,
    ident,
    index,
    mapping,
    member,
    num,
    state_var,
    stmt,
    while_,
)


def _types(findings):
    return [(f.type, f.line) for f in findings]


def test_all_findings_are_low():
    unit = build(
        contract(
            "Airdrop",
            state_var("users", array(elementary("address")), "public"),
            function("loop", while_(ident("running"), stmt(binop("=", ident("x"), num(1))), line=4)),
        )
    )

    findings = GasOptimizationDetector().detect(unit)

    assert findings
    assert {f.severity for f in findings} == {Severity.LOW}


def test_while_loop_is_unbounded():
    unit = build(contract("C", function("spin", while_(ident("running"), stmt(ident("tick")), line=4))))

    assert _types(GasOptimizationDetector().detect(unit)) == [("GAS_UNBOUNDED_LOOP", 4)]


def test_for_loop_bound_by_length():
    by_length = for_(binop("<", ident("i"), member(ident("users"), "length")), stmt(ident("noop")), line=5)
    capped = for_(
        binop("<", ident("i"), call(member(ident("Math"), "min"), member(ident("users"), "length"), num(50))),
        stmt(ident("noop")),
        line=8,
    )
    constant = for_(binop("<", ident("i"), num(10)), stmt(ident("noop")), line=11)
    unit = build(contract("C", function("walk", by_length, capped, constant)))

    assert _types(GasOptimizationDetector().detect(unit)) == [("GAS_UNBOUNDED_LOOP", 5)]


def test_assignment_in_loop_is_expensive():
    body = stmt(binop("+=", index(ident("rewards"), ident("i")), num(1)))
    unit = build(contract("C", function("pay", for_(binop("<", ident("i"), num(10)), body, line=6))))

    assert _types(GasOptimizationDetector().detect(unit)) == [("GAS_EXPENSIVE_LOOP", 6)]


def test_nested_loops_are_collected():
    inner = while_(ident("more"), stmt(ident("noop")), line=7)
    outer = for_(binop("<", ident("i"), num(3)), inner, line=6)
    unit = build(contract("C", function("nest", outer)))

    assert _types(GasOptimizationDetector().detect(unit)) == [("GAS_UNBOUNDED_LOOP", 7)]


def test_external_calls_in_loops_and_repeats_are_not_reported():
    transfer = stmt(call(member(ident("token"), "transfer"), ident("to"), num(1)))
    balance = stmt(call(member(ident("token"), "balanceOf"), ident("me")))
    unit = build(contract("C", function("f", for_(binop("<", ident("i"), num(3)), transfer), balance, balance)))

    assert GasOptimizationDetector().detect(unit) == []


def test_repeated_calls_grouped_by_signature(monkeypatch):
    calls = [FunctionCall(), FunctionCall(), FunctionCall()]
    monkeypatch.setattr(GasOptimizationDetector, "_collect_external_calls", lambda self, body: calls)
    unit = build(contract("C", function("f", stmt(ident("noop")))))

    findings = GasOptimizationDetector().detect(unit)

    assert _types(findings) == [("GAS_REPEATED_CALLS", "multiple")]
    assert findings[0].description == "Function makes 3 calls to external_call. Consider caching the result."


def test_storage_read_more_than_twice():
    reads = [stmt(call(ident("emit_"), ident("total"))) for _ in range(3)]
    unit = build(contract("C", state_var("total"), function("report", *reads)))

    findings = GasOptimizationDetector().detect(unit)

    assert _types(findings) == [("GAS_STORAGE_OPTIMIZATION", "multiple")]
    assert "'total' read 3 times" in findings[0].description


def test_assignment_targets_are_not_reads():
    body = [
        stmt(binop("=", ident("total"), binop("+", ident("total"), num(1)))),
        stmt(binop("=", ident("total"), binop("+", ident("total"), num(2)))),
        stmt(binop("=", index(ident("total"), num(0)), num(3))),
    ]
    local_only = [stmt(call(ident("log"), ident("amount"))) for _ in range(4)]
    unit = build(contract("C", state_var("total"), function("bump", *body), function("log4", *local_only)))

    assert GasOptimizationDetector().detect(unit) == []


def test_constant_reads_are_not_storage_reads():
    reads = [stmt(call(ident("emit_"), ident("FEE"))) for _ in range(3)]
    unit = build(contract("C", state_var("FEE", constant=True), function("report", *reads)))

    assert GasOptimizationDetector().detect(unit) == []


def test_public_complex_state_variables():
    unit = build(
        contract(
            "Bank",
            state_var("balances", mapping(elementary("address"), elementary("uint256")), "public", line=3),
            state_var("holders", array(elementary("address")), "private", line=4),
            state_var("supply", elementary("uint256"), "public", line=5),
        )
    )

    findings = GasOptimizationDetector().detect(unit)

    assert _types(findings) == [("GAS_PUBLIC_COMPLEX_TYPE", 3)]
    assert findings[0].function == "state variable"
    assert "'balances'" in findings[0].description
    assert "mapping" in findings[0].description
