from packages.detectors.reentrancy import ReentrancyDetector
from packages.schema.models import Severity
from packages.solidity_adapter.parse import parse_source
from solidity_fixtures import binop, build, call, contract, function, ident, if_, member, num, stmt


def _external_call():
    return stmt(call(member(ident("external"), "call"), num(0)))


def _clear_balance():
    return stmt(binop("=", ident("balance"), num(0)))


def test_state_change_after_external_call_is_reported():
    unit = build(contract("Bank", function("pay", _external_call(), _clear_balance(), line=12)))

    findings = ReentrancyDetector().detect(unit)

    assert len(findings) == 1
    (finding,) = findings
    assert finding.type == "REENTRANCY"
    assert finding.severity is Severity.HIGH
    assert finding.contract == "Bank"
    assert finding.function == "pay"
    assert finding.line == 12
    assert "state changes after external call" in finding.description


def test_one_finding_per_function():
    unit = build(contract("Bank", function("pay", _external_call(), _clear_balance(), _clear_balance())))

    assert len(ReentrancyDetector().detect(unit)) == 1


def test_write_before_call_is_safe():
    unit = build(contract("Bank", function("pay", _clear_balance(), _external_call())))

    assert ReentrancyDetector().detect(unit) == []


def test_read_only_functions_are_skipped():
    unit = build(contract("Bank", function("peek", _external_call(), _clear_balance(), mutability="view")))

    assert ReentrancyDetector().detect(unit) == []


def test_mutating_call_after_external_call_counts_as_state_change():
    mint = stmt(call(member(ident("token"), "mint"), ident("to"), num(1)))
    unit = build(contract("Bank", function("pay", _external_call(), mint)))

    assert [f.type for f in ReentrancyDetector().detect(unit)] == ["REENTRANCY"]


def test_second_transfer_is_another_external_call_not_a_write():
    first = stmt(call(member(ident("a"), "send"), num(1)))
    second = stmt(call(member(ident("b"), "transfer"), num(2)))
    unit = build(contract("Bank", function("pay", first, second)))

    assert ReentrancyDetector().detect(unit) == []


def test_calls_nested_in_branches_are_not_reordered():
    guarded_call = if_(ident("flag"), stmt(call(member(ident("external"), "call"), num(0))))
    unit = build(contract("Bank", function("pay", guarded_call, _clear_balance())))

    assert ReentrancyDetector().detect(unit) == []


def test_detect_is_idempotent():
    unit = build(
        contract("A", function("pay", _external_call(), _clear_balance())),
        contract("B", function("pay", _external_call(), _clear_balance())),
    )
    detector = ReentrancyDetector()

    first = detector.detect(unit)
    second = detector.detect(unit)

    assert first == second
    assert [f.contract for f in first] == ["A", "B"]


def test_call_with_value_option_from_source():
    source = """pragma solidity ^0.6.2;
contract Bank {
    mapping(address => uint) balances;

    function withdraw() public {
        (bool ok, ) = msg.sender.call{value: balances[msg.sender]}("");
        require(ok);
        balances[msg.sender] = 0;
    }

    function withdrawSafely() public {
        uint amount = balances[msg.sender];
        balances[msg.sender] = 0;
        (bool ok, ) = msg.sender.call{value: amount}("");
        require(ok);
    }
}
"""
    findings = ReentrancyDetector().detect(parse_source(source))

    assert [(f.function, f.line) for f in findings] == [("withdraw", 5)]
