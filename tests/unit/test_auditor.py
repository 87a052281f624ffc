import pytest

from packages.auditor import engine
from packages.auditor.engine import Auditor, audit, build_detectors
from packages.config.settings import ConfigManager
from packages.detectors.overflow import OverflowDetector
from packages.schema.models import Severity
from solidity_fixtures import (
    binop,
    build,
    call,
    contract,
    elementary,
    function,
    ident,
    mapping,
    member,
    num,
    pragma,
    state_var,
    stmt,
    while_,
)


@pytest.fixture
def unit():
    return build(
        pragma("^0.6.0"),
        contract(
            "Bank",
            state_var("balances", mapping(elementary("address"), elementary("uint256")), "public", line=3),
            function(
                "withdraw",
                stmt(call(member(member(ident("msg"), "sender"), "call"), num(0)), line=6),
                stmt(binop("-=", ident("balance"), ident("amount"), line=7), line=7),
                line=5,
            ),
            function("drain", while_(ident("open"), stmt(ident("noop")), line=11), line=10),
        ),
    )


def _types(result):
    return [f.type for f in result.vulnerabilities]


def test_findings_follow_registration_order(unit):
    result = Auditor(unit).run()

    assert _types(result) == [
        "REENTRANCY",
        "INTEGER_OVERFLOW",
        "GAS_UNBOUNDED_LOOP",
        "GAS_PUBLIC_COMPLEX_TYPE",
        "ACCESS_CONTROL_MISSING",
    ]
    assert result.summary == {"high": 2, "medium": 1, "low": 2, "info": 0}
    assert result.diagnostics == []


def test_summary_skips_filtered_severities_but_keeps_findings(unit):
    config = ConfigManager().with_overrides(severities=["high", "medium"])

    result = Auditor(unit, config).run()

    assert len(result.vulnerabilities) == 5
    assert result.summary == {"high": 2, "medium": 1, "low": 0, "info": 0}

    visible = result.visible(config)
    assert {f.severity for f in visible.vulnerabilities} == {Severity.HIGH, Severity.MEDIUM}
    for severity in Severity:
        shown = sum(1 for f in visible.vulnerabilities if f.severity is severity)
        assert visible.summary[severity.key] == shown


def test_disabling_detectors_removes_exactly_their_findings(unit):
    full = Auditor(unit).run().vulnerabilities
    gas_only = audit(unit, ConfigManager().with_overrides(detectors=["gas"])).vulnerabilities
    without_gas = audit(unit, ConfigManager().with_overrides(detectors=["reentrancy", "overflow", "access"])).vulnerabilities

    assert [f for f in full if f not in gas_only] == without_gas
    assert all(f.type.startswith("GAS_") for f in gas_only)


def test_build_detectors_honours_configuration():
    config = ConfigManager({"detectors": {"overflow": False, "access": False}})

    assert [d.name for d in build_detectors(config)] == ["reentrancy", "gas"]
    assert [d.name for d in build_detectors()] == ["reentrancy", "overflow", "gas", "access"]


def test_detector_fault_is_isolated(unit, monkeypatch):
    def broken(self, source_unit):
        raise KeyError("unexpected node")

    monkeypatch.setattr(OverflowDetector, "detect", broken)

    result = Auditor(unit).run()

    assert "INTEGER_OVERFLOW" not in _types(result)
    assert "REENTRANCY" in _types(result)
    assert "ACCESS_CONTROL_MISSING" in _types(result)
    assert [(d.detector, d.message) for d in result.diagnostics] == [("overflow", "KeyError: 'unexpected node'")]


def test_parallel_run_matches_sequential(unit):
    sequential = Auditor(unit).run()
    parallel = Auditor(unit, max_workers=4).run()

    assert parallel == sequential


def test_runs_are_independent(unit):
    auditor = Auditor(unit)

    assert auditor.run() == auditor.run()


def test_run_detector_returns_findings(unit):
    outcome = engine.run_detector(OverflowDetector(), unit)

    assert [f.line for f in outcome] == [7]
