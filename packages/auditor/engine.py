"""Audit orchestrator: runs the enabled detectors and assembles the report."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple, Type, Union

from packages.config.settings import ConfigManager
from packages.detectors.access import AccessControlDetector
from packages.detectors.base import Detector
from packages.detectors.gas import GasOptimizationDetector
from packages.detectors.overflow import OverflowDetector
from packages.detectors.reentrancy import ReentrancyDetector
from packages.schema.ast import SourceUnit
from packages.schema.models import AuditResult, Diagnostic, Finding

logger = logging.getLogger(__name__)

# Registration order is report order.
DETECTORS: Tuple[Type[Detector], ...] = (
    ReentrancyDetector,
    OverflowDetector,
    GasOptimizationDetector,
    AccessControlDetector,
)

Outcome = Union[List[Finding], Diagnostic]


def build_detectors(config: Optional[ConfigManager] = None) -> List[Detector]:
    """Instantiate every registered detector the configuration enables."""

    detectors: List[Detector] = []
    for detector_cls in DETECTORS:
        if config is None or config.is_detector_enabled(detector_cls.name):
            detectors.append(detector_cls())
        else:
            logger.debug("Detector '%s' disabled by configuration", detector_cls.name)
    return detectors


class Auditor:
    def __init__(
        self,
        unit: SourceUnit,
        config: Optional[ConfigManager] = None,
        max_workers: int = 1,
    ) -> None:
        self.unit = unit
        self.config = config
        self.max_workers = max(1, max_workers)
        self.detectors = build_detectors(config)

    def run(self) -> AuditResult:
        result = AuditResult()
        for outcome in self._execute():
            if isinstance(outcome, Diagnostic):
                result.diagnostics.append(outcome)
                continue
            result.vulnerabilities.extend(outcome)
            for finding in outcome:
                # Filtered findings stay in the list but are not counted.
                if self.config is None or self.config.should_show_severity(finding.severity.value):
                    result.summary[finding.severity.key] += 1

        logger.info(
            "Audit finished: %s finding(s) from %s detector(s), %s diagnostic(s)",
            len(result.vulnerabilities),
            len(self.detectors),
            len(result.diagnostics),
        )
        return result

    def _execute(self) -> List[Outcome]:
        if self.max_workers == 1 or len(self.detectors) < 2:
            return [run_detector(detector, self.unit) for detector in self.detectors]
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(lambda detector: run_detector(detector, self.unit), self.detectors))


def run_detector(detector: Detector, unit: SourceUnit) -> Outcome:
    """Run one detector; a fault becomes a diagnostic instead of aborting the audit."""

    try:
        findings = detector.detect(unit)
    except Exception as exc:
        logger.warning("Detector '%s' failed: %s", detector.name, exc, exc_info=True)
        return Diagnostic(detector=detector.name, message=f"{type(exc).__name__}: {exc}")
    logger.debug("Detector '%s' reported %s finding(s)", detector.name, len(findings))
    return findings


def audit(
    unit: SourceUnit,
    config: Optional[ConfigManager] = None,
    max_workers: int = 1,
) -> AuditResult:
    return Auditor(unit, config, max_workers=max_workers).run()


__all__ = ["Auditor", "DETECTORS", "audit", "build_detectors", "run_detector"]
