"""Reduction of a gap set to a termination decision."""

from collections import Counter
from typing import List

from ..models.gap import Gap, Gate, Severity
from ..models.gate_result import GateReport, GateStatus


class GateEvaluator:
    """Pure function of the gap set: passes iff no gap is blocking."""

    def evaluate(self, gaps: List[Gap]) -> GateReport:
        """Evaluate all nine gates.

        Args:
            gaps: Gap set for the run

        Returns:
            Gate report with per-gate and overall results
        """
        statuses = []
        for gate in Gate:
            in_gate = [gap for gap in gaps if gap.gate == gate]
            blocking = sum(1 for gap in in_gate if gap.is_blocking)
            statuses.append(GateStatus(
                gate=gate.value,
                passed=blocking == 0,
                blocking=blocking,
                total=len(in_gate),
            ))

        severity_counts = Counter(gap.severity.value for gap in gaps)
        counts = {severity.value: severity_counts.get(severity.value, 0) for severity in Severity}
        return GateReport(
            passed=all(status.passed for status in statuses),
            gates=statuses,
            gaps=list(gaps),
            counts_by_severity=counts,
        )
