"""Domain model for gate evaluation results."""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .gap import Gap


@dataclass
class GateStatus:
    """Outcome for a single gate."""

    gate: str
    passed: bool
    blocking: int = 0
    total: int = 0


@dataclass
class GateReport:
    """Result of reducing a gap set to a termination decision."""

    passed: bool
    gates: List[GateStatus]
    gaps: List[Gap]
    counts_by_severity: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        """Check the decision agrees with the gap set."""
        blocking = sum(1 for gap in self.gaps if gap.is_blocking)
        if self.passed and blocking:
            raise ValueError("A report with blocking gaps cannot pass")

    @property
    def blocking_count(self) -> int:
        return self.counts_by_severity.get("blocking", 0)

    @property
    def exit_code(self) -> int:
        """Process exit code for the gate-check invocation."""
        return 0 if self.passed else 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the gaps.json layout."""
        return {
            "passed": self.passed,
            "stats": {
                "total": len(self.gaps),
                "by_severity": dict(self.counts_by_severity),
            },
            "gates": {
                status.gate: {
                    "passed": status.passed,
                    "blocking": status.blocking,
                    "total": status.total,
                }
                for status in self.gates
            },
            "gaps": [gap.model_dump(mode="json") for gap in self.gaps],
        }
