"""Tests for the rich console report."""

from rich.console import Console

from evidence_checker.domain.models.gap import Gap, GapTarget, GapType
from evidence_checker.domain.services.gate_evaluator import GateEvaluator
from evidence_checker.infrastructure.reporting.console_report import ConsoleReport


def make_report(*gaps):
    return GateEvaluator().evaluate(list(gaps))


def test_passing_report():
    report = ConsoleReport(Console(record=True, width=120))

    report.display(make_report(), "case-housing", "ab" * 32)
    text = report.export_text()

    assert "All gates pass" in text
    assert "case-housing" in text
    assert "Audit chain: " + "ab" * 32 in text


def test_gaps_grouped_with_remediation():
    """Test each gap type is listed with its targets and remediation."""
    report = ConsoleReport(Console(record=True, width=160))
    gaps = [
        Gap.create(GapType.CONTENT_HASH_MISMATCH, "S010 payload altered", GapTarget(source_id="S010", file="raw.html")),
        Gap.create(GapType.CLAIM_NEEDS_REVIEW, "Check wording", GapTarget(source_id="S002", line=5)),
    ]

    report.display(make_report(*gaps))
    text = report.export_text()

    assert "1 blocking gap(s)" in text
    assert "content-hash-mismatch (1)" in text
    assert "S010 raw.html" in text
    assert "Remediation:" in text
    assert "Re-capture the source" in text
    assert "claim-needs-review (1)" in text
    assert "fixed" not in text.lower()
