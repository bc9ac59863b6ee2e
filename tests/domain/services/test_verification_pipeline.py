"""End-to-end tests for the verification pipeline over an on-disk case."""

import json

import pytest

from evidence_checker.domain.models.audit import LedgerEventType
from evidence_checker.domain.models.citation import BindingStatus
from evidence_checker.domain.models.claim import ClaimStatus, VerificationMethod
from evidence_checker.domain.models.gap import GapType

from conftest import CAPTURED_AT, HOUSING_HTML, SAMPLE_NARRATIVE, StubJudge

HEATING_EVIDENCE = b"The survey found households paid more for heating during the winter.\n"
HEATING_NARRATIVE = "The survey found that households in Springfield paid more for heating [S001].\n"


def blocking_types(result):
    return [gap.type for gap in result.report.gaps if gap.is_blocking]


def read_control(workspace, name):
    return json.loads((workspace.control_dir / name).read_text(encoding="utf-8"))


@pytest.mark.asyncio
async def test_sample_case_passes(sample_case, make_pipeline):
    """Test a fully captured and supported case passes every gate."""
    result = await make_pipeline(sample_case).run()

    assert result.passed
    assert result.report.gaps == []
    assert {record.status for record in result.claim_records} == {ClaimStatus.VERIFIED}
    assert len(result.claim_records) == 3
    assert [claim.id for claim in result.registered_claims] == ["CL0001", "CL0002", "CL0003"]

    stored = read_control(sample_case, "gaps.json")
    assert stored["passed"] is True
    assert stored["chain_hash"] == result.chain.chain_hash
    digest = read_control(sample_case, "digest.json")
    assert digest["can_terminate"] is True
    assert digest["iteration"] == 1


@pytest.mark.asyncio
async def test_tampered_payload_is_single_blocking_gap(sample_case, make_pipeline):
    """Test a one-byte payload edit yields exactly one blocking hash mismatch."""
    payload = sample_case.evidence.evidence_dir("S001") / "raw.html"
    payload.write_bytes(HOUSING_HTML.replace(b"52%", b"53%"))

    result = await make_pipeline(sample_case).run()

    assert not result.passed
    assert blocking_types(result) == [GapType.CONTENT_HASH_MISMATCH]
    gap = result.report.gaps[0]
    assert gap.target.source_id == "S001"
    assert gap.target.file == "raw.html"
    assert all(record.source_id != "S001" for record in result.claim_records)
    assert all(binding.source_id != "S001" for binding in result.bindings)


@pytest.mark.asyncio
async def test_orphan_citation(sample_case, write_narrative, make_pipeline):
    """Test citing an unregistered source is a blocking orphan citation."""
    write_narrative(SAMPLE_NARRATIVE.replace(
        "## Sources",
        "Vacancy rates fell in the downtown core [S099].\n\n## Sources",
    ))

    result = await make_pipeline(sample_case).run()

    assert blocking_types(result) == [GapType.ORPHAN_CITATION]
    orphan = [binding for binding in result.bindings if binding.source_id == "S099"]
    assert len(orphan) == 1
    assert orphan[0].status == BindingStatus.ORPHAN
    assert orphan[0].urls == []


@pytest.mark.asyncio
async def test_wrong_statistic_fails_without_judge(sample_case, write_narrative, make_pipeline):
    """Test 72% against evidence saying 52% fails heuristically."""
    judge = StubJudge()
    write_narrative(SAMPLE_NARRATIVE.replace("52%", "72%"))

    result = await make_pipeline(sample_case, judge=judge).run()

    assert GapType.CLAIM_NOT_FOUND in blocking_types(result)
    assert [g.type for g in result.report.gaps if g.type == GapType.CLAIM_NOT_FOUND] == [GapType.CLAIM_NOT_FOUND]
    assert judge.requests == []


@pytest.mark.asyncio
async def test_repeated_runs_are_idempotent(sample_case, make_pipeline):
    """Test two runs over unchanged state give identical gaps and chain hash."""
    payload = sample_case.evidence.evidence_dir("S002") / "text.md"
    payload.write_bytes(b"Tampered assistance figures.\n")

    first = await make_pipeline(sample_case).run()
    second = await make_pipeline(sample_case).run()

    assert [gap.gap_id for gap in first.report.gaps] == [gap.gap_id for gap in second.report.gaps]
    assert first.chain.chain_hash == second.chain.chain_hash
    assert second.iteration == 2
    assert not second.passed


@pytest.mark.asyncio
async def test_semantic_verdict_reused_across_runs(workspace, write_narrative, make_pipeline):
    """Test an ambiguous claim is judged once and reused while evidence is unchanged."""
    workspace.capture(
        "https://example.org/reports/heating",
        {"text.md": HEATING_EVIDENCE},
        title="Heating survey",
        captured_at=CAPTURED_AT,
    )
    write_narrative(HEATING_NARRATIVE)
    judge = StubJudge()

    first = await make_pipeline(workspace, judge=judge).run()
    second = await make_pipeline(workspace, judge=judge).run()

    assert len(judge.requests) == 1
    assert first.claim_records[0].method == VerificationMethod.SEMANTIC
    assert second.claim_records[0].method == VerificationMethod.CACHED
    assert second.claim_records[0].status == first.claim_records[0].status
    assert second.chain.chain_hash == first.chain.chain_hash
    assert second.passed


@pytest.mark.asyncio
async def test_ambiguous_claim_without_judge_needs_review(workspace, write_narrative, make_pipeline):
    workspace.capture(
        "https://example.org/reports/heating",
        {"text.md": HEATING_EVIDENCE},
        captured_at=CAPTURED_AT,
    )
    write_narrative(HEATING_NARRATIVE)

    result = await make_pipeline(workspace).run()

    assert [gap.type for gap in result.report.gaps] == [GapType.CLAIM_NEEDS_REVIEW]
    assert result.passed


@pytest.mark.asyncio
async def test_missing_narrative(workspace, make_pipeline):
    result = await make_pipeline(workspace).run()

    assert blocking_types(result) == [GapType.NARRATIVE_MISSING]


@pytest.mark.asyncio
async def test_unmatched_ledger_lock(sample_case, make_pipeline):
    """Test a lock that was never released fails the audit gate."""
    sample_case.ledger.append(LedgerEventType.FILE_LOCK, "sources.json")

    result = await make_pipeline(sample_case).run()

    assert blocking_types(result) == [GapType.UNBALANCED_LOCK]


@pytest.mark.asyncio
async def test_hand_written_metadata_is_blocking(sample_case, make_pipeline):
    """Test stub fields in metadata are caught even when the signature still verifies."""
    path = sample_case.evidence.evidence_dir("S002") / "metadata.json"
    metadata = json.loads(path.read_text(encoding="utf-8"))
    metadata["summary"] = "Study on rental assistance"
    metadata["credibility"] = "high"
    path.write_text(json.dumps(metadata), encoding="utf-8")

    result = await make_pipeline(sample_case).run()

    assert blocking_types(result) == [GapType.STUB_EVIDENCE]
    assert all(record.source_id != "S002" for record in result.claim_records)


@pytest.mark.asyncio
async def test_appended_artifact_keeps_case_passing(sample_case, make_pipeline):
    """Test a summary added after capture is neither checked as text nor read as evidence."""
    sample_case.evidence.append_derived("S001", "summary", "summary.md", b"Short summary", "raw_html")

    result = await make_pipeline(sample_case).run()

    assert result.passed
    assert result.report.gaps == []
    assert {record.status for record in result.claim_records} == {ClaimStatus.VERIFIED}


@pytest.mark.asyncio
async def test_malformed_metadata_sections_are_blocking(sample_case, make_pipeline):
    """Test a files list instead of an object is reported, not raised."""
    path = sample_case.evidence.evidence_dir("S002") / "metadata.json"
    metadata = json.loads(path.read_text(encoding="utf-8"))
    metadata["files"] = [{"path": "text.md", "hash": "sha256:00"}]
    path.write_text(json.dumps(metadata), encoding="utf-8")

    result = await make_pipeline(sample_case).run()

    assert blocking_types(result) == [GapType.MISSING_METADATA]
    assert [gap.target.source_id for gap in result.report.gaps if gap.is_blocking] == ["S002"]
    assert read_control(sample_case, "gaps.json")["passed"] is False


@pytest.mark.asyncio
async def test_altered_audit_chain_is_detected(sample_case, make_pipeline):
    """Test editing the stored chain between runs is reported."""
    await make_pipeline(sample_case).run()
    path = sample_case.control_dir / "audit-chain.json"
    stored = json.loads(path.read_text(encoding="utf-8"))
    stored["entries"][0]["output_hash"] = "0" * 64
    path.write_text(json.dumps(stored), encoding="utf-8")

    result = await make_pipeline(sample_case).run()

    assert blocking_types(result) == [GapType.AUDIT_CHAIN_BROKEN]


@pytest.mark.asyncio
async def test_task_gap_files_are_merged(sample_case, make_pipeline):
    task_dir = sample_case.control_dir / "gaps.d"
    task_dir.mkdir(parents=True)
    (task_dir / "coverage.json").write_text(
        json.dumps({"gaps": [{"type": "coverage-incomplete", "message": "Landlord side not covered"}]}),
        encoding="utf-8",
    )
    (task_dir / "broken.json").write_text("{not json", encoding="utf-8")

    result = await make_pipeline(sample_case).run()

    assert blocking_types(result) == [GapType.STATE_INCONSISTENT]
    assert GapType.COVERAGE_INCOMPLETE in [gap.type for gap in result.report.gaps]


@pytest.mark.asyncio
async def test_evaluate_stored_and_audit(sample_case, make_pipeline):
    """Test gate re-evaluation and audit over what a run stored."""
    pipeline = make_pipeline(sample_case)
    assert pipeline.evaluate_stored() is None
    assert pipeline.audit().chain_problems == ["no audit chain stored; run a check first"]

    await pipeline.run()
    report = pipeline.evaluate_stored()
    audit = pipeline.audit()

    assert report.passed
    assert audit.passed
    assert audit.steps == 7
    assert audit.to_dict()["chain_hash"] == read_control(sample_case, "gaps.json")["chain_hash"]
