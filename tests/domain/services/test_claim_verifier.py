"""Tests for tiered claim verification."""

import pytest

from evidence_checker.domain.models.claim import ClaimStatus, ExtractedClaim, VerificationMethod
from evidence_checker.domain.models.evidence import EvidenceFile, EvidenceRecord
from evidence_checker.domain.models.gap import GapType
from evidence_checker.domain.ports.semantic_judge import SemanticVerdict
from evidence_checker.domain.services.claim_verifier import ClaimVerifier, claim_gaps, find_supporting_quote
from evidence_checker.domain.services.statistics import extract_statistics

from conftest import StubJudge

HEATING_EVIDENCE = "The survey found households paid more for heating during the winter."
HEATING_CLAIM = "The survey found that households in Springfield paid more for heating"


def make_claim(text: str, source_id: str = "S001") -> ExtractedClaim:
    return ExtractedClaim(text=text, source_id=source_id, line=3, statistics=extract_statistics(text))


@pytest.fixture
def record() -> EvidenceRecord:
    return EvidenceRecord(
        source_id="S001",
        url="https://example.org/reports/heating",
        title="Heating survey",
        files={"raw_md": EvidenceFile(path="raw.md", hash="sha256:" + "a" * 64)},
    )


@pytest.mark.asyncio
async def test_supported_claim_passes_heuristically(record):
    """Test a claim whose words and numbers appear in evidence."""
    evidence = "The annual survey found that 52% of tenants paid more rent than a year earlier."
    verifier = ClaimVerifier()

    result = await verifier.verify(make_claim("The annual survey found that 52% of tenants paid more rent"), record, evidence)

    assert result.status == ClaimStatus.VERIFIED
    assert result.method == VerificationMethod.HEURISTIC
    assert result.confidence == 1.0
    assert result.supporting_quote == evidence
    assert result.evidence_hash == record.evidence_hash
    assert claim_gaps(result) == []


@pytest.mark.asyncio
async def test_wrong_percentage_is_not_found_without_escalation(record):
    """Test 52% against evidence saying 72% fails before semantic judgment."""
    evidence = "The annual survey found that 72% of tenants paid more rent than a year earlier."
    judge = StubJudge()
    verifier = ClaimVerifier(judge=judge)

    result = await verifier.verify(make_claim("The annual survey found that 52% of tenants paid more rent"), record, evidence)

    assert result.status == ClaimStatus.NOT_FOUND
    assert result.confidence < verifier.thresholds.fail_threshold
    assert judge.requests == []
    gaps = claim_gaps(result)
    assert [gap.type for gap in gaps] == [GapType.CLAIM_NOT_FOUND]
    assert gaps[0].is_blocking
    assert "52%" in gaps[0].message


@pytest.mark.asyncio
async def test_near_number_passes_with_note(record):
    """Test a number within tolerance is verified but noted."""
    verifier = ClaimVerifier()

    result = await verifier.verify(
        make_claim("Revenue reached 100 million last year"),
        record,
        "Revenue reached 100.5 million last year, the company said.",
    )

    assert result.status == ClaimStatus.VERIFIED
    assert result.confidence == 0.95
    assert any("approximately" in note for note in result.counter_evidence)


@pytest.mark.asyncio
async def test_ambiguous_claim_escalates_to_judge(record):
    """Test the middle band is decided by the semantic judge."""
    judge = StubJudge(SemanticVerdict(supported=True, confidence=0.95, supporting_quote=HEATING_EVIDENCE))
    verifier = ClaimVerifier(judge=judge)
    claim = make_claim(HEATING_CLAIM)

    assert verifier.assess(claim, HEATING_EVIDENCE).confidence == 0.7

    result = await verifier.verify(claim, record, HEATING_EVIDENCE)

    assert result.status == ClaimStatus.VERIFIED
    assert result.method == VerificationMethod.SEMANTIC
    assert result.supporting_quote == HEATING_EVIDENCE
    assert len(judge.requests) == 1
    prompt = judge.requests[0].prompt
    assert HEATING_CLAIM in prompt
    assert "52% is not 72%" in prompt
    assert "https://example.org/reports/heating" in prompt


@pytest.mark.asyncio
async def test_paraphrased_quote_is_not_kept(record):
    """Test a judge quote that is not verbatim falls back to the heuristic quote."""
    judge = StubJudge(SemanticVerdict(supported=True, confidence=0.9, supporting_quote="households paid extra"))
    verifier = ClaimVerifier(judge=judge)

    result = await verifier.verify(make_claim(HEATING_CLAIM), record, HEATING_EVIDENCE)

    assert result.supporting_quote == HEATING_EVIDENCE


@pytest.mark.asyncio
async def test_contradicting_verdict(record):
    """Test a contradiction from the judge is blocking."""
    judge = StubJudge(SemanticVerdict(
        supported=False, contradicted=True, confidence=0.9, unsupported_aspects=["households paid less"],
    ))
    verifier = ClaimVerifier(judge=judge)

    result = await verifier.verify(make_claim(HEATING_CLAIM), record, HEATING_EVIDENCE)

    assert result.status == ClaimStatus.CONTRADICTED
    assert result.counter_evidence == ["households paid less"]
    gaps = claim_gaps(result)
    assert [gap.type for gap in gaps] == [GapType.CLAIM_CONTRADICTED]
    assert gaps[0].is_blocking


@pytest.mark.asyncio
async def test_low_confidence_verdict_needs_review(record):
    """Test an unsure judge leaves the claim for human review."""
    judge = StubJudge(SemanticVerdict(supported=True, confidence=0.6))
    verifier = ClaimVerifier(judge=judge)

    result = await verifier.verify(make_claim(HEATING_CLAIM), record, HEATING_EVIDENCE)

    assert result.status == ClaimStatus.NEEDS_REVIEW
    assert [gap.type for gap in claim_gaps(result)] == [GapType.CLAIM_NEEDS_REVIEW]


@pytest.mark.asyncio
async def test_unavailable_judge_means_review(record):
    """Test escalation without a judge degrades to needs-review."""
    result = await ClaimVerifier(judge=StubJudge(available=False)).verify(
        make_claim(HEATING_CLAIM), record, HEATING_EVIDENCE
    )
    no_judge = await ClaimVerifier().verify(make_claim(HEATING_CLAIM), record, HEATING_EVIDENCE)

    assert result.status == ClaimStatus.NEEDS_REVIEW
    assert no_judge.status == ClaimStatus.NEEDS_REVIEW
    assert "semantic judgment unavailable" in no_judge.counter_evidence


@pytest.mark.asyncio
async def test_judge_failure_means_review(record, caplog):
    """Test a failing judge is logged and the claim is left for review."""
    judge = StubJudge(error=RuntimeError("rate limited"))
    verifier = ClaimVerifier(judge=judge)

    result = await verifier.verify(make_claim(HEATING_CLAIM), record, HEATING_EVIDENCE)

    assert result.status == ClaimStatus.NEEDS_REVIEW
    assert result.method == VerificationMethod.HEURISTIC
    assert any("rate limited" in note for note in result.counter_evidence)
    assert "Semantic judgment failed" in caplog.text


@pytest.mark.asyncio
async def test_previous_semantic_verdict_is_reused(record):
    """Test an unchanged claim and evidence skip a second judge call."""
    judge = StubJudge(SemanticVerdict(supported=True, confidence=0.95))
    verifier = ClaimVerifier(judge=judge)
    claim = make_claim(HEATING_CLAIM)

    first = await verifier.verify(claim, record, HEATING_EVIDENCE)
    second = await verifier.verify(claim, record, HEATING_EVIDENCE, previous=first)

    third = await verifier.verify(claim, record, HEATING_EVIDENCE, previous=second)

    assert len(judge.requests) == 1
    assert first.method == VerificationMethod.SEMANTIC
    assert second.method == VerificationMethod.CACHED
    assert third == second
    assert second.model_copy(update={"method": VerificationMethod.SEMANTIC}) == first

    changed = record.model_copy(update={
        "files": {"raw_md": EvidenceFile(path="raw.md", hash="sha256:" + "b" * 64)},
    })
    await verifier.verify(claim, changed, HEATING_EVIDENCE, previous=first)
    assert len(judge.requests) == 2


def test_supporting_quote_is_bounded():
    """Test quotes are verbatim evidence lines of bounded length."""
    evidence = "Unrelated intro.\n" + "Rents rose 12% in the county " + "x" * 400
    quote = find_supporting_quote("Rents rose 12% in the county", evidence, max_length=50)

    assert quote is not None
    assert len(quote) <= 50
    assert evidence.splitlines()[1].startswith(quote)
