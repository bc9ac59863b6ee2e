"""Tiered verification of a claim against the evidence it cites."""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from ..models.claim import ClaimRecord, ClaimStatus, ExtractedClaim, VerificationMethod
from ..models.evidence import EvidenceRecord
from ..models.gap import Gap, GapTarget, GapType
from ..models.thresholds import VerificationThresholds
from ..ports.semantic_judge import JudgeRequest, SemanticJudge, SemanticVerdict
from .claim_extractor import extract_key_terms, key_term_ratio
from .statistics import NumberMatch, candidate_values, match_number

logger = logging.getLogger(__name__)

CONTENT_WORD = re.compile(r"[a-z][a-z'-]{3,}")
STOPWORDS = {
    "that", "this", "with", "from", "have", "has", "had", "were", "was", "been",
    "their", "they", "them", "there", "than", "then", "into", "over", "about",
    "which", "while", "would", "could", "should", "will", "also", "more", "most",
    "some", "such", "only", "other", "after", "before", "between", "during",
}
CONTENT_OVERLAP_RATIO = 0.5

JUDGE_RUBRIC = """You are checking whether a captured source supports a claim.

Rules:
1. Numbers must match to the digit. 52% is not 72%; 1.2 million is not 12 million.
2. Paraphrase is acceptable. Added specificity, inference or extrapolation is not.
3. Attribution matters. A statement the source attributes to a speaker is not support
   for the same statement presented as fact, and the reverse.
4. If the source states the opposite of the claim, mark it contradicted.
5. The supporting quote must be copied verbatim from the source text.

Respond in JSON format with:
{
    "supported": true/false,
    "contradicted": true/false,
    "confidence": 0.0-1.0,
    "supporting_quote": "exact excerpt from the source, or null",
    "unsupported_aspects": ["specific parts of the claim the source does not support"]
}"""


def content_words(text: str) -> List[str]:
    return [w for w in CONTENT_WORD.findall(text.lower()) if w not in STOPWORDS]


def find_supporting_quote(claim_text: str, evidence_text: str, max_length: int = 300) -> Optional[str]:
    """Best matching evidence line, verbatim and at most ``max_length`` characters."""
    words = set(content_words(claim_text))
    claim_numbers = set(candidate_values(claim_text))
    best_line, best_score = None, 0
    for line in evidence_text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        lowered = stripped.lower()
        score = sum(1 for w in words if w in lowered)
        if claim_numbers:
            score += 2 * len(claim_numbers.intersection(candidate_values(stripped)))
        if score > best_score:
            best_line, best_score = stripped, score
    if best_line is None:
        return None
    return best_line[:max_length].rstrip()


@dataclass
class HeuristicAssessment:
    """Outcome of the deterministic tier."""

    confidence: float
    exact_statistics: List[str] = field(default_factory=list)
    near_statistics: List[str] = field(default_factory=list)
    missing_statistics: List[str] = field(default_factory=list)
    key_terms: List[str] = field(default_factory=list)
    key_term_ratio: float = 1.0
    content_overlap: float = 1.0
    supporting_quote: Optional[str] = None

    @property
    def issues(self) -> List[str]:
        issues = [f"statistic {raw} not found in evidence" for raw in self.missing_statistics]
        issues.extend(f"statistic {raw} only approximately matched" for raw in self.near_statistics)
        return issues


class ClaimVerifier:
    """Heuristic matching first, semantic judgment only for the ambiguous middle band."""

    def __init__(
        self,
        thresholds: Optional[VerificationThresholds] = None,
        judge: Optional[SemanticJudge] = None,
    ):
        """Initialize the verifier.

        Args:
            thresholds: Cutoffs and penalties
            judge: Semantic judgment provider, None to disable escalation
        """
        self._thresholds = thresholds or VerificationThresholds()
        self._judge = judge

    @property
    def thresholds(self) -> VerificationThresholds:
        return self._thresholds

    def assess(self, claim: ExtractedClaim, evidence_text: str) -> HeuristicAssessment:
        """Run the deterministic tier."""
        t = self._thresholds
        confidence = 1.0
        assessment = HeuristicAssessment(confidence=confidence)
        evidence_values = candidate_values(evidence_text)

        for stat in claim.statistics:
            result = match_number(stat.value, evidence_values, t.numeric_tolerance)
            if result == NumberMatch.EXACT:
                assessment.exact_statistics.append(stat.raw)
            elif result == NumberMatch.NEAR:
                assessment.near_statistics.append(stat.raw)
                confidence -= t.near_match_penalty
            else:
                assessment.missing_statistics.append(stat.raw)
                confidence -= t.missing_statistic_penalty

        assessment.key_terms = extract_key_terms(claim.text)
        assessment.key_term_ratio = key_term_ratio(assessment.key_terms, evidence_text)
        if assessment.key_term_ratio < t.key_term_ratio:
            confidence -= t.key_term_penalty

        words = set(content_words(claim.text))
        if words:
            lowered = evidence_text.lower()
            assessment.content_overlap = sum(1 for w in words if w in lowered) / len(words)
            if assessment.content_overlap < CONTENT_OVERLAP_RATIO:
                confidence -= t.key_term_penalty

        if assessment.missing_statistics:
            confidence = min(confidence, t.fail_threshold - 0.01)
        assessment.confidence = round(max(0.0, min(1.0, confidence)), 4)
        assessment.supporting_quote = find_supporting_quote(claim.text, evidence_text, t.quote_max_length)
        return assessment

    def build_prompt(self, claim: ExtractedClaim, record: EvidenceRecord, evidence_text: str) -> str:
        """Bounded prompt for semantic judgment."""
        excerpt = evidence_text[: self._thresholds.max_content_length]
        truncated = " (truncated)" if len(evidence_text) > len(excerpt) else ""
        return (
            f"{JUDGE_RUBRIC}\n\n"
            f"CLAIM:\n{claim.text}\n\n"
            f"SOURCE {record.source_id}\n"
            f"URL: {record.url}\n"
            f"Title: {record.title}\n"
            f"Captured: {record.captured_at}\n\n"
            f"SOURCE TEXT{truncated}:\n{excerpt}"
        )

    async def verify(
        self,
        claim: ExtractedClaim,
        record: EvidenceRecord,
        evidence_text: str,
        previous: Optional[ClaimRecord] = None,
    ) -> ClaimRecord:
        """Verify one claim against its cited evidence.

        Args:
            claim: Extracted claim
            record: Evidence record of the cited source (integrity already checked)
            evidence_text: Extracted text of that source
            previous: Record stored by an earlier run, if any

        Returns:
            Claim record with status and confidence
        """
        t = self._thresholds
        assessment = self.assess(claim, evidence_text)
        base = dict(
            claim_hash=claim.claim_hash,
            text=claim.text,
            source_id=claim.source_id,
            line=claim.line,
            evidence_hash=record.evidence_hash,
        )

        if assessment.missing_statistics:
            return ClaimRecord(
                **base,
                status=ClaimStatus.NOT_FOUND,
                confidence=assessment.confidence,
                method=VerificationMethod.HEURISTIC,
                counter_evidence=assessment.issues,
            )
        if assessment.confidence >= t.pass_threshold:
            return ClaimRecord(
                **base,
                status=ClaimStatus.VERIFIED,
                confidence=assessment.confidence,
                method=VerificationMethod.HEURISTIC,
                supporting_quote=assessment.supporting_quote,
                counter_evidence=assessment.issues,
            )
        if assessment.confidence < t.fail_threshold:
            return ClaimRecord(
                **base,
                status=ClaimStatus.NOT_FOUND,
                confidence=assessment.confidence,
                method=VerificationMethod.HEURISTIC,
                counter_evidence=assessment.issues + ["claim wording not found in evidence"],
            )
        if assessment.confidence < t.escalate_threshold:
            return ClaimRecord(
                **base,
                status=ClaimStatus.NEEDS_REVIEW,
                confidence=assessment.confidence,
                method=VerificationMethod.HEURISTIC,
                supporting_quote=assessment.supporting_quote,
                counter_evidence=assessment.issues + ["weak lexical match with evidence"],
            )

        if (
            previous is not None
            and previous.method in (VerificationMethod.SEMANTIC, VerificationMethod.CACHED)
            and previous.claim_hash == claim.claim_hash
            and previous.evidence_hash == record.evidence_hash
        ):
            logger.debug(f"📝 Reusing semantic verdict for claim {claim.claim_hash}")
            return previous.model_copy(update={"line": claim.line, "method": VerificationMethod.CACHED})

        return await self._escalate(claim, record, evidence_text, assessment, base)

    async def _escalate(
        self,
        claim: ExtractedClaim,
        record: EvidenceRecord,
        evidence_text: str,
        assessment: HeuristicAssessment,
        base: dict,
    ) -> ClaimRecord:
        if self._judge is None or not self._judge.is_available:
            return ClaimRecord(
                **base,
                status=ClaimStatus.NEEDS_REVIEW,
                confidence=assessment.confidence,
                method=VerificationMethod.HEURISTIC,
                supporting_quote=assessment.supporting_quote,
                counter_evidence=assessment.issues + ["semantic judgment unavailable"],
            )

        request = JudgeRequest(
            claim_text=claim.text,
            source_id=record.source_id,
            source_url=record.url,
            source_title=record.title,
            evidence_text=evidence_text[: self._thresholds.max_content_length],
            prompt=self.build_prompt(claim, record, evidence_text),
        )
        try:
            verdict = await self._judge.judge(request)
        except Exception as e:
            logger.warning(f"⚠️ Semantic judgment failed for {claim.source_id} claim {claim.claim_hash}: {e}")
            return ClaimRecord(
                **base,
                status=ClaimStatus.NEEDS_REVIEW,
                confidence=assessment.confidence,
                method=VerificationMethod.HEURISTIC,
                supporting_quote=assessment.supporting_quote,
                counter_evidence=assessment.issues + [f"semantic judgment failed: {e}"],
            )

        return ClaimRecord(
            **base,
            status=self.classify(verdict),
            confidence=round(verdict.confidence, 4),
            method=VerificationMethod.SEMANTIC,
            supporting_quote=self._verbatim_quote(verdict, evidence_text) or assessment.supporting_quote,
            counter_evidence=list(verdict.unsupported_aspects),
        )

    def classify(self, verdict: SemanticVerdict) -> ClaimStatus:
        """Map a semantic verdict onto a claim status."""
        if verdict.contradicted:
            return ClaimStatus.CONTRADICTED
        if verdict.confidence >= self._thresholds.pass_threshold:
            return ClaimStatus.VERIFIED if verdict.supported else ClaimStatus.NOT_FOUND
        return ClaimStatus.NEEDS_REVIEW

    @staticmethod
    def _verbatim_quote(verdict: SemanticVerdict, evidence_text: str) -> Optional[str]:
        quote = (verdict.supporting_quote or "").strip()
        if quote and quote in evidence_text:
            return quote
        return None


def claim_gaps(record: ClaimRecord) -> List[Gap]:
    """Gaps for a checked claim record; none when it is verified."""
    target = GapTarget(source_id=record.source_id, claim_id=record.claim_hash, line=record.line or None)
    detail = f" ({'; '.join(record.counter_evidence)})" if record.counter_evidence else ""
    excerpt = record.text if len(record.text) <= 80 else record.text[:77] + "..."

    if record.status == ClaimStatus.NOT_FOUND:
        return [Gap.create(
            GapType.CLAIM_NOT_FOUND,
            f"Claim '{excerpt}' is not supported by {record.source_id}{detail}",
            target,
        )]
    if record.status == ClaimStatus.CONTRADICTED:
        return [Gap.create(
            GapType.CLAIM_CONTRADICTED,
            f"{record.source_id} contradicts claim '{excerpt}'{detail}",
            target,
        )]
    if record.status == ClaimStatus.NEEDS_REVIEW:
        return [Gap.create(
            GapType.CLAIM_NEEDS_REVIEW,
            f"Claim '{excerpt}' needs human review against {record.source_id}{detail}",
            target,
        )]
    return []
