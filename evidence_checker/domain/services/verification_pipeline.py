"""Service running every verifier over one case and reducing the result to a gate decision."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from ..models.audit import AuditChainRecord
from ..models.citation import BindingRecord, Citation
from ..models.claim import ClaimRecord, ClaimStatus, ExtractedClaim, RegisteredClaim
from ..models.evidence import EvidenceRecord, SourceEntry
from ..models.gap import Gap, GapTarget, GapType
from ..models.gate_result import GateReport
from ..ports.case_store import CaseStore
from .audit_chain import AuditChain, verify_chain
from .binding_verifier import BindingVerifier
from .citation_extractor import extract_citations
from .claim_extractor import extract_claims
from .claim_verifier import ClaimVerifier, claim_gaps
from .corroboration import CorroborationRegistry
from .gap_generator import GapGenerator
from .gate_evaluator import GateEvaluator
from .integrity_verifier import IntegrityVerifier
from .ledger_auditor import audit_ledger
from .legal_wording import LegalWordingChecker

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything one verification run produced."""

    report: GateReport
    chain: AuditChainRecord
    claim_records: List[ClaimRecord] = field(default_factory=list)
    registered_claims: List[RegisteredClaim] = field(default_factory=list)
    bindings: List[BindingRecord] = field(default_factory=list)
    iteration: int = 1

    @property
    def passed(self) -> bool:
        return self.report.passed

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the gaps.json layout."""
        data = self.report.to_dict()
        data["chain_hash"] = self.chain.chain_hash
        data["iteration"] = self.iteration
        return data

    def digest(self) -> Dict[str, Any]:
        """Short summary the orchestrator polls."""
        return {
            "iteration": self.iteration,
            "blocking_gaps": self.report.blocking_count,
            "total_gaps": len(self.report.gaps),
            "can_terminate": self.report.passed,
            "chain_hash": self.chain.chain_hash,
            "gates": {status.gate: status.passed for status in self.report.gates},
        }


@dataclass
class AuditResult:
    """Outcome of auditing the stored chain and the ledger."""

    chain_hash: Optional[str]
    steps: int
    chain_problems: List[str] = field(default_factory=list)
    ledger_gaps: List[Gap] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.chain_problems and not any(gap.is_blocking for gap in self.ledger_gaps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "chain_hash": self.chain_hash,
            "steps": self.steps,
            "chain_problems": list(self.chain_problems),
            "ledger_gaps": [gap.model_dump(mode="json") for gap in self.ledger_gaps],
        }


class VerificationPipeline:
    """Service coordinating the verification of one case."""

    def __init__(
        self,
        store: CaseStore,
        integrity_verifier: IntegrityVerifier,
        claim_verifier: ClaimVerifier,
        corroboration: Optional[CorroborationRegistry] = None,
        legal_checker: Optional[LegalWordingChecker] = None,
        gap_generator: Optional[GapGenerator] = None,
        gate_evaluator: Optional[GateEvaluator] = None,
        binding_verifier: Optional[BindingVerifier] = None,
        max_concurrency: int = 4,
        narrative_name: str = "articles/full.md",
    ):
        """Initialize the pipeline.

        Args:
            store: Case state
            integrity_verifier: Capture integrity checks
            claim_verifier: Tiered claim verification
            corroboration: Claim registry evaluation
            legal_checker: Allegation wording checks
            gap_generator: Gap aggregation
            gate_evaluator: Gate reduction
            binding_verifier: URL binding checks
            max_concurrency: Claims verified at the same time
            narrative_name: Narrative path used in gap targets
        """
        self.store = store
        self.integrity = integrity_verifier
        self.claims = claim_verifier
        self.corroboration = corroboration or CorroborationRegistry()
        self.legal = legal_checker or LegalWordingChecker()
        self.gaps = gap_generator or GapGenerator()
        self.gate = gate_evaluator or GateEvaluator()
        self.binding = binding_verifier or BindingVerifier()
        self.max_concurrency = max(1, max_concurrency)
        self.narrative_name = narrative_name
        logger.info("🔧 VerificationPipeline initialized")

    async def run(self) -> PipelineResult:
        """Run every step once and persist the outputs.

        Returns:
            Pipeline result with gate report and audit chain
        """
        case = self.store.case_name
        logger.info(f"🔍 Verifying case {case}")
        chain = AuditChain()
        previous_chain_gaps = self._check_previous_chain()

        narrative = self.store.read_narrative()
        narrative_gaps: List[Gap] = []
        if narrative is None:
            narrative_gaps.append(Gap.create(
                GapType.NARRATIVE_MISSING,
                "No narrative text found for this case",
                GapTarget(file=self.narrative_name),
            ))
            narrative = ""
        citations = extract_citations(narrative)
        sources = self.store.load_sources()

        records, integrity_gaps, compromised = self._run_integrity(sources, citations, chain)
        bindings, binding_gaps = self._run_binding(citations, sources, records, compromised, chain)
        extracted = extract_claims(narrative)
        claim_records, claim_step_gaps = await self._run_claims(extracted, sources, records, compromised, chain)
        registered, corroboration_gaps = self._run_corroboration(extracted, claim_records, sources, chain)
        legal_gaps = self._run_legal(narrative, chain)
        ledger_gaps = self._run_ledger(previous_chain_gaps, chain)

        task_gaps = self.gaps.merge_task_files(self.store.load_task_gap_files())
        gaps = self.gaps.generate(
            narrative_gaps,
            integrity_gaps,
            binding_gaps,
            claim_step_gaps,
            corroboration_gaps,
            legal_gaps,
            ledger_gaps,
            task_gaps,
        )
        report = self.gate.evaluate(gaps)
        chain.record(
            "gaps",
            {"identities": sorted(list(g.identity) for g in gaps)},
            report.to_dict(),
        )

        previous_digest = self.store.load_digest() or {}
        result = PipelineResult(
            report=report,
            chain=chain.to_record(),
            claim_records=claim_records,
            registered_claims=registered,
            bindings=bindings,
            iteration=int(previous_digest.get("iteration", 0)) + 1,
        )
        self.store.save_audit_chain(result.chain)
        self.store.write_gap_report(result.to_dict(), result.digest())

        if report.passed:
            logger.info(f"✅ Case {case} passes all gates")
        else:
            logger.info(f"❌ Case {case} has {report.blocking_count} blocking gap(s)")
        return result

    def evaluate_stored(self) -> Optional[GateReport]:
        """Re-run the gate over the gaps stored by the last run.

        Returns:
            Gate report, or None when no run has been stored yet

        Raises:
            ValueError: If the stored report cannot be parsed
        """
        data = self.store.load_gap_report()
        if data is None:
            return None
        try:
            gaps = [Gap(**item) for item in data.get("gaps", [])]
        except (TypeError, ValueError) as e:
            raise ValueError(f"Stored gap report is invalid: {e}")
        return self.gate.evaluate(self.gaps.generate(gaps))

    def audit(self) -> AuditResult:
        """Verify the stored audit chain and the ledger's lock balance.

        Raises:
            ValueError: If the stored chain cannot be parsed
        """
        record = self.store.load_audit_chain()
        ledger_gaps = audit_ledger(self.store.load_ledger())
        if record is None:
            return AuditResult(
                chain_hash=None,
                steps=0,
                chain_problems=["no audit chain stored; run a check first"],
                ledger_gaps=ledger_gaps,
            )
        return AuditResult(
            chain_hash=record.chain_hash,
            steps=len(record.entries),
            chain_problems=verify_chain(record),
            ledger_gaps=ledger_gaps,
        )

    def _check_previous_chain(self) -> List[Gap]:
        try:
            previous = self.store.load_audit_chain()
        except ValueError as e:
            return [Gap.create(
                GapType.AUDIT_CHAIN_BROKEN,
                f"Stored audit chain cannot be read: {e}",
                GapTarget(file="control/audit-chain.json"),
            )]
        if previous is None:
            return []
        problems = verify_chain(previous)
        if not problems:
            return []
        logger.warning(f"⚠️ Stored audit chain failed verification: {problems[0]}")
        return [Gap.create(
            GapType.AUDIT_CHAIN_BROKEN,
            f"Stored audit chain was altered: {'; '.join(problems)}",
            GapTarget(file="control/audit-chain.json"),
        )]

    def _run_integrity(
        self,
        sources: Dict[str, SourceEntry],
        citations: List[Citation],
        chain: AuditChain,
    ):
        records: Dict[str, EvidenceRecord] = {}
        gaps: List[Gap] = []
        evidence_ids = set(self.store.list_evidence_ids())

        for sid in sorted(evidence_ids):
            try:
                record = self.store.load_evidence(sid)
            except ValueError as e:
                gaps.append(Gap.create(
                    GapType.MISSING_METADATA,
                    f"{sid} metadata cannot be read: {e}",
                    GapTarget(source_id=sid, file="metadata.json"),
                ))
                continue
            if record is None:
                gaps.append(Gap.create(
                    GapType.MISSING_METADATA,
                    f"{sid} has an evidence directory but no metadata record",
                    GapTarget(source_id=sid, file="metadata.json"),
                ))
                continue
            records[sid] = record
            gaps.extend(self.integrity.verify(record, self.store.read_evidence_file))

        for sid, entry in sorted(sources.items()):
            if entry.captured and sid not in evidence_ids:
                gaps.append(Gap.create(
                    GapType.MISSING_EVIDENCE,
                    f"{sid} is marked captured in the registry but has no evidence directory",
                    GapTarget(source_id=sid),
                ))

        compromised: Set[str] = {
            gap.target.source_id for gap in gaps
            if gap.is_blocking and gap.target.source_id
        }
        if compromised:
            logger.warning(f"⚠️ Compromised sources: {', '.join(sorted(compromised))}")

        chain.record(
            "integrity",
            {
                "evidence": {sid: record.to_metadata() for sid, record in sorted(records.items())},
                "registry": sources,
            },
            {"gaps": gaps, "compromised": sorted(compromised)},
        )
        return records, gaps, compromised

    def _run_binding(
        self,
        citations: List[Citation],
        sources: Dict[str, SourceEntry],
        records: Dict[str, EvidenceRecord],
        compromised: Set[str],
        chain: AuditChain,
    ):
        bindings: List[BindingRecord] = []
        gaps: List[Gap] = []
        for citation in citations:
            if citation.source_id in compromised:
                continue
            binding, found = self.binding.verify(
                citation,
                sources.get(citation.source_id),
                records.get(citation.source_id),
            )
            bindings.append(binding)
            gaps.extend(found)

        chain.record("binding", {"citations": citations}, {"bindings": bindings, "gaps": gaps})
        return bindings, gaps

    async def _run_claims(
        self,
        extracted: List[ExtractedClaim],
        sources: Dict[str, SourceEntry],
        records: Dict[str, EvidenceRecord],
        compromised: Set[str],
        chain: AuditChain,
    ):
        previous = self.store.load_claim_records()
        checkable = [
            claim for claim in extracted
            if claim.source_id in sources
            and claim.source_id in records
            and claim.source_id not in compromised
        ]
        logger.info(f"🔍 Verifying {len(checkable)} of {len(extracted)} extracted claim(s)")

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def verify_one(claim: ExtractedClaim) -> ClaimRecord:
            async with semaphore:
                record = records[claim.source_id]
                text = self.store.load_evidence_text(record)
                return await self.claims.verify(claim, record, text, previous.get(claim.claim_hash))

        checked = await asyncio.gather(*(verify_one(claim) for claim in checkable))

        current_hashes = {claim.claim_hash for claim in extracted}
        merged: Dict[str, ClaimRecord] = {}
        for record in checked:
            merged[record.claim_hash] = record
        for claim_hash, old in sorted(previous.items()):
            if claim_hash in merged:
                continue
            if claim_hash in current_hashes:
                merged[claim_hash] = old
            elif old.status != ClaimStatus.SUPERSEDED:
                merged[claim_hash] = old.model_copy(update={"status": ClaimStatus.SUPERSEDED})
            else:
                merged[claim_hash] = old
        all_records = list(merged.values())
        self.store.save_claim_records(all_records)

        gaps: List[Gap] = []
        for record in checked:
            gaps.extend(claim_gaps(record))

        chain.record(
            "claims",
            {
                "claims": extracted,
                "evidence": {sid: records[sid].evidence_hash for sid in sorted({c.source_id for c in checkable})},
            },
            {"records": [r.model_dump(mode="json", exclude={"method"}) for r in checked], "gaps": gaps},
        )
        return list(checked), gaps

    def _run_corroboration(
        self,
        extracted: List[ExtractedClaim],
        claim_records: List[ClaimRecord],
        sources: Dict[str, SourceEntry],
        chain: AuditChain,
    ):
        registered = self.store.load_registered_claims()
        synced = self.corroboration.synchronize(
            registered,
            [claim.text for claim in extracted],
            self.store.allocate_claim_ids,
        )
        updated, gaps = self.corroboration.evaluate_all(synced, claim_records, sources)
        self.store.save_registered_claims(updated)

        chain.record(
            "corroboration",
            {
                "claims": [
                    {"id": c.id, "text": c.text, "type": c.type, "policy": c.policy, "counter": c.counter_sources}
                    for c in synced
                ],
                "records": [(r.claim_hash, r.source_id, r.status) for r in claim_records],
            },
            {
                "claims": [(c.id, c.status, c.supporting_sources) for c in updated],
                "gaps": gaps,
            },
        )
        return updated, gaps

    def _run_legal(self, narrative: str, chain: AuditChain) -> List[Gap]:
        review = self.store.read_legal_review()
        gaps = self.legal.check_narrative(narrative, self.narrative_name) + self.legal.check_review(review)
        chain.record("legal", {"narrative": narrative, "review": review}, {"gaps": gaps})
        return gaps

    def _run_ledger(self, previous_chain_gaps: List[Gap], chain: AuditChain) -> List[Gap]:
        events = self.store.load_ledger()
        gaps = audit_ledger(events) + previous_chain_gaps
        chain.record("ledger", {"events": events}, {"gaps": gaps})
        return gaps
