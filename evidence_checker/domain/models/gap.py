"""Gap records: the error taxonomy of the verification pipeline.

Verifiers never pick a severity themselves. Severity, gate and remediation are
looked up from the static tables below by gap type, so promoting a type to
blocking is a one-line change here.
"""

import hashlib
import json
from enum import Enum
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field


class Severity(str, Enum):
    """Gap severity. Only blocking gaps stop the gate."""

    BLOCKING = "blocking"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


SEVERITY_RANK = {
    Severity.BLOCKING: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}


class Gate(str, Enum):
    """The nine termination gates."""

    CAPTURE = "capture"
    BINDING = "binding"
    CLAIMS = "claims"
    CORROBORATION = "corroboration"
    CONTRADICTIONS = "contradictions"
    AUDIT = "audit"
    LEGAL = "legal"
    COVERAGE = "coverage"
    TASKS = "tasks"


class GapType(str, Enum):
    """Enumerated gap types."""

    # capture integrity
    MISSING_EVIDENCE = "missing-evidence"
    MISSING_METADATA = "missing-metadata"
    PAYLOAD_MISSING = "payload-missing"
    CONTENT_HASH_MISMATCH = "content-hash-mismatch"
    SIGNATURE_MISSING = "signature-missing"
    SIGNATURE_MALFORMED = "signature-malformed"
    SIGNATURE_MISMATCH = "signature-mismatch"
    STUB_EVIDENCE = "stub-evidence"
    FABRICATED_CONTENT = "fabricated-content"
    SYNTHETIC_SOURCE_TYPE = "synthetic-source-type"
    EXTRACTED_TEXT_MISMATCH = "extracted-text-mismatch"
    INVALID_URL = "invalid-url"
    ROUND_TIMESTAMP = "round-timestamp"
    HOMEPAGE_URL = "homepage-url"
    SUSPICIOUS_TITLE = "suspicious-title"
    # binding
    URL_MISMATCH = "url-mismatch"
    ORPHAN_CITATION = "orphan-citation"
    BINDING_INSUFFICIENT_DATA = "binding-insufficient-data"
    NARRATIVE_MISSING = "narrative-missing"
    # claim support
    CLAIM_NOT_FOUND = "claim-not-found"
    CLAIM_NEEDS_REVIEW = "claim-needs-review"
    CLAIM_CONTRADICTED = "claim-contradicted"
    # corroboration
    INSUFFICIENT_CORROBORATION = "insufficient-corroboration"
    CORROBORATION_CONTRADICTED = "corroboration-contradicted"
    # process integrity
    UNBALANCED_LOCK = "unbalanced-lock"
    LEDGER_INTEGRITY = "ledger-integrity"
    AUDIT_CHAIN_BROKEN = "audit-chain-broken"
    STATE_INCONSISTENT = "state-inconsistent"
    # legal wording
    UNATTRIBUTED_ALLEGATION = "unattributed-allegation"
    LEGAL_REVIEW_MISSING = "legal-review-missing"
    LEGAL_REVIEW_BLOCKED = "legal-review-blocked"
    # fed in by per-task gap files
    COVERAGE_INCOMPLETE = "coverage-incomplete"
    TASK_INCOMPLETE = "task-incomplete"
    CONTRADICTION_UNRESOLVED = "contradiction-unresolved"


# Integrity failures that stay blocking whatever the configured overrides say.
FABRICATION_TYPES = frozenset({
    GapType.CONTENT_HASH_MISMATCH,
    GapType.SIGNATURE_MISSING,
    GapType.SIGNATURE_MALFORMED,
    GapType.SIGNATURE_MISMATCH,
    GapType.STUB_EVIDENCE,
    GapType.FABRICATED_CONTENT,
    GapType.SYNTHETIC_SOURCE_TYPE,
    GapType.EXTRACTED_TEXT_MISMATCH,
})

GAP_SEVERITY: Dict[GapType, Severity] = {
    GapType.MISSING_EVIDENCE: Severity.BLOCKING,
    GapType.MISSING_METADATA: Severity.BLOCKING,
    GapType.PAYLOAD_MISSING: Severity.BLOCKING,
    GapType.CONTENT_HASH_MISMATCH: Severity.BLOCKING,
    GapType.SIGNATURE_MISSING: Severity.BLOCKING,
    GapType.SIGNATURE_MALFORMED: Severity.BLOCKING,
    GapType.SIGNATURE_MISMATCH: Severity.BLOCKING,
    GapType.STUB_EVIDENCE: Severity.BLOCKING,
    GapType.FABRICATED_CONTENT: Severity.BLOCKING,
    GapType.SYNTHETIC_SOURCE_TYPE: Severity.BLOCKING,
    GapType.EXTRACTED_TEXT_MISMATCH: Severity.BLOCKING,
    GapType.INVALID_URL: Severity.BLOCKING,
    GapType.ROUND_TIMESTAMP: Severity.LOW,
    GapType.HOMEPAGE_URL: Severity.MEDIUM,
    GapType.SUSPICIOUS_TITLE: Severity.LOW,
    GapType.URL_MISMATCH: Severity.BLOCKING,
    GapType.ORPHAN_CITATION: Severity.BLOCKING,
    GapType.BINDING_INSUFFICIENT_DATA: Severity.MEDIUM,
    GapType.NARRATIVE_MISSING: Severity.BLOCKING,
    GapType.CLAIM_NOT_FOUND: Severity.BLOCKING,
    GapType.CLAIM_NEEDS_REVIEW: Severity.HIGH,
    GapType.CLAIM_CONTRADICTED: Severity.BLOCKING,
    GapType.INSUFFICIENT_CORROBORATION: Severity.BLOCKING,
    GapType.CORROBORATION_CONTRADICTED: Severity.BLOCKING,
    GapType.UNBALANCED_LOCK: Severity.BLOCKING,
    GapType.LEDGER_INTEGRITY: Severity.HIGH,
    GapType.AUDIT_CHAIN_BROKEN: Severity.BLOCKING,
    GapType.STATE_INCONSISTENT: Severity.BLOCKING,
    GapType.UNATTRIBUTED_ALLEGATION: Severity.HIGH,
    GapType.LEGAL_REVIEW_MISSING: Severity.HIGH,
    GapType.LEGAL_REVIEW_BLOCKED: Severity.BLOCKING,
    GapType.COVERAGE_INCOMPLETE: Severity.HIGH,
    GapType.TASK_INCOMPLETE: Severity.HIGH,
    GapType.CONTRADICTION_UNRESOLVED: Severity.BLOCKING,
}

GAP_GATE: Dict[GapType, Gate] = {
    GapType.MISSING_EVIDENCE: Gate.CAPTURE,
    GapType.MISSING_METADATA: Gate.CAPTURE,
    GapType.PAYLOAD_MISSING: Gate.CAPTURE,
    GapType.CONTENT_HASH_MISMATCH: Gate.CAPTURE,
    GapType.SIGNATURE_MISSING: Gate.CAPTURE,
    GapType.SIGNATURE_MALFORMED: Gate.CAPTURE,
    GapType.SIGNATURE_MISMATCH: Gate.CAPTURE,
    GapType.STUB_EVIDENCE: Gate.CAPTURE,
    GapType.FABRICATED_CONTENT: Gate.CAPTURE,
    GapType.SYNTHETIC_SOURCE_TYPE: Gate.CAPTURE,
    GapType.EXTRACTED_TEXT_MISMATCH: Gate.CAPTURE,
    GapType.INVALID_URL: Gate.CAPTURE,
    GapType.ROUND_TIMESTAMP: Gate.CAPTURE,
    GapType.HOMEPAGE_URL: Gate.CAPTURE,
    GapType.SUSPICIOUS_TITLE: Gate.CAPTURE,
    GapType.URL_MISMATCH: Gate.BINDING,
    GapType.ORPHAN_CITATION: Gate.BINDING,
    GapType.BINDING_INSUFFICIENT_DATA: Gate.BINDING,
    GapType.NARRATIVE_MISSING: Gate.BINDING,
    GapType.CLAIM_NOT_FOUND: Gate.CLAIMS,
    GapType.CLAIM_NEEDS_REVIEW: Gate.CLAIMS,
    GapType.CLAIM_CONTRADICTED: Gate.CONTRADICTIONS,
    GapType.INSUFFICIENT_CORROBORATION: Gate.CORROBORATION,
    GapType.CORROBORATION_CONTRADICTED: Gate.CONTRADICTIONS,
    GapType.UNBALANCED_LOCK: Gate.AUDIT,
    GapType.LEDGER_INTEGRITY: Gate.AUDIT,
    GapType.AUDIT_CHAIN_BROKEN: Gate.AUDIT,
    GapType.STATE_INCONSISTENT: Gate.AUDIT,
    GapType.UNATTRIBUTED_ALLEGATION: Gate.LEGAL,
    GapType.LEGAL_REVIEW_MISSING: Gate.LEGAL,
    GapType.LEGAL_REVIEW_BLOCKED: Gate.LEGAL,
    GapType.COVERAGE_INCOMPLETE: Gate.COVERAGE,
    GapType.TASK_INCOMPLETE: Gate.TASKS,
    GapType.CONTRADICTION_UNRESOLVED: Gate.CONTRADICTIONS,
}

# (human remediation, machine actions) per type
GAP_REMEDIATION: Dict[GapType, tuple] = {
    GapType.MISSING_EVIDENCE: ("Capture the source so its evidence directory exists.", ["capture"]),
    GapType.MISSING_METADATA: ("Re-capture the source; its metadata record is missing or unreadable.", ["recapture"]),
    GapType.PAYLOAD_MISSING: ("Re-capture the source; a declared payload file is missing.", ["recapture"]),
    GapType.CONTENT_HASH_MISMATCH: ("Re-capture the source; the payload no longer matches its recorded hash.", ["recapture"]),
    GapType.SIGNATURE_MISSING: ("Re-capture the source with the capture tool so it is signed.", ["recapture"]),
    GapType.SIGNATURE_MALFORMED: ("Re-capture the source; the signature is not in a recognised format.", ["recapture"]),
    GapType.SIGNATURE_MISMATCH: ("Re-capture the source; its metadata was altered after capture.", ["recapture"]),
    GapType.STUB_EVIDENCE: ("Replace the hand-written metadata with a real capture.", ["recapture"]),
    GapType.FABRICATED_CONTENT: ("Capture the original article instead of a compiled summary.", ["recapture"]),
    GapType.SYNTHETIC_SOURCE_TYPE: ("Cite the underlying sources instead of a synthesis record.", ["find-original-source", "capture"]),
    GapType.EXTRACTED_TEXT_MISMATCH: ("Regenerate the extracted text from the captured payload.", ["regenerate-text"]),
    GapType.INVALID_URL: ("Register the source with a real http(s) URL.", ["fix-registry-url"]),
    GapType.ROUND_TIMESTAMP: ("Confirm the capture time came from the capture tool.", ["review-capture"]),
    GapType.HOMEPAGE_URL: ("Cite the specific article URL rather than the site homepage.", ["find-article-url", "capture"]),
    GapType.SUSPICIOUS_TITLE: ("Confirm the source is a primary capture, not a compilation.", ["review-capture"]),
    GapType.URL_MISMATCH: ("Correct whichever URL is wrong so citation, registry and capture agree.", ["fix-citation-url", "fix-registry-url"]),
    GapType.ORPHAN_CITATION: ("Register and capture the cited source, or remove the citation.", ["register-source", "capture"]),
    GapType.BINDING_INSUFFICIENT_DATA: ("Record the source URL in the registry and capture metadata.", ["fix-registry-url"]),
    GapType.NARRATIVE_MISSING: ("Write the narrative before running verification.", ["write-narrative"]),
    GapType.CLAIM_NOT_FOUND: ("Rewrite the claim to match the cited evidence or cite a source that supports it.", ["revise-claim", "find-source"]),
    GapType.CLAIM_NEEDS_REVIEW: ("Have a reviewer confirm the claim against the cited evidence.", ["human-review"]),
    GapType.CLAIM_CONTRADICTED: ("Remove or correct the claim; the cited evidence says otherwise.", ["revise-claim"]),
    GapType.INSUFFICIENT_CORROBORATION: ("Find a corroborating independent source.", ["find-corroborating-source", "capture", "update-claim"]),
    GapType.CORROBORATION_CONTRADICTED: ("Resolve the contradiction or present the claim as disputed.", ["resolve-contradiction"]),
    GapType.UNBALANCED_LOCK: ("Release or record the release of the held lock.", ["release-lock"]),
    GapType.LEDGER_INTEGRITY: ("Repair the ledger entry sequence.", ["repair-ledger"]),
    GapType.AUDIT_CHAIN_BROKEN: ("Re-run verification from unaltered case state.", ["rerun-verification"]),
    GapType.STATE_INCONSISTENT: ("Fix or remove the unreadable state file and re-run.", ["repair-state"]),
    GapType.UNATTRIBUTED_ALLEGATION: ("Add attribution language to the allegation.", ["add-attribution"]),
    GapType.LEGAL_REVIEW_MISSING: ("Run a legal review of the narrative.", ["legal-review"]),
    GapType.LEGAL_REVIEW_BLOCKED: ("Address the issues raised in the legal review.", ["revise-narrative", "legal-review"]),
    GapType.COVERAGE_INCOMPLETE: ("Investigate the uncovered questions.", ["investigate"]),
    GapType.TASK_INCOMPLETE: ("Complete the outstanding tasks.", ["complete-task"]),
    GapType.CONTRADICTION_UNRESOLVED: ("Resolve the contradiction between sources.", ["resolve-contradiction"]),
}


def resolve_severity(gap_type: GapType, overrides: Optional[Mapping[str, str]] = None) -> Severity:
    """Severity for a gap type, applying configured overrides except to fabrication types."""
    if gap_type in FABRICATION_TYPES:
        return Severity.BLOCKING
    if overrides and gap_type.value in overrides:
        return Severity(overrides[gap_type.value])
    return GAP_SEVERITY[gap_type]


class GapTarget(BaseModel):
    """What a gap points at. Unused fields stay None."""

    source_id: Optional[str] = None
    claim_id: Optional[str] = None
    file: Optional[str] = None
    line: Optional[int] = None

    class Config:
        """Pydantic model configuration."""
        frozen = True

    def key(self) -> str:
        """Canonical string used for identity and sorting."""
        return json.dumps(self.model_dump(exclude_none=True), sort_keys=True)

    def describe(self) -> str:
        parts = []
        if self.source_id:
            parts.append(self.source_id)
        if self.claim_id:
            parts.append(self.claim_id)
        if self.file:
            parts.append(self.file if self.line is None else f"{self.file}:{self.line}")
        elif self.line is not None:
            parts.append(f"line {self.line}")
        return " ".join(parts) or "case"


def compute_gap_id(gap_type: GapType, target: GapTarget) -> str:
    """Stable identifier derived from the gap's type and target."""
    payload = json.dumps({"type": gap_type.value, "target": target.model_dump(exclude_none=True)}, sort_keys=True)
    return "G" + hashlib.sha1(payload.encode("utf-8")).hexdigest()[:8].upper()


class Gap(BaseModel):
    """A typed, severity-tagged verification failure."""

    gap_id: str = Field(..., description="Stable id derived from type and target")
    type: GapType = Field(..., description="Gap type")
    severity: Severity = Field(..., description="Derived from the type")
    gate: Gate = Field(..., description="Gate this gap counts against")
    target: GapTarget = Field(default_factory=GapTarget, description="Object the gap refers to")
    message: str = Field(..., description="Human readable description")
    remediation: List[str] = Field(default_factory=list, description="Suggested remediation actions")

    class Config:
        """Pydantic model configuration."""
        frozen = True
        json_schema_extra = {
            "example": {
                "gap_id": "G1A2B3C4D",
                "type": "content-hash-mismatch",
                "severity": "blocking",
                "gate": "capture",
                "target": {"source_id": "S010", "file": "raw.html"},
                "message": "S010 raw.html hashes to sha256:ab... but metadata records sha256:cd...",
                "remediation": ["recapture"],
            }
        }

    @classmethod
    def create(
        cls,
        gap_type: GapType,
        message: str,
        target: Optional[GapTarget] = None,
        severity_overrides: Optional[Mapping[str, str]] = None,
    ) -> "Gap":
        """Build a gap whose severity, gate and remediation come from the type tables."""
        target = target or GapTarget()
        return cls(
            gap_id=compute_gap_id(gap_type, target),
            type=gap_type,
            severity=resolve_severity(gap_type, severity_overrides),
            gate=GAP_GATE[gap_type],
            target=target,
            message=message,
            remediation=list(GAP_REMEDIATION[gap_type][1]),
        )

    @property
    def is_blocking(self) -> bool:
        return self.severity == Severity.BLOCKING

    @property
    def identity(self) -> tuple:
        """Deduplication key."""
        return (self.type.value, self.target.key())

    def sort_key(self) -> tuple:
        return (SEVERITY_RANK[self.severity], self.gate.value, self.type.value, self.target.key())


def remediation_text(gap_type: GapType) -> str:
    """Human readable remediation for a gap type."""
    return GAP_REMEDIATION[gap_type][0]
