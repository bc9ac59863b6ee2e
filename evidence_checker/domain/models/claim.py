"""Domain models for claims extracted from narrative text."""

import hashlib
import re
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ClaimStatus(str, Enum):
    """Verification outcome of one claim against one cited source."""

    VERIFIED = "verified"  # Supported by heuristic or semantic check
    NEEDS_REVIEW = "needs-review"  # Ambiguous, human resolution required
    NOT_FOUND = "not-found"  # Claim content absent from evidence
    CONTRADICTED = "contradicted"  # Evidence states the opposite
    SUPERSEDED = "superseded"  # No longer present in the narrative


class VerificationMethod(str, Enum):
    """How a claim status was reached."""

    HEURISTIC = "heuristic"
    SEMANTIC = "semantic"
    CACHED = "cached"  # Prior semantic verdict reused


class CorroborationStatus(str, Enum):
    """Lifecycle status of a registered claim."""

    PENDING = "pending"
    VERIFIED = "verified"
    INSUFFICIENT = "insufficient"
    CONTRADICTED = "contradicted"
    SUPERSEDED = "superseded"


class IndependenceRule(str, Enum):
    """How supporting sources must differ to count as independent."""

    DIFFERENT_ROOT_DOMAIN = "different-root-domain"
    PRIMARY_PLUS_SECONDARY = "primary-plus-secondary"
    EITHER = "either"


def normalize_claim_text(text: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    text = re.sub(r"[^\w\s%$.,-]", " ", text.lower())
    text = re.sub(r"[.,]+(\s|$)", r"\1", text)
    return re.sub(r"\s+", " ", text).strip()


def compute_claim_hash(text: str, source_id: str) -> str:
    """Stable hash over the normalized claim text and its citation id."""
    payload = f"{normalize_claim_text(text)}:{source_id}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def format_claim_id(number: int) -> str:
    """Format a claim counter value as an identifier (12 -> CL0012)."""
    return f"CL{number:04d}"


class Statistic(BaseModel):
    """A quantitative assertion pulled out of text."""

    kind: str = Field(..., description="percentage, currency, scaled, shorthand or integer")
    raw: str = Field(..., description="Surface form as written")
    value: float = Field(..., description="Normalized numeric value")

    class Config:
        """Pydantic model configuration."""
        frozen = True


class ExtractedClaim(BaseModel):
    """A clause immediately preceding a citation marker."""

    text: str = Field(..., description="Claim clause with markup removed")
    source_id: str = Field(..., description="Cited source identifier")
    line: int = Field(..., description="1-based line number in the narrative")
    statistics: List[Statistic] = Field(default_factory=list)

    class Config:
        """Pydantic model configuration."""
        frozen = True

    @property
    def claim_hash(self) -> str:
        return compute_claim_hash(self.text, self.source_id)


class ClaimRecord(BaseModel):
    """Persisted verification state of one claim/citation pair."""

    claim_hash: str = Field(..., description="Hash of normalized text and source id")
    text: str = Field(..., description="Claim text")
    source_id: str = Field(..., description="Cited source identifier")
    line: int = Field(default=0, description="Line in the narrative at last extraction")
    status: ClaimStatus = Field(..., description="Verification status")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Confidence in the status")
    method: VerificationMethod = Field(default=VerificationMethod.HEURISTIC)
    supporting_quote: Optional[str] = Field(default=None, description="Verbatim evidence excerpt")
    counter_evidence: List[str] = Field(default_factory=list, description="Unsupported or contradicting aspects")
    evidence_hash: str = Field(default="", description="Payload hashes of the cited evidence when checked")

    class Config:
        """Pydantic model configuration."""
        frozen = True
        json_schema_extra = {
            "example": {
                "claim_hash": "4be1c1a3d0f9e2b7",
                "text": "52% of respondents reported higher rents",
                "source_id": "S004",
                "line": 12,
                "status": "not-found",
                "confidence": 0.3,
                "method": "heuristic",
                "supporting_quote": None,
                "counter_evidence": ["statistic 52% not found in evidence"],
                "evidence_hash": "sha256:...",
            }
        }


class CorroborationPolicy(BaseModel):
    """Minimum source count and independence rule for a claim."""

    min_sources: int = Field(default=2, ge=1, description="Independent supporting sources required")
    independence_rule: IndependenceRule = Field(default=IndependenceRule.DIFFERENT_ROOT_DOMAIN)
    requires_primary: bool = Field(default=False, description="At least one primary source required")


class RegisteredClaim(BaseModel):
    """One entry of the claim registry."""

    id: str = Field(..., description="Claim identifier (CL0001)")
    text: str = Field(..., description="Claim text")
    type: str = Field(default="factual", description="factual or statistical")
    status: CorroborationStatus = Field(default=CorroborationStatus.PENDING)
    supporting_sources: List[str] = Field(default_factory=list, description="Sources with verified support")
    counter_sources: List[str] = Field(default_factory=list, description="Sources recorded as counter-evidence")
    policy: CorroborationPolicy = Field(default_factory=CorroborationPolicy)

    @property
    def normalized_text(self) -> str:
        return normalize_claim_text(self.text)
