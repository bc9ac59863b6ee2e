"""Tunable thresholds for heuristic claim verification."""

import os

from pydantic import BaseModel, Field, model_validator


class VerificationThresholds(BaseModel):
    """Cutoffs and penalties used by the tiered claim verifier.

    Only the ordering pass > escalate > fail is relied upon; the default values
    are starting points, not calibrated numbers.
    """

    pass_threshold: float = Field(default=0.85, ge=0.0, le=1.0, description="Verified by heuristic alone at or above")
    escalate_threshold: float = Field(default=0.60, ge=0.0, le=1.0, description="Escalated to semantic judgment at or above")
    fail_threshold: float = Field(default=0.40, ge=0.0, le=1.0, description="Below this the claim is not found")
    numeric_tolerance: float = Field(default=0.01, ge=0.0, description="Relative tolerance for near numeric matches")
    key_term_ratio: float = Field(default=0.8, ge=0.0, le=1.0, description="Share of key terms that must appear")
    near_match_penalty: float = Field(default=0.05, ge=0.0, le=1.0)
    missing_statistic_penalty: float = Field(default=0.7, ge=0.0, le=1.0)
    key_term_penalty: float = Field(default=0.3, ge=0.0, le=1.0)
    max_content_length: int = Field(default=6000, gt=0, description="Evidence characters sent for semantic judgment")
    quote_max_length: int = Field(default=300, gt=0)

    @model_validator(mode="after")
    def _check_ordering(self) -> "VerificationThresholds":
        if not self.pass_threshold > self.escalate_threshold >= self.fail_threshold:
            raise ValueError("Thresholds must satisfy pass > escalate >= fail")
        return self

    @classmethod
    def from_env(cls) -> "VerificationThresholds":
        """Create thresholds from EVIDENCE_* environment variables."""
        values = {}
        for field, env in (
            ("pass_threshold", "EVIDENCE_PASS_THRESHOLD"),
            ("escalate_threshold", "EVIDENCE_ESCALATE_THRESHOLD"),
            ("fail_threshold", "EVIDENCE_FAIL_THRESHOLD"),
            ("numeric_tolerance", "EVIDENCE_NUMERIC_TOLERANCE"),
            ("key_term_ratio", "EVIDENCE_KEY_TERM_RATIO"),
        ):
            raw = os.getenv(env)
            if raw:
                values[field] = float(raw)
        max_content = os.getenv("EVIDENCE_MAX_CONTENT_LENGTH")
        if max_content:
            values["max_content_length"] = int(max_content)
        return cls(**values)
