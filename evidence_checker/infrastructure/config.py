"""Runtime configuration for the evidence checker."""

import json
import logging
import os
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from ..domain.models.claim import CorroborationPolicy, IndependenceRule
from ..domain.models.gap import GapType, Severity
from ..domain.models.thresholds import VerificationThresholds

logger = logging.getLogger(__name__)

DEV_CAPTURE_SECRET = "evidence-checker-dev-secret"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class CheckerSettings(BaseModel):
    """Configuration for a verification run."""

    narrative_path: str = Field(default="articles/full.md", description="Narrative path relative to the case")
    capture_secret: str = Field(default=DEV_CAPTURE_SECRET, description="Secret used to sign captures")
    openai_api_key: str = Field(default="", description="OpenAI API key for semantic judgment")
    judge_model: str = Field(default="gpt-4o-mini", description="Model used for semantic judgment")
    judge_timeout: float = Field(default=30.0, description="Semantic judgment timeout in seconds")
    semantic_enabled: bool = Field(default=True, description="Escalate ambiguous claims to the judge")
    max_concurrency: int = Field(default=4, ge=1, description="Claims verified at the same time")
    require_legal_review: bool = Field(default=False, description="Missing legal review is a gap")
    text_cache_ttl: int = Field(default=600, description="Seconds extracted text stays cached")
    text_cache_size: int = Field(default=256, description="Extracted texts kept in memory")
    default_policy: CorroborationPolicy = Field(
        default_factory=lambda: CorroborationPolicy(min_sources=1),
        description="Policy for claims registered from the narrative",
    )
    severity_overrides: Dict[str, str] = Field(default_factory=dict, description="gap type -> severity")
    thresholds: VerificationThresholds = Field(default_factory=VerificationThresholds)

    @field_validator("severity_overrides")
    @classmethod
    def _check_overrides(cls, value: Dict[str, str]) -> Dict[str, str]:
        for gap_type, severity in value.items():
            GapType(gap_type)
            Severity(severity)
        return value

    @property
    def judge_configured(self) -> bool:
        return self.semantic_enabled and bool(self.openai_api_key)

    @classmethod
    def from_env(cls, overrides: Optional[Dict] = None) -> "CheckerSettings":
        """Create settings from environment variables."""
        secret = os.getenv("EVIDENCE_CAPTURE_SECRET", "")
        if not secret:
            logger.warning("⚠️ EVIDENCE_CAPTURE_SECRET not set - using the development secret")
            secret = DEV_CAPTURE_SECRET

        api_key = os.getenv("OPENAI_API_KEY", "")
        if api_key:
            logger.info(f"✅ OpenAI API key loaded: {len(api_key)} chars")
        else:
            logger.info("🚫 OPENAI_API_KEY not set - ambiguous claims will need human review")

        severity_overrides = {}
        raw_overrides = os.getenv("EVIDENCE_SEVERITY_OVERRIDES")
        if raw_overrides:
            try:
                severity_overrides = json.loads(raw_overrides)
            except json.JSONDecodeError as e:
                raise ValueError(f"EVIDENCE_SEVERITY_OVERRIDES is not valid JSON: {e}")

        policy = CorroborationPolicy(
            min_sources=int(os.getenv("EVIDENCE_MIN_SOURCES", "1")),
            independence_rule=IndependenceRule(
                os.getenv("EVIDENCE_INDEPENDENCE_RULE", IndependenceRule.DIFFERENT_ROOT_DOMAIN.value)
            ),
            requires_primary=_env_bool("EVIDENCE_REQUIRES_PRIMARY", False),
        )

        values = dict(
            narrative_path=os.getenv("EVIDENCE_NARRATIVE_PATH", "articles/full.md"),
            capture_secret=secret,
            openai_api_key=api_key,
            judge_model=os.getenv("EVIDENCE_JUDGE_MODEL", "gpt-4o-mini"),
            judge_timeout=float(os.getenv("EVIDENCE_JUDGE_TIMEOUT", "30")),
            semantic_enabled=_env_bool("EVIDENCE_SEMANTIC_ENABLED", True),
            max_concurrency=int(os.getenv("EVIDENCE_MAX_CONCURRENCY", "4")),
            require_legal_review=_env_bool("EVIDENCE_REQUIRE_LEGAL_REVIEW", False),
            default_policy=policy,
            severity_overrides=severity_overrides,
            thresholds=VerificationThresholds.from_env(),
        )
        values.update(overrides or {})
        return cls(**values)
