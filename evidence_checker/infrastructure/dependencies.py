"""Dependency injection for the verification pipeline."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from ..domain.ports.semantic_judge import SemanticJudge
from ..domain.services.binding_verifier import BindingVerifier
from ..domain.services.claim_verifier import ClaimVerifier
from ..domain.services.corroboration import CorroborationRegistry
from ..domain.services.gap_generator import GapGenerator
from ..domain.services.gate_evaluator import GateEvaluator
from ..domain.services.integrity_verifier import IntegrityVerifier
from ..domain.services.legal_wording import LegalWordingChecker
from ..domain.services.verification_pipeline import VerificationPipeline
from .ai.factory import JudgeFactory
from .config import CheckerSettings
from .storage.case_workspace import CaseWorkspace

load_dotenv()

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Builds pipelines for case directories from one set of settings."""

    def __init__(self, settings: Optional[CheckerSettings] = None, judge_factory: Optional[JudgeFactory] = None):
        """Initialize service container."""
        logger.info("🔧 Setting up service container...")
        self.settings = settings or CheckerSettings.from_env()
        self.judge_factory = judge_factory or JudgeFactory()
        logger.info("✅ Service container setup completed")

    async def get_judge(self) -> Optional[SemanticJudge]:
        """The semantic judge, or None when it is disabled or cannot be reached."""
        if not self.settings.judge_configured:
            return None
        judge = self.judge_factory.get_provider("chatgpt")
        if judge is not None:
            return judge
        try:
            logger.info("🔨 Creating ChatGPT judge...")
            return await self.judge_factory.create_provider(
                "chatgpt",
                api_key=self.settings.openai_api_key,
                model=self.settings.judge_model,
                timeout=self.settings.judge_timeout,
            )
        except ConnectionError as e:
            logger.warning(f"⚠️ Semantic judge unavailable, ambiguous claims will need review: {e}")
            return None

    def open_case(self, case_dir: Path) -> CaseWorkspace:
        """Open a case directory.

        Raises:
            FileNotFoundError: If the directory does not exist
        """
        return CaseWorkspace(Path(case_dir), self.settings)

    async def build_pipeline(self, case_dir: Path, semantic: bool = True) -> VerificationPipeline:
        """Wire a pipeline for one case.

        Args:
            case_dir: Case directory
            semantic: Allow escalation to the semantic judge

        Returns:
            Ready-to-run pipeline
        """
        store = self.open_case(case_dir)
        judge = await self.get_judge() if semantic else None
        settings = self.settings
        return VerificationPipeline(
            store=store,
            integrity_verifier=IntegrityVerifier(settings.capture_secret),
            claim_verifier=ClaimVerifier(settings.thresholds, judge),
            corroboration=CorroborationRegistry(settings.default_policy),
            legal_checker=LegalWordingChecker(require_review=settings.require_legal_review),
            gap_generator=GapGenerator(settings.severity_overrides),
            gate_evaluator=GateEvaluator(),
            binding_verifier=BindingVerifier(),
            max_concurrency=settings.max_concurrency,
            narrative_name=settings.narrative_path,
        )

    async def shutdown(self) -> None:
        await self.judge_factory.shutdown()


@lru_cache()
def get_service_container() -> ServiceContainer:
    """Get global service container instance."""
    return ServiceContainer()
