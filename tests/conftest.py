"""Test configuration and common fixtures."""

from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from evidence_checker.domain.models.claim import CorroborationPolicy
from evidence_checker.domain.ports.semantic_judge import JudgeRequest, SemanticVerdict
from evidence_checker.domain.services.binding_verifier import BindingVerifier
from evidence_checker.domain.services.claim_verifier import ClaimVerifier
from evidence_checker.domain.services.corroboration import CorroborationRegistry
from evidence_checker.domain.services.gap_generator import GapGenerator
from evidence_checker.domain.services.gate_evaluator import GateEvaluator
from evidence_checker.domain.services.integrity_verifier import IntegrityVerifier
from evidence_checker.domain.services.legal_wording import LegalWordingChecker
from evidence_checker.domain.services.verification_pipeline import VerificationPipeline
from evidence_checker.infrastructure.config import CheckerSettings
from evidence_checker.infrastructure.storage.case_workspace import CaseWorkspace

TEST_SECRET = "test-capture-secret"
CAPTURED_AT = "2024-03-14T09:26:53.589Z"

HOUSING_HTML = b"""<html>
<head><title>Housing report</title><script>var tracking = 1;</script></head>
<body>
<nav>Home | Reports | Contact</nav>
<article>
<h1>Housing costs 2024</h1>
<p>The annual survey found that 52% of tenants in Springfield paid more rent than the previous year.</p>
<p>Average monthly rent reached $1,250 across the region.</p>
</article>
<footer>Copyright Example Org</footer>
</body>
</html>
"""

ASSISTANCE_TEXT = (
    b"A regional study by the Housing Institute reported that 1.2 million households "
    b"received rental assistance in 2023.\n"
)

SAMPLE_NARRATIVE = """# Rent pressure

The annual survey found that 52% of tenants in Springfield paid more rent [S001].
Average monthly rent reached $1,250 across the region [S001].
The Housing Institute reported that 1.2 million households received rental assistance [S002].

## Sources

- [S001](https://example.org/reports/housing-2024)
- [S002](https://news.example.net/articles/rent-study)
"""


class StubJudge:
    """Deterministic semantic judge that records every request."""

    def __init__(self, verdict: Optional[SemanticVerdict] = None, available: bool = True, error: Exception = None):
        self.verdict = verdict or SemanticVerdict(supported=True, confidence=0.95)
        self.available = available
        self.error = error
        self.requests: List[JudgeRequest] = []

    async def initialize(self) -> None:
        self.available = True

    async def shutdown(self) -> None:
        self.available = False

    async def judge(self, request: JudgeRequest) -> SemanticVerdict:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.verdict

    @property
    def provider_name(self) -> str:
        return "Stub"

    @property
    def is_available(self) -> bool:
        return self.available

    @property
    def capabilities(self) -> Dict[str, bool]:
        return {"semantic_judgment": True}


@pytest.fixture
def settings() -> CheckerSettings:
    """Settings with a fixed secret and no semantic judge."""
    return CheckerSettings(capture_secret=TEST_SECRET, semantic_enabled=False)


@pytest.fixture
def case_dir(tmp_path: Path) -> Path:
    path = tmp_path / "case-housing"
    path.mkdir()
    return path


@pytest.fixture
def workspace(case_dir: Path, settings: CheckerSettings) -> CaseWorkspace:
    return CaseWorkspace(case_dir, settings)


@pytest.fixture
def write_narrative(case_dir: Path) -> Callable[[str], Path]:
    """Write articles/full.md for the case."""

    def _write(text: str) -> Path:
        path = case_dir / "articles" / "full.md"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_case(workspace: CaseWorkspace, write_narrative) -> CaseWorkspace:
    """Two captured sources and a narrative whose claims they support."""
    workspace.capture(
        "https://www.example.org/reports/housing-2024",
        {"raw.html": HOUSING_HTML},
        title="Housing report",
        capture_method="browser",
        captured_at=CAPTURED_AT,
    )
    workspace.capture(
        "https://news.example.net/articles/rent-study",
        {"text.md": ASSISTANCE_TEXT},
        title="Rent study",
        capture_method="fetch",
        captured_at=CAPTURED_AT,
    )
    write_narrative(SAMPLE_NARRATIVE)
    return workspace


@pytest.fixture
def make_pipeline(settings: CheckerSettings) -> Callable[..., VerificationPipeline]:
    """Build a pipeline over a workspace with an optional judge."""

    def _make(store: CaseWorkspace, judge=None, policy: Optional[CorroborationPolicy] = None) -> VerificationPipeline:
        return VerificationPipeline(
            store=store,
            integrity_verifier=IntegrityVerifier(TEST_SECRET),
            claim_verifier=ClaimVerifier(settings.thresholds, judge),
            corroboration=CorroborationRegistry(policy or settings.default_policy),
            legal_checker=LegalWordingChecker(),
            gap_generator=GapGenerator(),
            gate_evaluator=GateEvaluator(),
            binding_verifier=BindingVerifier(),
            max_concurrency=2,
        )

    return _make
