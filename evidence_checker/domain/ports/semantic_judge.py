"""Protocol for semantic judgment providers."""

from typing import Dict, List, Optional, Protocol

from pydantic import BaseModel, Field


class JudgeRequest(BaseModel):
    """Everything a judge needs to decide whether evidence supports a claim."""
    claim_text: str
    source_id: str
    source_url: str = ""
    source_title: str = ""
    evidence_text: str = Field(..., description="Extracted evidence text, already truncated")
    prompt: str = Field(..., description="Full rubric prompt built by the claim verifier")


class SemanticVerdict(BaseModel):
    """Structured verdict returned by a judge."""
    supported: bool
    contradicted: bool = False
    confidence: float = Field(..., ge=0.0, le=1.0)
    supporting_quote: Optional[str] = None
    unsupported_aspects: List[str] = Field(default_factory=list)


class SemanticJudge(Protocol):
    """Protocol defining the interface for semantic judgment providers."""

    async def initialize(self) -> None:
        """Initialize the provider."""
        ...

    async def shutdown(self) -> None:
        """Clean up resources."""
        ...

    async def judge(self, request: JudgeRequest) -> SemanticVerdict:
        """Decide whether the evidence supports the claim."""
        ...

    @property
    def provider_name(self) -> str:
        """Get the name of the provider."""
        ...

    @property
    def is_available(self) -> bool:
        """Check if the provider is ready."""
        ...

    @property
    def capabilities(self) -> Dict[str, bool]:
        """Get the provider's capabilities."""
        ...
