"""ChatGPT implementation of the semantic judge interface."""

import json
import logging
from typing import Dict, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from ...domain.ports.semantic_judge import JudgeRequest, SemanticJudge, SemanticVerdict

logger = logging.getLogger(__name__)


class ChatGPTJudgeConfig(BaseModel):
    """Configuration for the ChatGPT judge."""

    api_key: str = Field(..., description="OpenAI API key")
    model: str = Field(default="gpt-4o-mini", description="Model used for judgment")
    temperature: float = Field(default=0.0, description="Temperature for responses")
    max_tokens: int = Field(default=600, description="Maximum tokens per response")
    timeout: float = Field(default=30.0, description="API timeout in seconds")
    base_url: str = Field(default="https://api.openai.com/v1", description="API base URL")


class ChatGPTJudge(SemanticJudge):
    """Asks a chat completion model whether captured text supports a claim."""

    def __init__(self, config: Optional[ChatGPTJudgeConfig] = None):
        """Initialize the judge."""
        self._config = config or ChatGPTJudgeConfig(api_key="")
        self._client: Optional[httpx.AsyncClient] = None
        self._initialized = False

    async def initialize(self) -> None:
        """Create the HTTP client and verify API access."""
        if not self._config.api_key:
            raise ConnectionError("Failed to initialize ChatGPT judge: no API key configured")
        try:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self._config.base_url,
                    timeout=self._config.timeout,
                    headers={
                        "Authorization": f"Bearer {self._config.api_key}",
                        "Content-Type": "application/json",
                    },
                )

            response = await self._client.post(
                "/chat/completions",
                json={
                    "model": self._config.model,
                    "messages": [{"role": "system", "content": "Test connection"}],
                    "max_tokens": 5,
                },
            )
            response.raise_for_status()
            self._initialized = True
            logger.info(f"✅ ChatGPT judge ready ({self._config.model})")
        except Exception as e:
            self._initialized = False
            if self._client:
                await self._client.aclose()
                self._client = None
            raise ConnectionError(f"Failed to initialize ChatGPT judge: {e}")

    async def judge(self, request: JudgeRequest) -> SemanticVerdict:
        """Decide whether the evidence supports the claim.

        Raises:
            RuntimeError: If the judge is not initialized
            ValueError: If the model answer is not a valid verdict
        """
        if not self._client:
            raise RuntimeError("Provider not initialized")

        response = await self._client.post(
            "/chat/completions",
            json={
                "model": self._config.model,
                "messages": [
                    {"role": "system", "content": "You verify claims against captured sources. Answer in JSON only."},
                    {"role": "user", "content": request.prompt},
                ],
                "temperature": self._config.temperature,
                "max_tokens": self._config.max_tokens,
                "response_format": {"type": "json_object"},
            },
        )
        response.raise_for_status()
        content = response.json()["choices"][0]["message"]["content"]

        try:
            result = json.loads(content)
            verdict = SemanticVerdict(
                supported=bool(result.get("supported", False)),
                contradicted=bool(result.get("contradicted", False)),
                confidence=max(0.0, min(1.0, float(result.get("confidence", 0.0)))),
                supporting_quote=result.get("supporting_quote") or None,
                unsupported_aspects=[str(a) for a in result.get("unsupported_aspects") or []],
            )
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError, ValidationError) as e:
            raise ValueError(f"Unexpected judge response for {request.source_id}: {e}")

        logger.debug(
            f"📊 Verdict for {request.source_id}: supported={verdict.supported} "
            f"contradicted={verdict.contradicted} confidence={verdict.confidence:.2f}"
        )
        return verdict

    async def shutdown(self) -> None:
        """Clean up resources and shut down the judge."""
        if self._client:
            await self._client.aclose()
            self._client = None
        self._initialized = False

    @property
    def provider_name(self) -> str:
        return "ChatGPT"

    @property
    def is_available(self) -> bool:
        return self._initialized and self._client is not None

    @property
    def capabilities(self) -> Dict[str, bool]:
        return {
            "semantic_judgment": True,
            "contradiction_detection": True,
            "verbatim_quotes": True,
        }
