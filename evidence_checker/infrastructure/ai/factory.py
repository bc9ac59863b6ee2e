"""Factory for creating and managing semantic judges."""

import os
from typing import Dict, Optional, Type

from ...domain.ports.semantic_judge import SemanticJudge
from .chatgpt_judge import ChatGPTJudge, ChatGPTJudgeConfig


class JudgeFactory:
    """Factory for creating and managing semantic judges."""

    def __init__(self):
        """Initialize the factory."""
        self._providers: Dict[str, Type[SemanticJudge]] = {}
        self._instances: Dict[str, SemanticJudge] = {}

        self.register_provider("chatgpt", ChatGPTJudge)

    def register_provider(self, name: str, provider_class: Type[SemanticJudge]) -> None:
        """Register a new judge.

        Args:
            name: Provider name
            provider_class: Provider class
        """
        self._providers[name] = provider_class

    async def create_provider(self, name: str, **kwargs) -> SemanticJudge:
        """Create and initialize a judge instance.

        Args:
            name: Provider name
            **kwargs: Provider-specific configuration

        Returns:
            Initialized judge instance

        Raises:
            ValueError: If provider not found
        """
        if name not in self._providers:
            raise ValueError(f"Provider '{name}' not found")

        if name not in self._instances:
            if name == "chatgpt":
                kwargs.setdefault("api_key", os.getenv("OPENAI_API_KEY", ""))
                provider = self._providers[name](config=ChatGPTJudgeConfig(**kwargs))
            else:
                provider = self._providers[name](**kwargs)

            await provider.initialize()
            self._instances[name] = provider

        return self._instances[name]

    def get_provider(self, name: str) -> Optional[SemanticJudge]:
        """Get an existing judge instance, None if it was never created."""
        return self._instances.get(name)

    @property
    def available_providers(self) -> Dict[str, bool]:
        """Registered judges and whether an instance is running."""
        return {name: name in self._instances for name in self._providers}

    async def shutdown(self) -> None:
        """Shutdown all judge instances."""
        for provider in self._instances.values():
            await provider.shutdown()
        self._instances.clear()

