"""Tests for the semantic judge factory."""

import pytest

from evidence_checker.infrastructure.ai.factory import JudgeFactory

from conftest import StubJudge


@pytest.mark.asyncio
async def test_unknown_provider():
    factory = JudgeFactory()

    with pytest.raises(ValueError, match="Provider 'gemini' not found"):
        await factory.create_provider("gemini")


@pytest.mark.asyncio
async def test_registered_provider_is_created_once():
    """Test a registered judge is initialized once and reused."""
    factory = JudgeFactory()
    factory.register_provider("stub", StubJudge)

    first = await factory.create_provider("stub")
    second = await factory.create_provider("stub")

    assert first is second
    assert first.is_available
    assert factory.get_provider("stub") is first
    assert factory.available_providers == {"chatgpt": False, "stub": True}

    await factory.shutdown()

    assert not first.is_available
    assert factory.get_provider("stub") is None


@pytest.mark.asyncio
async def test_chatgpt_without_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    factory = JudgeFactory()

    with pytest.raises(ConnectionError):
        await factory.create_provider("chatgpt")
    assert factory.get_provider("chatgpt") is None
