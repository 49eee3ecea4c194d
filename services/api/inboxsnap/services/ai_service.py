"""Summarization collaborator: message text in, short bullet summary out."""

import asyncio
import logging
import re
from abc import ABC, abstractmethod

from inboxsnap.config import Settings
from inboxsnap.services.ai_prompts import SNAPSHOT_PROMPT

logger = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 1000
BULLET_PREFIX = re.compile(r"^\s*(?:[*\-•]|\d+[.)])\s*")


class AIProvider(ABC):
    """Abstract base class for AI providers."""

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Send a prompt and return the completion text."""
        ...


class OpenAIProvider(AIProvider):
    """OpenAI-compatible API provider."""

    def __init__(self, api_key: str, model: str) -> None:
        import openai

        self._client = openai.AsyncOpenAI(api_key=api_key)
        self._model = model

    async def complete(self, prompt: str) -> str:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.3,
            max_tokens=300,
        )
        return response.choices[0].message.content or ""


class AnthropicProvider(AIProvider):
    """Anthropic API provider."""

    def __init__(self, api_key: str, model: str) -> None:
        import anthropic

        self._client = anthropic.AsyncAnthropic(api_key=api_key)
        self._model = model

    async def complete(self, prompt: str) -> str:
        response = await self._client.messages.create(
            model=self._model,
            max_tokens=300,
            messages=[{"role": "user", "content": prompt}],
        )
        return response.content[0].text if response.content else ""


def build_provider(settings: Settings) -> AIProvider:
    if settings.ai_provider == "openai":
        return OpenAIProvider(
            api_key=settings.openai_api_key.get_secret_value(),
            model=settings.openai_model,
        )
    if settings.ai_provider == "anthropic":
        return AnthropicProvider(
            api_key=settings.anthropic_api_key.get_secret_value(),
            model=settings.anthropic_model,
        )
    raise ValueError(f"Unknown AI provider: {settings.ai_provider}")


def format_bullets(raw: str) -> str:
    """Normalise model output to ``* ``-prefixed lines, bounded in length."""
    lines = [BULLET_PREFIX.sub("", line).strip() for line in raw.splitlines()]
    bullets = "\n".join(f"* {line}" for line in lines if line)
    return bullets[:SUMMARY_MAX_CHARS]


class SnapshotSummarizer:
    """Bounded-time summarization. Any failure is reported as ``None``."""

    def __init__(self, provider: AIProvider, timeout_seconds: float, input_chars: int = 2000) -> None:
        self._provider = provider
        self._timeout = timeout_seconds
        self._input_chars = input_chars

    async def summarize(self, text: str) -> str | None:
        if not text or not text.strip():
            return None

        prompt = SNAPSHOT_PROMPT.format(body=text.strip()[: self._input_chars])
        try:
            raw = await asyncio.wait_for(self._provider.complete(prompt), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Summarization timed out after %.1fs", self._timeout)
            return None
        except Exception as e:
            logger.warning("Summarization failed: %s", type(e).__name__)
            return None

        return format_bullets(raw or "") or None


_summarizer: SnapshotSummarizer | None = None


def get_summarizer(settings: Settings) -> SnapshotSummarizer:
    global _summarizer
    if _summarizer is None:
        _summarizer = SnapshotSummarizer(
            build_provider(settings),
            timeout_seconds=settings.summary_timeout_seconds,
            input_chars=settings.summary_input_chars,
        )
    return _summarizer
