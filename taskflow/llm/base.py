"""LLM provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from taskflow.models import LLMResponse


class LLMProvider(ABC):
    """Abstract model provider used by the parser and the orchestrator."""

    @abstractmethod
    async def generate(
        self,
        messages: list[dict[str, Any]],
        system: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
        api_key: str | None = None,
    ) -> LLMResponse:
        """Generate a model response.

        ``api_key`` overrides the configured credential for this call.
        """
