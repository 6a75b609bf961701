"""Anthropic Messages API implementation of LLMProvider."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from taskflow.config import Settings
from taskflow.errors import LLMServiceError
from taskflow.llm.base import LLMProvider
from taskflow.llm.client_cache import ClientCache
from taskflow.models import LLMResponse, LLMToolCall

_LOGGER = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"

_MAX_RETRIES = 3
_RETRY_BACKOFF_SECONDS = [5, 15, 45]
# 429 rate limited, 529 overloaded
_RETRYABLE_STATUS = {429, 529}


class AnthropicProvider(LLMProvider):
    """LLM provider calling ``POST /v1/messages`` with tool definitions."""

    def __init__(self, settings: Settings, client_cache: ClientCache | None = None) -> None:
        self._settings = settings
        self._clients = client_cache or ClientCache(self._new_client, max_size=settings.client_cache_size)

    def _new_client(self, api_key: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._settings.anthropic_base_url,
            timeout=httpx.Timeout(self._settings.request_timeout_seconds),
            headers={
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            },
        )

    async def aclose(self) -> None:
        await self._clients.aclose()

    async def generate(
        self,
        messages: list[dict[str, Any]],
        system: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
        api_key: str | None = None,
    ) -> LLMResponse:
        key = api_key or self._settings.anthropic_api_key
        if not key:
            raise LLMServiceError("No Anthropic API key available. Set ANTHROPIC_API_KEY or provide a custom key.")

        payload: dict[str, Any] = {
            "model": self._settings.anthropic_model,
            "max_tokens": max_tokens or self._settings.chat_max_tokens,
            "messages": messages,
        }
        if system:
            payload["system"] = system
        if tools:
            payload["tools"] = tools

        try:
            for attempt in range(_MAX_RETRIES + 1):
                # Fetched per attempt: another key may evict this one during a backoff.
                client = await self._clients.get(key)
                response = await _post(client, payload)
                if response.status_code in _RETRYABLE_STATUS and attempt < _MAX_RETRIES:
                    wait = _RETRY_BACKOFF_SECONDS[attempt]
                    _LOGGER.warning(
                        "Anthropic API returned %d, retrying in %ds (attempt %d/%d)",
                        response.status_code,
                        wait,
                        attempt + 1,
                        _MAX_RETRIES,
                    )
                    await asyncio.sleep(wait)
                    continue
                response.raise_for_status()
                break
        except httpx.HTTPStatusError as exc:
            raise LLMServiceError(
                f"Anthropic API error {exc.response.status_code}: {_error_message(exc.response)}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise LLMServiceError(f"Anthropic API request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise LLMServiceError("Anthropic API returned a non-JSON body", status_code=response.status_code) from exc
        if not isinstance(data, dict):
            raise LLMServiceError("Anthropic API returned an unexpected body", status_code=response.status_code)
        blocks: list[dict[str, Any]] = data.get("content") or []
        stop_reason = data.get("stop_reason")
        text = next((block.get("text", "") for block in blocks if block.get("type") == "text"), "")
        tool_calls = [
            LLMToolCall(
                name=block.get("name", ""),
                arguments=block.get("input") if isinstance(block.get("input"), dict) else {},
                call_id=block.get("id"),
            )
            for block in blocks
            if block.get("type") == "tool_use"
        ]
        _LOGGER.info(
            "LLM response: stop_reason=%r content=%r tool_calls=%r",
            stop_reason,
            text[:200],
            [call.name for call in tool_calls],
        )
        return LLMResponse(content=text, tool_calls=tool_calls, stop_reason=stop_reason, blocks=blocks, raw=data)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return response.text[:200]


async def _post(client: httpx.AsyncClient, payload: dict[str, Any]) -> httpx.Response:
    try:
        return await client.post("/v1/messages", json=payload)
    except RuntimeError as exc:
        # httpx refuses to send on a client closed by cache eviction.
        if not client.is_closed:
            raise
        raise LLMServiceError(f"Anthropic API request failed: {exc}") from exc
