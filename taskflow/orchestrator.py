"""Multi-round tool-calling conversation loop."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Any

from taskflow.dates import zoned_now
from taskflow.db import Database
from taskflow.errors import LLMServiceError, ToolLoopExceededError
from taskflow.llm.base import LLMProvider
from taskflow.models import ChatAction, ChatContext, ChatMessage, ChatResponse, EntityRef, LLMResponse, LLMToolCall
from taskflow.prompts import CHAT_SYSTEM_PROMPT
from taskflow.tools.registry import ToolRegistry

LOGGER = logging.getLogger(__name__)

FALLBACK_RESPONSE = "I completed your request."


def get_user_context(db: Database, user_id: str) -> ChatContext:
    """Snapshot the user's non-archived projects and all labels."""

    return ChatContext(
        user_id=user_id,
        projects=[EntityRef(id=p["id"], name=p["name"]) for p in db.list_projects(user_id)],
        labels=[EntityRef(id=label["id"], name=label["name"]) for label in db.list_labels(user_id)],
    )


def build_context_block(context: ChatContext, timezone: str, now: datetime | None = None) -> str:
    projects = ", ".join(f"{p.name} (id: {p.id})" for p in context.projects) or "none"
    labels = ", ".join(f"{label.name} (id: {label.id})" for label in context.labels) or "none"
    current_date = zoned_now(timezone, now).date().isoformat()
    return (
        f"User's projects: {projects}\n"
        f"User's labels: {labels}\n"
        f"Current date: {current_date}\n"
        f"User's timezone: {timezone}"
    )


class ChatOrchestrator:
    """Drives the model through tool-use rounds until it gives a final answer.

    Each round sends the whole history, runs every requested tool call
    concurrently, then appends the assistant turn and one user turn holding
    all tool results. Rounds are strictly sequential. The loop stops on a
    non tool-use reply or raises ``ToolLoopExceededError`` after
    ``max_tool_rounds`` rounds of tool execution.

    Tool effects are not rolled back if the caller cancels mid-run.
    """

    def __init__(
        self,
        llm: LLMProvider,
        tool_registry: ToolRegistry,
        request_timeout_seconds: float,
        max_tool_rounds: int = 10,
        max_tokens: int = 1024,
    ) -> None:
        self._llm = llm
        self._tool_registry = tool_registry
        self._request_timeout_seconds = request_timeout_seconds
        self._max_tool_rounds = max_tool_rounds
        self._max_tokens = max_tokens

    async def chat(
        self,
        context: ChatContext,
        message: str,
        history: list[ChatMessage] | None = None,
        timezone: str = "UTC",
        api_key: str | None = None,
        now: datetime | None = None,
    ) -> ChatResponse:
        system = f"{CHAT_SYSTEM_PROMPT}\n\n{build_context_block(context, timezone, now)}"
        messages: list[dict[str, Any]] = [{"role": m.role, "content": m.content} for m in history or []]
        messages.append({"role": "user", "content": message})
        actions: list[ChatAction] = []

        response = await self._generate(messages, system, api_key)
        rounds = 0
        while response.wants_tools and response.tool_calls:
            if rounds >= self._max_tool_rounds:
                LOGGER.warning(
                    "User %s: model still requesting tools after %d rounds", context.user_id, rounds
                )
                raise ToolLoopExceededError(self._max_tool_rounds, actions)
            rounds += 1

            results = await asyncio.gather(
                *(
                    self._tool_registry.execute(context.user_id, call.name, call.arguments, timezone=timezone)
                    for call in response.tool_calls
                )
            )
            tool_results: list[dict[str, Any]] = []
            for call, result in zip(response.tool_calls, results):
                actions.append(ChatAction(tool=call.name, input=call.arguments, result=result))
                tool_results.append(_tool_result_block(call, result.to_dict(), is_error=not result.success))
            LOGGER.info(
                "User %s round %d: executed %s",
                context.user_id,
                rounds,
                [call.name for call in response.tool_calls],
            )

            messages.append({"role": "assistant", "content": _assistant_blocks(response)})
            messages.append({"role": "user", "content": tool_results})
            response = await self._generate(messages, system, api_key)

        return ChatResponse(response=response.content or FALLBACK_RESPONSE, actions=actions)

    async def _generate(self, messages: list[dict[str, Any]], system: str, api_key: str | None) -> LLMResponse:
        try:
            # Pass a copy: the history keeps growing after this call returns.
            return await asyncio.wait_for(
                self._llm.generate(
                    list(messages),
                    system=system,
                    tools=self._tool_registry.list_tool_specs(),
                    max_tokens=self._max_tokens,
                    api_key=api_key,
                ),
                timeout=self._request_timeout_seconds,
            )
        except TimeoutError as exc:
            raise LLMServiceError("Model request timed out") from exc


def _assistant_blocks(response: LLMResponse) -> list[dict[str, Any]]:
    if response.blocks:
        return response.blocks
    blocks: list[dict[str, Any]] = []
    if response.content:
        blocks.append({"type": "text", "text": response.content})
    blocks.extend(
        {"type": "tool_use", "id": call.call_id, "name": call.name, "input": call.arguments}
        for call in response.tool_calls
    )
    return blocks


def _tool_result_block(call: LLMToolCall, result: dict[str, Any], is_error: bool) -> dict[str, Any]:
    block: dict[str, Any] = {
        "type": "tool_result",
        "tool_use_id": call.call_id,
        "content": json.dumps(result, default=str),
    }
    if is_error:
        block["is_error"] = True
    return block
