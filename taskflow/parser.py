"""Single-shot natural-language task parsing."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime

from taskflow.dates import now_iso_with_offset
from taskflow.errors import LLMServiceError, ParseErrorKind, TaskParseError
from taskflow.llm.base import LLMProvider
from taskflow.models import ParseContext, ParsedTask
from taskflow.prompts import TASK_PARSER_PROMPT

LOGGER = logging.getLogger(__name__)


class TaskParser:
    """Turns one free-text instruction into a ``ParsedTask`` with one model call."""

    def __init__(self, llm: LLMProvider, max_tokens: int = 500, request_timeout_seconds: float = 60.0) -> None:
        self._llm = llm
        self._max_tokens = max_tokens
        self._request_timeout_seconds = request_timeout_seconds

    async def parse(
        self,
        text: str,
        context: ParseContext | None = None,
        timezone: str = "UTC",
        api_key: str | None = None,
        now: datetime | None = None,
    ) -> ParsedTask:
        """Parse ``text``.

        Raises:
            TaskParseError: with ``kind`` telling a non-text reply, invalid
                JSON, a missing ``content`` field, or any other failure apart.
            LLMServiceError: the model service itself failed.
        """
        context = context or ParseContext()
        payload = {
            "input": text,
            "availableProjects": context.projects,
            "availableLabels": context.labels,
            "currentDate": now_iso_with_offset(timezone, now),
            "timezone": timezone,
        }
        try:
            response = await asyncio.wait_for(
                self._llm.generate(
                    [{"role": "user", "content": json.dumps(payload)}],
                    system=TASK_PARSER_PROMPT,
                    max_tokens=self._max_tokens,
                    api_key=api_key,
                ),
                timeout=self._request_timeout_seconds,
            )

            first = response.blocks[0] if response.blocks else {"type": "text", "text": response.content}
            if first.get("type") != "text":
                raise TaskParseError(ParseErrorKind.UNEXPECTED_RESPONSE, "Unexpected response type from AI")

            data = json.loads(strip_code_fences(first.get("text", "")))
            if not isinstance(data, dict) or not isinstance(data.get("content"), str) or not data["content"]:
                raise TaskParseError(ParseErrorKind.MISSING_CONTENT, "AI response missing required content field")
            return ParsedTask.from_dict(data)
        except (TaskParseError, LLMServiceError):
            raise
        except json.JSONDecodeError as exc:
            LOGGER.warning("Task parser returned invalid JSON: %s", exc)
            raise TaskParseError(ParseErrorKind.INVALID_JSON, "Failed to parse AI response as JSON") from exc
        except Exception as exc:  # noqa: BLE001
            detail = str(exc) or type(exc).__name__
            raise TaskParseError(ParseErrorKind.FAILED, f"NLP parsing failed: {detail}") from exc


def strip_code_fences(text: str) -> str:
    """Remove an optional ```json / ``` wrapper around a model reply."""

    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json"):]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()
