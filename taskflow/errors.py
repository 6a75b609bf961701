"""Error types raised by the assistant core."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from taskflow.models import ChatAction


class ParseErrorKind(str, Enum):
    """Why a task parse failed, so callers can decide to retry or surface it."""

    UNEXPECTED_RESPONSE = "unexpected_response"
    INVALID_JSON = "invalid_json"
    MISSING_CONTENT = "missing_content"
    FAILED = "failed"


class TaskParseError(Exception):
    """Raised when free text cannot be turned into a task draft."""

    def __init__(self, kind: ParseErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class LLMServiceError(RuntimeError):
    """The model service could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ToolLoopExceededError(RuntimeError):
    """The model kept requesting tools past the configured round cap."""

    def __init__(self, max_rounds: int, actions: list[ChatAction]) -> None:
        super().__init__(f"Tool loop exceeded {max_rounds} rounds")
        self.max_rounds = max_rounds
        self.actions = actions


class EntityNotFoundError(LookupError):
    """Row is missing or belongs to another user; the two are not told apart."""


class ConversationNotFoundError(EntityNotFoundError):
    def __init__(self) -> None:
        super().__init__("Conversation not found")
