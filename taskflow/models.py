"""Core domain models used across layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from taskflow.priority import DEFAULT_PRIORITY, normalize_priority

RECURRENCES = ("daily", "weekly", "monthly", "yearly")


@dataclass(slots=True)
class EntityRef:
    """An ``{id, name}`` pair for a project or label."""

    id: str
    name: str


@dataclass(slots=True)
class ParsedTask:
    """Structured task draft extracted from free text.

    Only ``content`` is guaranteed; every other field is best-effort.
    """

    content: str
    due_date: str | None = None
    due_time: str | None = None
    priority: str = DEFAULT_PRIORITY
    project: str | None = None
    labels: list[str] = field(default_factory=list)
    recurrence: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParsedTask:
        labels = data.get("labels")
        recurrence = data.get("recurrence")
        return cls(
            content=data["content"],
            due_date=_str_or_none(data.get("dueDate")),
            due_time=_str_or_none(data.get("dueTime")),
            priority=normalize_priority(data.get("priority", DEFAULT_PRIORITY)),
            project=_str_or_none(data.get("project")),
            labels=[name for name in labels if isinstance(name, str)] if isinstance(labels, list) else [],
            recurrence=recurrence if recurrence in RECURRENCES else None,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"content": self.content, "priority": self.priority}
        if self.due_date:
            payload["dueDate"] = self.due_date
        if self.due_time:
            payload["dueTime"] = self.due_time
        if self.project:
            payload["project"] = self.project
        if self.labels:
            payload["labels"] = list(self.labels)
        if self.recurrence:
            payload["recurrence"] = self.recurrence
        return payload


@dataclass(slots=True)
class ParseContext:
    """Names the parser may match project and label references against."""

    projects: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ChatMessage:
    """One entry of a conversation history."""

    role: str
    content: str | list[dict[str, Any]]


@dataclass(slots=True)
class ChatContext:
    """Request-scoped snapshot of the user's projects and labels."""

    user_id: str
    projects: list[EntityRef] = field(default_factory=list)
    labels: list[EntityRef] = field(default_factory=list)
    conversation_id: str | None = None


@dataclass(slots=True)
class ToolResult:
    """Uniform envelope returned by every tool execution."""

    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any) -> ToolResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> ToolResult:
        return cls(success=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class ChatAction:
    """Audit entry for one executed tool call."""

    tool: str
    input: dict[str, Any]
    result: ToolResult

    def to_dict(self) -> dict[str, Any]:
        return {"tool": self.tool, "input": self.input, "result": self.result.to_dict()}


@dataclass(slots=True)
class ChatResponse:
    """Final answer of an orchestration run plus its action trail."""

    response: str
    actions: list[ChatAction] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"response": self.response, "actions": [a.to_dict() for a in self.actions]}


@dataclass(slots=True)
class LLMToolCall:
    """Tool invocation returned by an LLM provider."""

    name: str
    arguments: dict[str, Any]
    call_id: str | None = None


@dataclass(slots=True)
class LLMResponse:
    """Result from an LLM generation request.

    ``blocks`` keeps the raw content blocks so they can be echoed back into
    the history unchanged; ``content`` is the first text block.
    """

    content: str
    tool_calls: list[LLMToolCall] = field(default_factory=list)
    stop_reason: str | None = None
    blocks: list[dict[str, Any]] = field(default_factory=list)
    raw: dict[str, Any] | None = None

    @property
    def wants_tools(self) -> bool:
        return self.stop_reason == "tool_use"


@dataclass(slots=True)
class QuickAddResult:
    """Outcome of creating a task straight from free text."""

    task: dict[str, Any]
    parsed: ParsedTask
    project_created: bool = False
    labels_created: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "task": self.task,
            "parsed": self.parsed.to_dict(),
            "created": {"project": self.project_created, "labels": self.labels_created},
        }


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None
