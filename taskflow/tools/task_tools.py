"""Task tools: create, complete, reopen, update, delete, list and search."""

from __future__ import annotations

import logging
from typing import Any

from taskflow.dates import combine_date_and_time, filter_window, parse_due_date, to_utc_iso
from taskflow.models import ToolResult
from taskflow.priority import VALID_PRIORITIES, priority_to_int
from taskflow.tools.base import DatabaseTool

LOGGER = logging.getLogger(__name__)

TASK_NOT_FOUND = "Task not found"
LIST_FILTERS = ["today", "tomorrow", "upcoming", "overdue", "completed", "all"]
_MAX_LIMIT = 100


def _task_id_schema(action: str) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "taskId": {"type": "string", "description": f"The task UUID to {action}"},
        },
        "required": ["taskId"],
    }


def _limit(value: float | None, default: int) -> int:
    if value is None:
        return default
    return max(1, min(int(value), _MAX_LIMIT))


class CreateTaskTool(DatabaseTool):
    """Create a task, placing it last in its project's ordering."""

    name = "create_task"
    description = "Create a new task for the user"
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "content": {"type": "string", "description": "The task content/title"},
            "dueDate": {"type": "string", "description": "Due date in ISO format (YYYY-MM-DD)"},
            "dueTime": {"type": "string", "description": "Due time in HH:mm format"},
            "priority": {
                "type": "string",
                "enum": list(VALID_PRIORITIES),
                "description": "Priority level (p1=urgent, p4=normal)",
            },
            "projectId": {"type": "string", "description": "Project UUID to add task to"},
            "labels": {"type": "array", "items": {"type": "string"}, "description": "Label IDs to attach"},
        },
        "required": ["content"],
    }

    async def run(self, user_id: str, timezone: str = "UTC", **kwargs: Any) -> ToolResult:
        content = kwargs["content"].strip()
        if not content:
            return ToolResult.fail("Task content must not be empty")

        project_id: str | None = kwargs.get("projectId")
        if project_id and self._db.get_project(user_id, project_id) is None:
            return ToolResult.fail("Project not found")

        label_ids: list[str] = kwargs.get("labels") or []
        if set(label_ids) - self._db.owned_label_ids(user_id, label_ids):
            return ToolResult.fail("Label not found")

        due = combine_date_and_time(kwargs.get("dueDate"), kwargs.get("dueTime"))
        task = self._db.create_task(
            user_id,
            content,
            project_id=project_id,
            priority=priority_to_int(kwargs.get("priority")),
            due_date=to_utc_iso(due) if due else None,
            label_ids=label_ids,
        )
        LOGGER.info("Created task %s for user %s", task["id"], user_id)
        return ToolResult.ok(task)


class CompleteTaskTool(DatabaseTool):
    name = "complete_task"
    description = "Mark a task as complete"
    parameters_schema: dict[str, Any] = _task_id_schema("complete")

    async def run(self, user_id: str, timezone: str = "UTC", **kwargs: Any) -> ToolResult:
        task = self._db.set_task_completed(user_id, kwargs["taskId"], completed=True)
        return ToolResult.ok(task) if task else ToolResult.fail(TASK_NOT_FOUND)


class ReopenTaskTool(DatabaseTool):
    name = "reopen_task"
    description = "Reopen a completed task"
    parameters_schema: dict[str, Any] = _task_id_schema("reopen")

    async def run(self, user_id: str, timezone: str = "UTC", **kwargs: Any) -> ToolResult:
        task = self._db.set_task_completed(user_id, kwargs["taskId"], completed=False)
        return ToolResult.ok(task) if task else ToolResult.fail(TASK_NOT_FOUND)


class UpdateTaskTool(DatabaseTool):
    """Update content, due date or priority; omitted fields are left alone."""

    name = "update_task"
    description = "Update an existing task"
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "taskId": {"type": "string", "description": "The task UUID to update"},
            "content": {"type": "string", "description": "New task content"},
            "dueDate": {"type": "string", "description": "New due date in ISO format"},
            "priority": {"type": "string", "enum": list(VALID_PRIORITIES), "description": "New priority"},
        },
        "required": ["taskId"],
    }

    async def run(self, user_id: str, timezone: str = "UTC", **kwargs: Any) -> ToolResult:
        content = kwargs.get("content")
        if content is not None and not content.strip():
            return ToolResult.fail("Task content must not be empty")
        due_date = kwargs.get("dueDate")
        priority = kwargs.get("priority")

        task = self._db.update_task(
            user_id,
            kwargs["taskId"],
            content=content.strip() if content else None,
            due_date=to_utc_iso(parse_due_date(due_date)) if due_date else None,
            priority=priority_to_int(priority) if priority else None,
        )
        return ToolResult.ok(task) if task else ToolResult.fail(TASK_NOT_FOUND)


class DeleteTaskTool(DatabaseTool):
    name = "delete_task"
    description = "Delete a task"
    parameters_schema: dict[str, Any] = _task_id_schema("delete")

    async def run(self, user_id: str, timezone: str = "UTC", **kwargs: Any) -> ToolResult:
        task_id = kwargs["taskId"]
        if not self._db.delete_task(user_id, task_id):
            return ToolResult.fail(TASK_NOT_FOUND)
        LOGGER.info("Deleted task %s for user %s", task_id, user_id)
        return ToolResult.ok({"deleted": task_id})


class ListTasksTool(DatabaseTool):
    """List tasks by named filter; day boundaries follow the user's timezone."""

    name = "list_tasks"
    description = "List tasks with optional filters"
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "filter": {"type": "string", "enum": LIST_FILTERS, "description": "Filter type for tasks"},
            "projectId": {"type": "string", "description": "Filter by project UUID"},
            "limit": {"type": "number", "description": "Maximum number of tasks to return"},
        },
    }

    async def run(self, user_id: str, timezone: str = "UTC", **kwargs: Any) -> ToolResult:
        filter_name = kwargs.get("filter", "all")
        due_from, due_before = filter_window(filter_name, timezone)
        tasks = self._db.list_tasks(
            user_id,
            completed=filter_name == "completed",
            due_from=due_from,
            due_before=due_before,
            project_id=kwargs.get("projectId"),
            limit=_limit(kwargs.get("limit"), 20),
        )
        return ToolResult.ok(tasks)


class SearchTasksTool(DatabaseTool):
    name = "search_tasks"
    description = "Search tasks by content"
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query"},
            "limit": {"type": "number", "description": "Maximum results"},
        },
        "required": ["query"],
    }

    async def run(self, user_id: str, timezone: str = "UTC", **kwargs: Any) -> ToolResult:
        tasks = self._db.search_tasks(user_id, kwargs["query"], limit=_limit(kwargs.get("limit"), 10))
        return ToolResult.ok(tasks)


TASK_TOOLS = (
    CreateTaskTool,
    CompleteTaskTool,
    ReopenTaskTool,
    UpdateTaskTool,
    DeleteTaskTool,
    ListTasksTool,
    SearchTasksTool,
)
