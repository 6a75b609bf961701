"""Project and label tools."""

from __future__ import annotations

from typing import Any

from taskflow.models import ToolResult
from taskflow.tools.base import DatabaseTool


class ListProjectsTool(DatabaseTool):
    name = "list_projects"
    description = "List all projects for the user"
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "includeArchived": {"type": "boolean", "description": "Include archived projects"},
        },
    }

    async def run(self, user_id: str, timezone: str = "UTC", **kwargs: Any) -> ToolResult:
        return ToolResult.ok(self._db.list_projects(user_id, include_archived=bool(kwargs.get("includeArchived"))))


class CreateProjectTool(DatabaseTool):
    name = "create_project"
    description = "Create a new project"
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": "Project name"},
            "color": {"type": "string", "description": "Project color"},
        },
        "required": ["name"],
    }

    async def run(self, user_id: str, timezone: str = "UTC", **kwargs: Any) -> ToolResult:
        name = kwargs["name"].strip()
        if not name:
            return ToolResult.fail("Project name must not be empty")
        return ToolResult.ok(self._db.create_project(user_id, name, color=kwargs.get("color")))


class ListLabelsTool(DatabaseTool):
    name = "list_labels"
    description = "List all labels for the user"
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {},
    }

    async def run(self, user_id: str, timezone: str = "UTC", **kwargs: Any) -> ToolResult:
        return ToolResult.ok(self._db.list_labels(user_id))


class CreateLabelTool(DatabaseTool):
    name = "create_label"
    description = "Create a new label"
    parameters_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": "Label name"},
            "color": {"type": "string", "description": "Label color"},
        },
        "required": ["name"],
    }

    async def run(self, user_id: str, timezone: str = "UTC", **kwargs: Any) -> ToolResult:
        name = kwargs["name"].strip()
        if not name:
            return ToolResult.fail("Label name must not be empty")
        return ToolResult.ok(self._db.create_label(user_id, name, color=kwargs.get("color")))


PROJECT_TOOLS = (ListProjectsTool, CreateProjectTool, ListLabelsTool, CreateLabelTool)
