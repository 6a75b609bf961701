"""Registry for safe tool registration and execution."""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, ValidationError, create_model

from taskflow.db import Database
from taskflow.models import ToolResult
from taskflow.tools.base import Tool
from taskflow.tools.project_tools import PROJECT_TOOLS
from taskflow.tools.task_tools import TASK_TOOLS

LOGGER = logging.getLogger(__name__)


class ToolRegistry:
    """Explicit registry of safe tools.

    ``execute`` never raises: unknown tools, invalid arguments and tool
    failures all come back as a failed ``ToolResult`` so sibling calls in
    the same round are unaffected.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._tools: dict[str, Tool] = {}
        self._input_models: dict[str, type[BaseModel]] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool
        self._input_models[tool.name] = _input_model(tool.name, tool.parameters_schema)

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def list_tool_specs(self) -> list[dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.parameters_schema,
            }
            for tool in self._tools.values()
        ]

    async def execute(
        self,
        user_id: str,
        tool_name: str,
        arguments: dict[str, Any],
        timezone: str = "UTC",
    ) -> ToolResult:
        tool = self._tools.get(tool_name)
        if tool is None:
            LOGGER.warning("Model requested unknown tool %r", tool_name)
            return ToolResult.fail(f"Unknown tool: {tool_name}")

        try:
            validated = _validate(self._input_models[tool_name], arguments)
            result = await tool.run(user_id, timezone=timezone, **validated)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Tool %s failed for user %s: %s", tool_name, user_id, exc)
            result = ToolResult.fail(str(exc) or type(exc).__name__)

        try:
            self._db.log_tool_execution(user_id, tool_name, arguments, result.to_dict(), succeeded=result.success)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Could not record execution of tool %s", tool_name)
        return result


def _input_model(tool_name: str, schema: dict[str, Any]) -> type[BaseModel]:
    props = schema.get("properties", {})
    required = set(schema.get("required", []))
    fields: dict[str, tuple[Any, Any]] = {}
    for name, config in props.items():
        typ = _python_type(config)
        default = ... if name in required else None
        fields[name] = (typ if name in required else typ | None, default)
    model_name = "".join(part.title() for part in tool_name.split("_")) + "Input"
    return create_model(model_name, **fields)


def _validate(model: type[BaseModel], payload: dict[str, Any]) -> dict[str, Any]:
    try:
        value = model(**payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid input for tool: {exc}") from exc
    return value.model_dump(exclude_none=True)


def _python_type(config: dict[str, Any]) -> Any:
    if "enum" in config:
        return Literal[tuple(config["enum"])]
    schema_type = config.get("type", "string")
    if schema_type == "array":
        return list[_python_type(config.get("items", {}))]
    mapping: dict[str, type[Any]] = {
        "string": str,
        "integer": int,
        "number": float,
        "boolean": bool,
        "object": dict,
    }
    return mapping.get(schema_type, str)


def build_default_registry(db: Database) -> ToolRegistry:
    """Registry holding the full task/project/label tool catalog."""

    registry = ToolRegistry(db)
    for tool_cls in (*TASK_TOOLS, *PROJECT_TOOLS):
        registry.register(tool_cls(db))
    return registry
