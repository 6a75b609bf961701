"""Tool contracts."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from taskflow.db import Database
from taskflow.models import ToolResult


class Tool(ABC):
    """Base class for all assistant tools.

    ``parameters_schema`` is both what the model is shown and what the
    registry validates arguments against.
    """

    name: str
    description: str
    parameters_schema: dict[str, Any]

    @abstractmethod
    async def run(self, user_id: str, timezone: str = "UTC", **kwargs: Any) -> ToolResult:
        """Execute tool with validated arguments on behalf of ``user_id``."""


class DatabaseTool(Tool, ABC):
    """Tool operating on the task store."""

    def __init__(self, db: Database) -> None:
        self._db = db
