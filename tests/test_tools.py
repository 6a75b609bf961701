from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from taskflow import dates
from taskflow.db import Database
from taskflow.tools import task_tools
from taskflow.tools.registry import ToolRegistry, build_default_registry


def _setup(tmp_path) -> tuple[Database, ToolRegistry]:
    db = Database(tmp_path / "taskflow.db")
    db.initialize()
    return db, build_default_registry(db)


EXPECTED_CATALOG: dict[str, tuple[set[str], set[str]]] = {
    "create_task": ({"content"}, {"dueDate", "dueTime", "priority", "projectId", "labels"}),
    "complete_task": ({"taskId"}, set()),
    "reopen_task": ({"taskId"}, set()),
    "update_task": ({"taskId"}, {"content", "dueDate", "priority"}),
    "delete_task": ({"taskId"}, set()),
    "list_tasks": (set(), {"filter", "projectId", "limit"}),
    "search_tasks": ({"query"}, {"limit"}),
    "list_projects": (set(), {"includeArchived"}),
    "create_project": ({"name"}, {"color"}),
    "list_labels": (set(), set()),
    "create_label": ({"name"}, {"color"}),
}


def test_catalog_matches_declared_contract(tmp_path):
    _, registry = _setup(tmp_path)

    specs = {spec["name"]: spec for spec in registry.list_tool_specs()}

    assert list(specs) == list(EXPECTED_CATALOG)
    for name, (required, optional) in EXPECTED_CATALOG.items():
        schema = specs[name]["input_schema"]
        assert schema["type"] == "object"
        assert set(schema.get("required", [])) == required, name
        assert set(schema["properties"]) == required | optional, name
        assert specs[name]["description"]

    create = specs["create_task"]["input_schema"]["properties"]
    assert create["priority"]["enum"] == ["p1", "p2", "p3", "p4"]
    assert create["labels"] == {"type": "array", "items": {"type": "string"}, "description": "Label IDs to attach"}
    assert specs["list_tasks"]["input_schema"]["properties"]["filter"]["enum"] == [
        "today",
        "tomorrow",
        "upcoming",
        "overdue",
        "completed",
        "all",
    ]


@pytest.mark.asyncio
async def test_unknown_tool_returns_failure(tmp_path):
    _, registry = _setup(tmp_path)

    result = await registry.execute("user-1", "launch_rocket", {"target": "moon"})

    assert result.to_dict() == {"success": False, "error": "Unknown tool: launch_rocket"}


@pytest.mark.asyncio
async def test_invalid_arguments_are_rejected_by_declared_schema(tmp_path):
    db, registry = _setup(tmp_path)

    missing = await registry.execute("user-1", "create_task", {"dueDate": "2024-01-16"})
    bad_enum = await registry.execute("user-1", "create_task", {"content": "x", "priority": "p9"})
    bad_filter = await registry.execute("user-1", "list_tasks", {"filter": "someday"})

    for result in (missing, bad_enum, bad_filter):
        assert result.success is False
        assert result.error.startswith("Invalid input for tool")
    assert db.list_tasks("user-1") == []


@pytest.mark.asyncio
async def test_create_task_normalizes_due_date_and_priority(tmp_path):
    _, registry = _setup(tmp_path)

    date_only = await registry.execute("user-1", "create_task", {"content": "Buy milk", "dueDate": "2024-01-16"})
    timed = await registry.execute(
        "user-1",
        "create_task",
        {"content": "Call mom", "dueDate": "2024-01-16", "dueTime": "15:00", "priority": "p1"},
    )

    assert date_only.success is True
    assert date_only.data["dueDate"] == "2024-01-16T12:00:00.000Z"
    assert date_only.data["priority"] == "p4"
    assert date_only.data["order"] == 0
    assert timed.data["dueDate"] == "2024-01-16T15:00:00.000Z"
    assert timed.data["priority"] == "p1"
    assert timed.data["order"] == 1


@pytest.mark.asyncio
async def test_create_task_attaches_owned_project_and_labels(tmp_path):
    db, registry = _setup(tmp_path)
    project = db.create_project("user-1", "Work")
    label = db.create_label("user-1", "urgent")

    result = await registry.execute(
        "user-1",
        "create_task",
        {"content": "Ship release", "projectId": project["id"], "labels": [label["id"]]},
    )

    assert result.success is True
    assert result.data["projectId"] == project["id"]
    assert [item["name"] for item in result.data["labels"]] == ["urgent"]


@pytest.mark.asyncio
async def test_create_task_rejects_foreign_project_and_labels(tmp_path):
    db, registry = _setup(tmp_path)
    project = db.create_project("user-2", "Theirs")
    label = db.create_label("user-2", "theirs")

    bad_project = await registry.execute("user-1", "create_task", {"content": "x", "projectId": project["id"]})
    bad_label = await registry.execute("user-1", "create_task", {"content": "x", "labels": [label["id"]]})

    assert bad_project.to_dict() == {"success": False, "error": "Project not found"}
    assert bad_label.to_dict() == {"success": False, "error": "Label not found"}
    assert db.list_tasks("user-1") == []


@pytest.mark.asyncio
async def test_malformed_due_date_is_a_failed_result(tmp_path):
    _, registry = _setup(tmp_path)

    result = await registry.execute("user-1", "create_task", {"content": "x", "dueDate": "next friday"})

    assert result.success is False
    assert result.error


@pytest.mark.asyncio
async def test_complete_task_of_other_user_reports_not_found(tmp_path):
    db, registry = _setup(tmp_path)
    task = db.create_task("owner", "Private")

    result = await registry.execute("intruder", "complete_task", {"taskId": task["id"]})

    assert result.to_dict() == {"success": False, "error": "Task not found"}
    untouched = db.get_task("owner", task["id"])
    assert untouched["isCompleted"] is False
    assert untouched["updatedAt"] == task["updatedAt"]


@pytest.mark.asyncio
async def test_complete_task_twice_is_idempotent(tmp_path):
    db, registry = _setup(tmp_path)
    task = db.create_task("user-1", "Pay rent")

    first = await registry.execute("user-1", "complete_task", {"taskId": task["id"]})
    second = await registry.execute("user-1", "complete_task", {"taskId": task["id"]})

    assert second.success is True
    assert second.data["isCompleted"] is True
    assert second.data["completedAt"] == first.data["completedAt"]


@pytest.mark.asyncio
async def test_reopen_update_and_delete(tmp_path):
    db, registry = _setup(tmp_path)
    task = db.create_task("user-1", "Draft")
    await registry.execute("user-1", "complete_task", {"taskId": task["id"]})

    reopened = await registry.execute("user-1", "reopen_task", {"taskId": task["id"]})
    updated = await registry.execute(
        "user-1",
        "update_task",
        {"taskId": task["id"], "content": "Final draft", "dueDate": "2024-02-01", "priority": "p2"},
    )
    deleted = await registry.execute("user-1", "delete_task", {"taskId": task["id"]})
    deleted_again = await registry.execute("user-1", "delete_task", {"taskId": task["id"]})

    assert reopened.data["isCompleted"] is False
    assert reopened.data["completedAt"] is None
    assert updated.data["content"] == "Final draft"
    assert updated.data["dueDate"] == "2024-02-01T12:00:00.000Z"
    assert updated.data["priority"] == "p2"
    assert deleted.to_dict() == {"success": True, "data": {"deleted": task["id"]}}
    assert deleted_again.to_dict() == {"success": False, "error": "Task not found"}


@pytest.mark.asyncio
async def test_update_task_of_other_user_reports_not_found(tmp_path):
    db, registry = _setup(tmp_path)
    task = db.create_task("owner", "Private")

    result = await registry.execute("intruder", "update_task", {"taskId": task["id"], "content": "mine now"})

    assert result.error == "Task not found"
    assert db.get_task("owner", task["id"])["content"] == "Private"


def _pin_clock(monkeypatch, now: datetime) -> None:
    monkeypatch.setattr(task_tools, "filter_window", lambda name, tz: dates.filter_window(name, tz, now))


@pytest.mark.asyncio
async def test_list_tasks_named_filters(tmp_path, monkeypatch):
    db, registry = _setup(tmp_path)
    now = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
    _pin_clock(monkeypatch, now)
    today = now.date()

    def due(days: int) -> str:
        return f"{(today + timedelta(days=days)).isoformat()}T12:00:00.000Z"

    db.create_task("user-1", "Overdue", due_date=due(-3))
    db.create_task("user-1", "Today", due_date=due(0))
    db.create_task("user-1", "Tomorrow", due_date=due(1))
    db.create_task("user-1", "Later", due_date=due(5))
    db.create_task("user-1", "Far", due_date=due(30))
    db.create_task("user-1", "Someday")
    done = db.create_task("user-1", "Done", due_date=due(0))
    db.set_task_completed("user-1", done["id"], completed=True)

    async def contents(**arguments: Any) -> list[str]:
        result = await registry.execute("user-1", "list_tasks", arguments, timezone="UTC")
        assert result.success is True
        return [task["content"] for task in result.data]

    assert await contents(filter="today") == ["Today"]
    assert await contents(filter="tomorrow") == ["Tomorrow"]
    assert await contents(filter="upcoming") == ["Today", "Tomorrow", "Later"]
    assert await contents(filter="overdue") == ["Overdue"]
    assert await contents(filter="completed") == ["Done"]
    assert await contents() == ["Overdue", "Today", "Tomorrow", "Later", "Far", "Someday"]
    assert len(await contents(filter="all", limit=2)) == 2


@pytest.mark.asyncio
async def test_date_only_task_is_listed_today_east_of_utc_plus_12(tmp_path, monkeypatch):
    _, registry = _setup(tmp_path)
    # 20:00 UTC on the 15th is already the morning of the 16th in Auckland.
    _pin_clock(monkeypatch, datetime(2024, 1, 15, 20, 0, tzinfo=timezone.utc))
    created = await registry.execute("user-1", "create_task", {"content": "Pay rates", "dueDate": "2024-01-16"})

    async def listed(filter_name: str) -> list[str]:
        result = await registry.execute("user-1", "list_tasks", {"filter": filter_name}, timezone="Pacific/Auckland")
        return [task["content"] for task in result.data]

    assert created.data["dueDate"] == "2024-01-16T12:00:00.000Z"
    assert await listed("today") == ["Pay rates"]
    assert await listed("tomorrow") == []
    assert await listed("overdue") == []


@pytest.mark.asyncio
async def test_list_tasks_by_project_and_search(tmp_path):
    db, registry = _setup(tmp_path)
    project = db.create_project("user-1", "Garden")
    db.create_task("user-1", "Plant tulips", project_id=project["id"])
    db.create_task("user-1", "Buy TULIP bulbs")

    in_project = await registry.execute("user-1", "list_tasks", {"projectId": project["id"]})
    found = await registry.execute("user-1", "search_tasks", {"query": "tulip"})

    assert [t["content"] for t in in_project.data] == ["Plant tulips"]
    assert sorted(t["content"] for t in found.data) == ["Buy TULIP bulbs", "Plant tulips"]


@pytest.mark.asyncio
async def test_project_and_label_tools(tmp_path):
    db, registry = _setup(tmp_path)

    created = await registry.execute("user-1", "create_project", {"name": "Work", "color": "red"})
    archived = await registry.execute("user-1", "create_project", {"name": "Old"})
    db.set_project_archived("user-1", archived.data["id"], archived=True)
    label = await registry.execute("user-1", "create_label", {"name": "deep-work"})
    blank = await registry.execute("user-1", "create_label", {"name": "   "})

    visible = await registry.execute("user-1", "list_projects", {})
    everything = await registry.execute("user-1", "list_projects", {"includeArchived": True})
    labels = await registry.execute("user-1", "list_labels", {})

    assert created.data["color"] == "red"
    assert [p["name"] for p in visible.data] == ["Work"]
    assert [p["name"] for p in everything.data] == ["Old", "Work"]
    assert [item["name"] for item in labels.data] == [label.data["name"]]
    assert blank.success is False


@pytest.mark.asyncio
async def test_tool_exceptions_are_contained_and_logged(tmp_path):
    db = Database(tmp_path / "taskflow.db")
    db.initialize()
    tool = MagicMock()
    tool.name = "flaky"
    tool.parameters_schema = {"type": "object", "properties": {"n": {"type": "integer"}}}
    tool.run = AsyncMock(side_effect=RuntimeError("database is locked"))
    registry = ToolRegistry(db)
    registry.register(tool)

    result = await registry.execute("user-1", "flaky", {"n": 3})

    assert result.to_dict() == {"success": False, "error": "database is locked"}
    tool.run.assert_awaited_once_with("user-1", timezone="UTC", n=3)
    executions = db.list_tool_executions("user-1")
    assert executions[0]["tool"] == "flaky"
    assert executions[0]["succeeded"] is False
