from taskflow.models import ChatAction, ChatResponse, ParsedTask, ToolResult
from taskflow.priority import int_to_priority, normalize_priority, priority_to_int


def test_priority_conversions():
    assert priority_to_int("p1") == 1
    assert priority_to_int("p3") == 3
    assert priority_to_int(None) == 4
    assert priority_to_int("bogus") == 4
    assert int_to_priority(2) == "p2"


def test_unknown_priority_is_normalized_to_lowest():
    assert normalize_priority("p9") == "p4"
    assert normalize_priority(1) == "p4"
    assert normalize_priority("p2") == "p2"


def test_parsed_task_from_dict_is_best_effort():
    parsed = ParsedTask.from_dict(
        {
            "content": "Plan trip",
            "dueDate": "2024-05-01",
            "dueTime": 9,
            "priority": "p9",
            "labels": ["travel", 3],
            "recurrence": "hourly",
        }
    )

    assert parsed.content == "Plan trip"
    assert parsed.due_date == "2024-05-01"
    assert parsed.due_time is None
    assert parsed.priority == "p4"
    assert parsed.labels == ["travel"]
    assert parsed.recurrence is None


def test_parsed_task_to_dict_omits_missing_fields():
    assert ParsedTask(content="Buy milk", due_date="2024-01-16").to_dict() == {
        "content": "Buy milk",
        "priority": "p4",
        "dueDate": "2024-01-16",
    }


def test_chat_response_serializes_action_trail():
    response = ChatResponse(
        response="Done",
        actions=[
            ChatAction(tool="create_task", input={"content": "x"}, result=ToolResult.ok({"id": "t1"})),
            ChatAction(tool="delete_task", input={"taskId": "t2"}, result=ToolResult.fail("Task not found")),
        ],
    )

    assert response.to_dict() == {
        "response": "Done",
        "actions": [
            {"tool": "create_task", "input": {"content": "x"}, "result": {"success": True, "data": {"id": "t1"}}},
            {"tool": "delete_task", "input": {"taskId": "t2"}, "result": {"success": False, "error": "Task not found"}},
        ],
    }
