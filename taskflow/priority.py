"""Task priority levels: p1 (urgent) through p4 (normal)."""

from __future__ import annotations

VALID_PRIORITIES = ("p1", "p2", "p3", "p4")
DEFAULT_PRIORITY = "p4"


def normalize_priority(priority: object) -> str:
    """Return a valid priority label, forcing anything unknown to the default."""

    if isinstance(priority, str) and priority in VALID_PRIORITIES:
        return priority
    return DEFAULT_PRIORITY


def priority_to_int(priority: str | None) -> int:
    """Convert ``p1``..``p4`` to the stored integer 1..4 (missing means 4)."""

    if not priority:
        return 4
    return int(normalize_priority(priority)[1])


def int_to_priority(value: int) -> str:
    return f"p{value}"
