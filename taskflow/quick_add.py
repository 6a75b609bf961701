"""Create tasks straight from free text."""

from __future__ import annotations

import logging
from datetime import datetime

from taskflow.dates import combine_date_and_time, to_utc_iso
from taskflow.db import Database
from taskflow.errors import EntityNotFoundError
from taskflow.models import EntityRef, ParseContext, ParsedTask, QuickAddResult
from taskflow.parser import TaskParser
from taskflow.priority import priority_to_int
from taskflow.resolver import EntityResolver

LOGGER = logging.getLogger(__name__)


class QuickAddService:
    """Parse text, resolve its project and labels, and create the task."""

    def __init__(self, db: Database, parser: TaskParser, resolver: EntityResolver | None = None) -> None:
        self._db = db
        self._parser = parser
        self._resolver = resolver or EntityResolver(db)

    async def parse(
        self,
        user_id: str,
        text: str,
        timezone: str = "UTC",
        api_key: str | None = None,
        now: datetime | None = None,
    ) -> ParsedTask:
        """Parse without creating anything, matching against all the user's names."""

        context = ParseContext(
            projects=[p["name"] for p in self._db.list_projects(user_id, include_archived=True)],
            labels=[label["name"] for label in self._db.list_labels(user_id)],
        )
        return await self._parser.parse(text, context, timezone=timezone, api_key=api_key, now=now)

    async def quick_add(
        self,
        user_id: str,
        text: str,
        project_id: str | None = None,
        create_project: bool = False,
        create_labels: bool = False,
        timezone: str = "UTC",
        api_key: str | None = None,
        now: datetime | None = None,
    ) -> QuickAddResult:
        """Create a task from ``text``.

        An explicit ``project_id`` wins over a project named in the text.
        Unknown names are created only when the matching ``create_*`` flag
        is set; otherwise they are dropped.
        """
        if project_id and self._db.get_project(user_id, project_id) is None:
            raise EntityNotFoundError("Project not found")

        projects = [
            EntityRef(id=p["id"], name=p["name"]) for p in self._db.list_projects(user_id, include_archived=True)
        ]
        labels = [EntityRef(id=label["id"], name=label["name"]) for label in self._db.list_labels(user_id)]

        parsed = await self._parser.parse(
            text,
            ParseContext(projects=[p.name for p in projects], labels=[label.name for label in labels]),
            timezone=timezone,
            api_key=api_key,
            now=now,
        )

        project_created = False
        if not project_id:
            project_id, project_created = self._resolver.resolve_project(
                user_id, parsed.project, projects, auto_create=create_project
            )

        resolution = self._resolver.resolve_labels(user_id, parsed.labels, labels, auto_create=create_labels)
        if resolution.unresolved:
            LOGGER.info("Dropping unknown labels %s for user %s", resolution.unresolved, user_id)

        try:
            due = combine_date_and_time(parsed.due_date, parsed.due_time)
        except ValueError:
            LOGGER.warning("Ignoring unusable due date %r %r", parsed.due_date, parsed.due_time)
            due = None
        task = self._db.create_task(
            user_id,
            parsed.content,
            project_id=project_id,
            priority=priority_to_int(parsed.priority),
            due_date=to_utc_iso(due) if due else None,
            label_ids=resolution.label_ids,
            recurrence=parsed.recurrence,
        )
        LOGGER.info("Quick-added task %s for user %s", task["id"], user_id)
        return QuickAddResult(
            task=task,
            parsed=parsed,
            project_created=project_created,
            labels_created=resolution.created,
        )
