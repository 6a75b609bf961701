"""Match free-text project and label names against the user's entities."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from taskflow.db import Database
from taskflow.models import EntityRef

LOGGER = logging.getLogger(__name__)


def match_entity(name: str, candidates: Iterable[EntityRef]) -> EntityRef | None:
    """Return the first candidate whose name equals ``name`` ignoring case.

    Names are assumed unique per user; if the store holds duplicates the
    first one in candidate order wins.
    """

    wanted = name.strip().casefold()
    for candidate in candidates:
        if candidate.name.casefold() == wanted:
            return candidate
    return None


@dataclass(slots=True)
class LabelResolution:
    label_ids: list[str] = field(default_factory=list)
    created: bool = False
    unresolved: list[str] = field(default_factory=list)


class EntityResolver:
    """Resolves project/label references, optionally creating missing ones.

    Creation is not transactional with whatever the caller does next; an
    interrupted quick add can leave an unused label behind.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def resolve_project(
        self,
        user_id: str,
        name: str | None,
        candidates: list[EntityRef],
        auto_create: bool = False,
    ) -> tuple[str | None, bool]:
        """Return ``(project_id, created)``; ``project_id`` is None when unresolved."""

        if not name or not name.strip():
            return None, False
        existing = match_entity(name, candidates)
        if existing:
            return existing.id, False
        if not auto_create:
            LOGGER.info("Project %r not found for user %s", name, user_id)
            return None, False
        project = self._db.create_project(user_id, name.strip())
        LOGGER.info("Created project %r (%s) for user %s", project["name"], project["id"], user_id)
        return project["id"], True

    def resolve_labels(
        self,
        user_id: str,
        names: Iterable[str],
        candidates: list[EntityRef],
        auto_create: bool = False,
    ) -> LabelResolution:
        resolution = LabelResolution()
        known = list(candidates)
        for name in names:
            if not name or not name.strip():
                continue
            existing = match_entity(name, known)
            if existing:
                if existing.id not in resolution.label_ids:
                    resolution.label_ids.append(existing.id)
                continue
            if not auto_create:
                resolution.unresolved.append(name)
                continue
            label = self._db.create_label(user_id, name.strip())
            LOGGER.info("Created label %r (%s) for user %s", label["name"], label["id"], user_id)
            known.append(EntityRef(id=label["id"], name=label["name"]))
            resolution.label_ids.append(label["id"])
            resolution.created = True
        return resolution
