"""Persistent conversations around the chat orchestrator."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from taskflow.db import Database
from taskflow.errors import ConversationNotFoundError
from taskflow.models import ChatMessage
from taskflow.orchestrator import ChatOrchestrator, get_user_context

LOGGER = logging.getLogger(__name__)

_TITLE_LENGTH = 100


class ConversationService:
    """Stores each exchange so a chat can continue across requests."""

    def __init__(self, db: Database, orchestrator: ChatOrchestrator) -> None:
        self._db = db
        self._orchestrator = orchestrator

    async def send_message(
        self,
        user_id: str,
        message: str,
        conversation_id: str | None = None,
        timezone: str = "UTC",
        api_key: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Run one chat turn, starting a new conversation when no id is given.

        Only the user text and the final answer are stored; tool blocks stay
        inside the run and are kept as the assistant message's action trail.
        """
        if conversation_id:
            conversation = self._db.get_conversation(user_id, conversation_id)
            if conversation is None:
                raise ConversationNotFoundError()
        else:
            conversation = self._db.create_conversation(user_id)
            LOGGER.info("Started conversation %s for user %s", conversation["id"], user_id)

        history = [
            ChatMessage(role=m["role"], content=m["content"]) for m in self._db.get_messages(conversation["id"])
        ]
        context = get_user_context(self._db, user_id)
        context.conversation_id = conversation["id"]
        result = await self._orchestrator.chat(
            context, message, history, timezone=timezone, api_key=api_key, now=now
        )

        actions = [action.to_dict() for action in result.actions]
        self._db.add_message(conversation["id"], "user", message)
        self._db.add_message(conversation["id"], "assistant", result.response, tool_calls=actions or None)
        if conversation["title"]:
            self._db.update_conversation(conversation["id"])
        else:
            self._db.update_conversation(conversation["id"], title=message[:_TITLE_LENGTH])

        return {"conversationId": conversation["id"], "response": result.response, "actions": actions}

    def list_conversations(self, user_id: str, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
        return self._db.list_conversations(user_id, limit=limit, offset=offset)

    def get_conversation(self, user_id: str, conversation_id: str) -> dict[str, Any]:
        conversation = self._db.get_conversation(user_id, conversation_id)
        if conversation is None:
            raise ConversationNotFoundError()
        return {**conversation, "messages": self._db.get_messages(conversation_id)}

    def delete_conversation(self, user_id: str, conversation_id: str) -> None:
        if not self._db.delete_conversation(user_id, conversation_id):
            raise ConversationNotFoundError()
