"""Application entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from taskflow.config import Settings, load_settings
from taskflow.conversations import ConversationService
from taskflow.db import Database
from taskflow.errors import EntityNotFoundError, LLMServiceError, TaskParseError, ToolLoopExceededError
from taskflow.llm.anthropic import AnthropicProvider
from taskflow.orchestrator import ChatOrchestrator
from taskflow.parser import TaskParser
from taskflow.quick_add import QuickAddService
from taskflow.tools.registry import build_default_registry

logging.basicConfig(level=logging.INFO)
LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskflow", description="Natural-language task assistant")
    parser.add_argument("--user", required=True, help="User id owning the tasks")
    parser.add_argument("--timezone", default=None, help="IANA timezone (default from settings)")
    sub = parser.add_subparsers(dest="command", required=True)

    parse_cmd = sub.add_parser("parse", help="Parse text into a task draft without saving it")
    parse_cmd.add_argument("text")

    add_cmd = sub.add_parser("add", help="Parse text and create the task")
    add_cmd.add_argument("text")
    add_cmd.add_argument("--project-id", default=None)
    add_cmd.add_argument("--create-project", action="store_true")
    add_cmd.add_argument("--create-labels", action="store_true")

    chat_cmd = sub.add_parser("chat", help="Interactive chat (blank line or EOF to quit)")
    chat_cmd.add_argument("--conversation", default=None, help="Continue an existing conversation")
    return parser


async def run(args: argparse.Namespace, settings: Settings) -> int:
    """Initialize app layers and execute one command."""

    db = Database(settings.database_path)
    db.initialize()

    provider = AnthropicProvider(settings)
    parser = TaskParser(
        provider,
        max_tokens=settings.parser_max_tokens,
        request_timeout_seconds=settings.request_timeout_seconds,
    )
    timezone = args.timezone or settings.default_timezone

    try:
        if args.command == "parse":
            parsed = await QuickAddService(db, parser).parse(args.user, args.text, timezone=timezone)
            print(json.dumps(parsed.to_dict(), indent=2))
        elif args.command == "add":
            result = await QuickAddService(db, parser).quick_add(
                args.user,
                args.text,
                project_id=args.project_id,
                create_project=args.create_project,
                create_labels=args.create_labels,
                timezone=timezone,
            )
            print(json.dumps(result.to_dict(), indent=2))
        else:
            orchestrator = ChatOrchestrator(
                llm=provider,
                tool_registry=build_default_registry(db),
                request_timeout_seconds=settings.request_timeout_seconds,
                max_tool_rounds=settings.max_tool_rounds,
                max_tokens=settings.chat_max_tokens,
            )
            await _chat_loop(ConversationService(db, orchestrator), args.user, args.conversation, timezone)
    except (TaskParseError, LLMServiceError, ToolLoopExceededError, EntityNotFoundError) as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        return 1
    finally:
        await provider.aclose()
    return 0


async def _chat_loop(service: ConversationService, user_id: str, conversation_id: str | None, timezone: str) -> None:
    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            break
        if not line.strip():
            break
        reply = await service.send_message(user_id, line, conversation_id=conversation_id, timezone=timezone)
        conversation_id = reply["conversationId"]
        for action in reply["actions"]:
            status = "ok" if action["result"]["success"] else f"failed: {action['result'].get('error')}"
            print(f"  [{action['tool']}] {status}")
        print(reply["response"])


def main() -> None:
    """Synchronous wrapper for asyncio entrypoint."""

    args = build_parser().parse_args()
    sys.exit(asyncio.run(run(args, load_settings())))


if __name__ == "__main__":
    main()
