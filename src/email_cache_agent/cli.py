"""Command-line interface for Email Cache Agent.

This module provides the main entry point for the CLI application.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

import structlog

from email_cache_agent import __version__
from email_cache_agent.agent import MailAgent
from email_cache_agent.config import get_settings
from email_cache_agent.exceptions import EmailCacheError

logger = structlog.get_logger()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="email-cache", description="Email Cache Agent")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Pull message metadata from Gmail")
    sync_parser.add_argument(
        "--history",
        action="store_true",
        help="Historical sync: page through the whole mailbox and refresh read state",
    )
    sync_parser.add_argument(
        "--page-token",
        default=None,
        help="Continuation token returned by a previous historical sync",
    )
    sync_parser.add_argument(
        "--all-pages",
        action="store_true",
        help="With --history, keep paging until the mailbox is exhausted",
    )

    channels_parser = subparsers.add_parser("channels", help="Manage channel definitions")
    channels_sub = channels_parser.add_subparsers(dest="channels_command", required=True)
    load_parser = channels_sub.add_parser("load", help="Replace channels from a JSON file")
    load_parser.add_argument(
        "--path",
        type=Path,
        default=None,
        help="Path to the channel JSON file (default: settings channels_path)",
    )
    channels_sub.add_parser("list", help="List channel names")

    list_parser = subparsers.add_parser("list", help="List cached messages in a channel")
    list_parser.add_argument("channel", help="Channel name")

    body_parser = subparsers.add_parser("body", help="Print a message body (cache first)")
    body_parser.add_argument("message_id")

    summary_parser = subparsers.add_parser("summary", help="Print the AI summary of a message")
    summary_parser.add_argument("message_id")

    search_parser = subparsers.add_parser("search", help="Semantic search over cached messages")
    search_parser.add_argument("query")

    trash_parser = subparsers.add_parser("trash", help="Move a message to trash and drop it locally")
    trash_parser.add_argument("message_id")

    subparsers.add_parser("sweep", help="Run the channel retention sweep once")

    return parser


def _format_row(timestamp_ms: int, sender: str, subject: str, importance: int, deadline: str | None) -> str:
    when = datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc).isoformat() if timestamp_ms else "(no date)"
    return f"{when}\t[{importance}]\t{deadline or '-'}\t{sender}\t{subject}"


async def _cmd_sync(agent: MailAgent, args: argparse.Namespace) -> int:
    await agent.gmail_client.authenticate()

    if not args.history:
        report = await agent.sync_messages()
        print(f"Synced {report.upserted}/{report.listed} recent messages ({report.failed} failed)")
        return 0

    token: str | None = args.page_token
    while True:
        report = await agent.sync_historical_messages(token)
        print(f"Synced {report.upserted}/{report.listed} messages ({report.failed} failed)")
        token = report.next_page_token or None
        if token is None:
            print("Mailbox exhausted")
            return 0
        if not args.all_pages:
            print(f"Next page token: {token}")
            return 0


async def _cmd_body(agent: MailAgent, args: argparse.Namespace) -> int:
    if not await asyncio.to_thread(agent.messages.get_body, args.message_id):
        await agent.gmail_client.authenticate()
    print(await agent.get_message_body(args.message_id))
    return 0


async def _cmd_summary(agent: MailAgent, args: argparse.Namespace) -> int:
    print(await agent.summarize_email(args.message_id))
    return 0


async def _cmd_search(agent: MailAgent, args: argparse.Namespace) -> int:
    scores = {r.id: r.score for r in await agent.ai_search(args.query)}
    for m in await asyncio.to_thread(agent.messages.get_many, list(scores)):
        print(f"{scores[m.id]:.4f}\t{_format_row(m.timestamp, m.sender, m.subject, m.importance, m.deadline)}")
    return 0


async def _cmd_trash(agent: MailAgent, args: argparse.Namespace) -> int:
    await agent.gmail_client.authenticate()
    await agent.trash_message(args.message_id)
    print(f"Trashed {args.message_id}")
    return 0


def _cmd_channels(agent: MailAgent, args: argparse.Namespace) -> int:
    if args.channels_command == "load":
        count = agent.load_channels(args.path)
        print(f"Loaded {count} channels")
        return 0
    for name in agent.get_channels():
        print(name)
    return 0


def _cmd_list(agent: MailAgent, args: argparse.Namespace) -> int:
    for m in agent.get_messages_by_channel(args.channel):
        print(f"{m.id}\t{_format_row(m.timestamp, m.sender, m.subject, m.importance, m.deadline)}")
    return 0


def _cmd_sweep(agent: MailAgent, args: argparse.Namespace) -> int:
    report = agent.run_auto_cleanup()
    for name, count in report.deleted.items():
        print(f"{name}: {count} expired messages deleted")
    for name in report.failed:
        print(f"{name}: sweep failed")
    return 0 if not report.failed else 1


async def _run(args: argparse.Namespace) -> int:
    agent = MailAgent()
    await agent.start()
    try:
        if args.command == "sync":
            return await _cmd_sync(agent, args)
        if args.command == "body":
            return await _cmd_body(agent, args)
        if args.command == "summary":
            return await _cmd_summary(agent, args)
        if args.command == "search":
            return await _cmd_search(agent, args)
        if args.command == "trash":
            return await _cmd_trash(agent, args)
        if args.command == "channels":
            return await asyncio.to_thread(_cmd_channels, agent, args)
        if args.command == "list":
            return await asyncio.to_thread(_cmd_list, agent, args)
        if args.command == "sweep":
            return await asyncio.to_thread(_cmd_sweep, agent, args)
    finally:
        # A short-lived CLI process waits for its own background enrichment.
        await agent.close(drain=True)

    logger.error("unknown_command", command=args.command)
    return 2


def main(args: list[str] | None = None) -> int:
    """Main entry point for the Email Cache Agent CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()

    # Configure logging
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
    )

    logger.info("email_cache_agent_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    try:
        return asyncio.run(_run(parsed))
    except EmailCacheError as exc:
        logger.error("command_failed", command=parsed.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
