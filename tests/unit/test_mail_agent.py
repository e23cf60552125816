"""Unit tests for the mail agent."""

from __future__ import annotations

import asyncio
import json
import threading
from datetime import datetime, timedelta, timezone

import pytest

from email_cache_agent.agent import MailAgent
from email_cache_agent.cache import CacheStore
from email_cache_agent.exceptions import GmailAPIError
from email_cache_agent.models import Channel


def _ms_days_ago(days: int) -> int:
    return int((datetime.now(timezone.utc) - timedelta(days=days)).timestamp() * 1000)


@pytest.fixture
def build_agent(tmp_path, mock_settings, make_gmail, make_ollama):
    def _build(messages=None, **ollama_kwargs):
        gmail = make_gmail(messages)
        ollama = make_ollama(**ollama_kwargs)
        agent = MailAgent(
            store=CacheStore(tmp_path / "agent.db", retry_delay=0.0),
            gmail_client=gmail,
            ollama_client=ollama,
            settings=mock_settings,
        )
        return agent, gmail, ollama

    return _build


@pytest.mark.asyncio
async def test_sync_then_list_all_channel(build_agent, gmail_message) -> None:
    agent, _, _ = build_agent(
        [
            gmail_message("a", subject="A", internal_date=1000),
            gmail_message("b", subject="B", internal_date=3000),
            gmail_message("c", subject="C", internal_date=2000),
        ]
    )

    async with agent:
        await agent.sync_messages()
        agent.channels.replace_all([Channel(name="All", predicate="1=1")])
        rows = agent.get_messages_by_channel("All")

    assert [r.id for r in rows] == ["b", "c", "a"]


@pytest.mark.asyncio
async def test_channel_lookup_falls_back_to_all(build_agent, gmail_message) -> None:
    agent, _, _ = build_agent(
        [gmail_message("a", subject="A", sender="x@shop.example"), gmail_message("b", subject="B")]
    )

    async with agent:
        await agent.sync_messages()
        agent.channels.replace_all(
            [
                Channel(name="Shop", predicate="sender LIKE '%@shop.example'"),
                Channel(name="Broken", predicate="sender = 'a' OR 1=1; --"),
            ]
        )
        shop = agent.get_messages_by_channel("Shop")
        broken = agent.get_messages_by_channel("Broken")
        unknown = agent.get_messages_by_channel("Nope")

    assert [r.id for r in shop] == ["a"]
    assert len(broken) == 2
    assert len(unknown) == 2


@pytest.mark.asyncio
async def test_load_and_get_channels(build_agent, mock_settings) -> None:
    mock_settings.channels_path.write_text(
        json.dumps([{"name": "Inbox", "query": "1=1"}, {"name": "Shop", "query": "is_read = 0", "ttl_days": "7"}]),
        encoding="utf-8",
    )
    agent, _, _ = build_agent()

    async with agent:
        assert agent.load_channels() == 2
        assert agent.get_channels() == ["Inbox", "Shop"]


@pytest.mark.asyncio
async def test_body_summary_search_and_trash(build_agent, gmail_message) -> None:
    agent, gmail, ollama = build_agent(
        [
            gmail_message("a", subject="Flight", plain="Your flight to Osaka"),
            gmail_message("b", subject="Invoice", plain="Invoice attached"),
        ],
        vectors={"osaka trip": [1.0, 0.0, 0.0]},
        responses={"test-summary": "- flight booked", "test-extract": "importance:2, deadline:none"},
    )

    async with agent:
        await agent.sync_messages()
        assert await agent.summarize_email("a") == "(no body cached yet)"

        body = await agent.get_message_body("a")
        await agent.pool.join()
        assert "Your flight to Osaka" in body
        assert await agent.summarize_email("a") == "- flight booked"
        assert agent.messages.get("a").importance == 2

        results = await agent.ai_search("osaka trip")
        assert {r.id for r in results} == {"a", "b"}
        assert [m.id for m in await agent.get_ai_search_results("osaka trip")] == [r.id for r in results]

        await agent.trash_message("a")
        assert agent.messages.get("a") is None
        assert agent.vectors.get("a") is None
        assert gmail.trash_calls == ["a"]


@pytest.mark.asyncio
async def test_trash_failure_keeps_message(build_agent, gmail_message) -> None:
    agent, gmail, _ = build_agent([gmail_message("a", subject="A")])
    gmail.fail_trash = True

    async with agent:
        await agent.sync_messages()
        with pytest.raises(GmailAPIError):
            await agent.trash_message("a")
        assert agent.messages.get("a") is not None


@pytest.mark.asyncio
async def test_run_auto_cleanup(build_agent, gmail_message) -> None:
    agent, _, _ = build_agent(
        [
            gmail_message("old", subject="old", internal_date=_ms_days_ago(40)),
            gmail_message("new", subject="new", internal_date=_ms_days_ago(1)),
        ]
    )

    async with agent:
        await agent.sync_messages()
        agent.channels.replace_all([Channel(name="All", predicate="1=1", ttl_days=30)])
        report = agent.run_auto_cleanup()
        remaining = [r.id for r in agent.get_messages_by_channel("All")]

    assert report.deleted == {"All": 1}
    assert remaining == ["new"]


@pytest.mark.asyncio
async def test_scheduled_retention_runs_after_start(build_agent) -> None:
    agent, _, _ = build_agent()
    swept = threading.Event()
    agent.sweeper.sweep_once = swept.set  # type: ignore[method-assign]

    await agent.start(schedule_retention=True)
    try:
        assert await asyncio.to_thread(swept.wait, 1)
    finally:
        await agent.close()
