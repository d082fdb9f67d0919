from __future__ import annotations

import pytest

from growth_assistant.models import ConversationTurn, FlowMarker, FlowStep
from growth_assistant.services.conversation_store import ConversationStore, HistoryStoreAdapter
from growth_assistant.services.errors import StorageError
from growth_assistant.services.metrics import MetricsService
from growth_assistant.services.turn_logger import TurnLogger

from conftest import FlakyHistoryStore


def _turn(content: str, role: str = "user", user_id: str = "u1") -> ConversationTurn:
    return ConversationTurn(user_id=user_id, role=role, content=content)


@pytest.mark.asyncio
async def test_store_returns_newest_first_and_adapter_oldest_first() -> None:
    store = ConversationStore()
    adapter = HistoryStoreAdapter(store, metrics=MetricsService())
    for content in ("one", "two", "three"):
        await adapter.append_turn(_turn(content))

    assert [turn.content for turn in await store.recent("u1", 10)] == ["three", "two", "one"]
    assert [turn.content for turn in await adapter.recent("u1", 10)] == ["one", "two", "three"]
    assert [turn.content for turn in await adapter.recent("u1", 2)] == ["two", "three"]


@pytest.mark.asyncio
async def test_users_are_isolated() -> None:
    adapter = HistoryStoreAdapter(ConversationStore(), metrics=MetricsService())
    await adapter.append("u1", "user", "hello")
    await adapter.append("u2", "user", "hi")

    assert [turn.content for turn in await adapter.recent("u1", 10)] == ["hello"]
    assert await adapter.recent("missing", 10) == []
    assert await adapter.recent("u1", 0) == []


@pytest.mark.asyncio
async def test_store_is_bounded_per_user() -> None:
    store = ConversationStore(history_limit=3)
    for index in range(5):
        await store.append(_turn(f"m{index}"))

    assert store.count("u1") == 3
    assert [turn.content for turn in await store.recent("u1", 10)] == ["m4", "m3", "m2"]


@pytest.mark.asyncio
async def test_write_failure_is_counted_not_raised() -> None:
    metrics = MetricsService()
    adapter = HistoryStoreAdapter(FlakyHistoryStore(fail_writes=True), metrics=metrics)

    assert await adapter.append_turn(_turn("hello")) is False
    assert metrics.snapshot().history_write_failures == 1


@pytest.mark.asyncio
async def test_read_failure_propagates() -> None:
    adapter = HistoryStoreAdapter(FlakyHistoryStore(fail_reads=True), metrics=MetricsService())

    with pytest.raises(StorageError):
        await adapter.recent("u1", 10)


@pytest.mark.asyncio
async def test_turn_logger_writes_user_then_assistant() -> None:
    adapter = HistoryStoreAdapter(ConversationStore(), metrics=MetricsService())
    marker = FlowMarker(awaiting=FlowStep.EMBED_PAGE)

    assert await TurnLogger(adapter).log_pair("u1", "add a map", "Which page?", marker) is True

    user, assistant = await adapter.recent("u1", 10)
    assert (user.role, user.content, user.flow) == ("user", "add a map", None)
    assert (assistant.role, assistant.content, assistant.flow) == ("assistant", "Which page?", marker)
    assert user.timestamp <= assistant.timestamp


@pytest.mark.asyncio
async def test_turn_logger_reports_partial_write() -> None:
    metrics = MetricsService()
    adapter = HistoryStoreAdapter(FlakyHistoryStore(fail_writes=True), metrics=metrics)

    assert await TurnLogger(adapter).log_pair("u1", "hello", "hi") is False
    assert metrics.snapshot().history_write_failures == 2
