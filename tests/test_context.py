from __future__ import annotations

import asyncio

import pytest

from concord.orchestration.context import InMemoryContextStore, SharedContext


@pytest.mark.asyncio
async def test_append_assigns_sequence_numbers() -> None:
    context = SharedContext()

    first = await context.append("team", "start", kind="input")
    second = await context.append("agent", "result")

    assert (first.sequence, second.sequence) == (0, 1)
    assert second.kind == "message"
    assert await context.size() == 2


@pytest.mark.asyncio
async def test_concurrent_appends_are_gap_free() -> None:
    context = SharedContext()

    async def writer(name: str) -> None:
        for index in range(25):
            await context.append(name, f"{name}-{index}")
            await asyncio.sleep(0)

    await asyncio.gather(*(writer(f"agent-{n}") for n in range(4)))

    entries = await context.entries()
    assert [entry.sequence for entry in entries] == list(range(100))
    for n in range(4):
        own = [entry.content for entry in await context.entries_from(f"agent-{n}")]
        assert own == [f"agent-{n}-{index}" for index in range(25)]


@pytest.mark.asyncio
async def test_summary_is_bounded_to_recent_entries() -> None:
    context = SharedContext(summary_limit=2)
    for index in range(4):
        await context.append("agent", f"line {index}")

    assert await context.summary() == "[agent] line 2\n[agent] line 3"
    assert await context.summary(limit=1) == "[agent] line 3"
    assert await context.summary(limit=0) == ""


@pytest.mark.asyncio
async def test_custom_store_receives_entries() -> None:
    store = InMemoryContextStore()
    context = SharedContext(store)

    await context.append("human", "approve", kind="human_input")

    assert context.store is store
    assert [(entry.source, entry.kind) for entry in store.entries] == [("human", "human_input")]


@pytest.mark.asyncio
async def test_locked_snapshot_is_stable() -> None:
    context = SharedContext()
    await context.append("a", "one")

    async with context.locked() as snapshot:
        pending = asyncio.create_task(context.append("b", "two"))
        await asyncio.sleep(0)
        assert [entry.content for entry in snapshot] == ["one"]
        assert not pending.done()

    await pending
    assert await context.size() == 2
