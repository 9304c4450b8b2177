from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Protocol, Sequence, runtime_checkable

from ..core.logging import get_logger
from ..schemas.agents import ContextEntry

__all__ = ["ContextStore", "InMemoryContextStore", "SharedContext"]

logger = get_logger(name=__name__)


@runtime_checkable
class ContextStore(Protocol):
    """Backing storage for a shared context. May be durable."""

    async def append(self, entry: ContextEntry) -> None:
        ...

    async def read_all(self) -> Sequence[ContextEntry]:
        ...


class InMemoryContextStore:
    def __init__(self) -> None:
        self._entries: list[ContextEntry] = []

    async def append(self, entry: ContextEntry) -> None:
        self._entries.append(entry)

    async def read_all(self) -> Sequence[ContextEntry]:
        return list(self._entries)

    @property
    def entries(self) -> list[ContextEntry]:
        return list(self._entries)


class SharedContext:
    """Append-only coordination log shared by every resolver in one run.

    All appends and consistency-sensitive reads go through a single
    ``asyncio.Lock``; agents of a concurrent step may finish at the same
    instant and must observe a gap-free sequence.
    """

    def __init__(self, store: ContextStore | None = None, *, summary_limit: int = 20) -> None:
        self._store: ContextStore = store or InMemoryContextStore()
        self._lock = asyncio.Lock()
        self._next_sequence = 0
        self._summary_limit = summary_limit

    @property
    def store(self) -> ContextStore:
        return self._store

    async def append(self, source: str, content: str, *, kind: str = "message") -> ContextEntry:
        async with self._lock:
            entry = ContextEntry(sequence=self._next_sequence, source=source, content=content, kind=kind)
            await self._store.append(entry)
            self._next_sequence += 1
        logger.debug("shared_context_appended", source=source, kind=kind, sequence=entry.sequence)
        return entry

    async def entries(self) -> list[ContextEntry]:
        async with self._lock:
            return list(await self._store.read_all())

    async def entries_from(self, source: str) -> list[ContextEntry]:
        async with self._lock:
            return [entry for entry in await self._store.read_all() if entry.source == source]

    async def size(self) -> int:
        async with self._lock:
            return len(await self._store.read_all())

    async def summary(self, limit: int | None = None) -> str:
        """Render the most recent entries for the next agent to read."""
        bound = self._summary_limit if limit is None else limit
        if bound <= 0:
            return ""
        async with self._lock:
            recent = list(await self._store.read_all())[-bound:]
        return "\n".join(f"[{entry.source}] {entry.content}" for entry in recent)

    @asynccontextmanager
    async def locked(self) -> AsyncIterator[list[ContextEntry]]:
        """Hold the monitor while the caller inspects a stable snapshot."""
        async with self._lock:
            yield list(await self._store.read_all())
