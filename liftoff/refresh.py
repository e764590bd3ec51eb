"""Cancellable refresh streams with last-request-wins semantics.

Each logical stream (bucket list, fleet list, stack info) owns a
generation counter. Starting a refresh bumps the counter and hands out a
token carrying the new generation; a result is applied only while its
token is still current. Older calls are never interrupted, their results
are simply dropped on arrival.

Example:
    scheduler = RefreshScheduler()

    outcome = await scheduler.run(
        Stream.BUCKETS,
        fetch=lambda: provider.list_buckets(profile),
        apply=coordinator._apply_buckets,
    )
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeVar

from loguru import logger

from liftoff.core.exceptions import ProviderError

T = TypeVar("T")


class Stream(StrEnum):
    """Logical refresh streams owned by the state machines."""

    BUCKETS = "buckets"
    FLEETS = "fleets"
    STACK = "stack"


class RefreshOutcome(StrEnum):
    """What happened to a refresh result."""

    APPLIED = "applied"  # Token current, result committed
    DISCARDED = "discarded"  # Token superseded, result dropped silently
    FAILED = "failed"  # Token current, provider failed, state untouched


@dataclass(frozen=True, slots=True)
class RefreshToken:
    """Opaque handle identifying one issued refresh."""

    stream: str
    generation: int


class RefreshScheduler:
    """Issues and validates refresh tokens for any number of streams.

    One scheduler is shared by the state machines of a workspace. It holds
    no global state: two schedulers never interfere with each other.
    """

    def __init__(self) -> None:
        self._generations: dict[str, int] = {}
        self._tasks: set[asyncio.Task[RefreshOutcome]] = set()

    # -------------------------------------------------------------------------
    # Tokens
    # -------------------------------------------------------------------------

    def start(self, stream: str) -> RefreshToken:
        """Issue a new token for stream, invalidating any previous one."""
        generation = self._generations.get(stream, 0) + 1
        self._generations[stream] = generation
        return RefreshToken(stream=stream, generation=generation)

    def is_current(self, token: RefreshToken) -> bool:
        return self._generations.get(token.stream, 0) == token.generation

    def invalidate(self, *streams: str) -> None:
        """Invalidate outstanding tokens of the given streams (all when empty)."""
        targets = streams or tuple(self._generations)
        for stream in targets:
            self._generations[stream] = self._generations.get(stream, 0) + 1
        if targets:
            logger.debug(f"Invalidated refresh streams: {', '.join(targets)}")

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def run(
        self,
        stream: str,
        fetch: Callable[[], Awaitable[T]],
        apply: Callable[[T], None],
        on_error: Callable[[ProviderError], None] | None = None,
    ) -> RefreshOutcome:
        """Start a refresh on stream and wait for its outcome."""
        token = self.start(stream)
        return await self._complete(token, fetch, apply, on_error)

    def submit(
        self,
        stream: str,
        fetch: Callable[[], Awaitable[T]],
        apply: Callable[[T], None],
        on_error: Callable[[ProviderError], None] | None = None,
    ) -> asyncio.Task[RefreshOutcome]:
        """Start a refresh in the background.

        The token is issued before this method returns, so the order of
        submit() calls decides which result wins, not task scheduling.
        """
        token = self.start(stream)
        task = asyncio.get_running_loop().create_task(
            self._complete(token, fetch, apply, on_error),
            name=f"refresh-{stream}-{token.generation}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _complete(
        self,
        token: RefreshToken,
        fetch: Callable[[], Awaitable[T]],
        apply: Callable[[T], None],
        on_error: Callable[[ProviderError], None] | None,
    ) -> RefreshOutcome:
        logger.debug(f"Refresh {token.stream}#{token.generation} started")
        try:
            result = await fetch()
        except ProviderError as e:
            if not self.is_current(token):
                logger.debug(f"Refresh {token.stream}#{token.generation} failed after being superseded")
                return RefreshOutcome.DISCARDED
            logger.warning(f"Refresh {token.stream} failed: {e}")
            if on_error is not None:
                on_error(e)
            return RefreshOutcome.FAILED

        if not self.is_current(token):
            logger.debug(f"Refresh {token.stream}#{token.generation} superseded, result dropped")
            return RefreshOutcome.DISCARDED

        apply(result)
        logger.debug(f"Refresh {token.stream}#{token.generation} applied")
        return RefreshOutcome.APPLIED

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def pending(self) -> int:
        """Number of background refreshes still running."""
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait until every submitted refresh has finished."""
        while self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Invalidate every stream and cancel background refreshes."""
        self.invalidate()
        tasks = tuple(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()


__all__ = [
    "RefreshOutcome",
    "RefreshScheduler",
    "RefreshToken",
    "Stream",
]
