"""Serialisation of operations that fund new accounts from a shared account."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AccountCreationMutex:
    """Allow at most one in-flight account-funding action per adapter.

    Waiters are granted the lock in the order they called
    :meth:`run_exclusive`, and the lock is released whether the action returns
    or raises, so a failing action never blocks the ones queued behind it.
    """

    def __init__(self, name: str = "account-creation") -> None:
        self._name = name
        self._lock = asyncio.Lock()
        self._waiting = 0

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @property
    def waiting(self) -> int:
        """Number of callers currently queued behind the holder."""

        return self._waiting

    async def run_exclusive(self, action: Callable[[], Awaitable[T]]) -> T:
        """Run ``action`` once every previously queued action has finished."""

        async with self:
            return await action()

    async def __aenter__(self) -> AccountCreationMutex:
        self._waiting += 1
        try:
            await self._lock.acquire()
        finally:
            self._waiting -= 1
        logger.debug("Acquired %s mutex", self._name)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self._lock.release()
        logger.debug("Released %s mutex", self._name)
