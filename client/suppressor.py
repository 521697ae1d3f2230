"""RoomSync feedback suppression for remotely applied commands."""
from __future__ import annotations
import asyncio
import inspect
import itertools
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger("roomsync.client.suppressor")


class FeedbackSuppressor:
    """
    Tells local player events caused by a remote command apart from ones
    caused by the user.

    Every remote application holds its own token until its settle delay has
    passed, so two overlapping commands cannot release each other early.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._tokens: set[int] = set()
        self._timers: dict[int, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_suppressing(self) -> bool:
        return bool(self._tokens)

    @property
    def outstanding(self) -> int:
        return len(self._tokens)

    def hold(self) -> None:
        """Acquire and immediately release: the no-op path of a command."""
        token = self._acquire()
        self._release(token)

    def run(self, action: Callable[[], Any], settle_ms: int) -> Optional[asyncio.Task]:
        """
        Call action with suppression held, then release settle_ms after it
        returns. If action returns an awaitable, the release waits for it to
        finish or fail; the returned task completes when it has.
        """
        token = self._acquire()
        try:
            result = action()
        except Exception as e:
            logger.warning("Remote command failed: %s", e)
            self._release_after(token, settle_ms)
            return None

        if inspect.isawaitable(result):
            task = asyncio.get_running_loop().create_task(self._settle(result, token, settle_ms))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return task

        self._release_after(token, settle_ms)
        return None

    async def _settle(self, awaitable: Awaitable[Any], token: int, settle_ms: int) -> None:
        try:
            await awaitable
        except Exception as e:
            logger.warning("Remote command failed: %s", e)
        self._release_after(token, settle_ms)

    def _acquire(self) -> int:
        token = next(self._ids)
        self._tokens.add(token)
        return token

    def _release_after(self, token: int, settle_ms: int) -> None:
        if token not in self._tokens:
            # closed while the action was in flight
            return
        if settle_ms <= 0:
            self._release(token)
            return
        loop = asyncio.get_running_loop()
        self._timers[token] = loop.call_later(settle_ms / 1000.0, self._release, token)

    def _release(self, token: int) -> None:
        self._timers.pop(token, None)
        self._tokens.discard(token)
        logger.debug("Suppression token %d released (%d outstanding)", token, self.outstanding)

    def close(self) -> None:
        """Drop every token and pending release."""
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self._tokens.clear()
