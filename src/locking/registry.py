# src/locking/registry.py - v1
"""Per-key async mutual exclusion for project write decisions.

Each key is either unlocked or held. A held key owns a release signal
(an asyncio Future resolved on release) and a FIFO queue of waiter futures.
On release the head waiter is granted the lock on the next loop iteration
(``call_soon``), never synchronously inside release().

In-process only: no cross-process guarantee. Construct one registry per
hosting service and inject it; there is no module-level instance.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from filerecon.core.errors import LockClearedError, LockTimeoutError

if TYPE_CHECKING:
    from filerecon.config.settings import Settings
    from filerecon.tracking.event_log import ReconciliationLogger

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_S = 30.0


def operation_lock_key(project_id: str, operation: str) -> str:
    """Lock key for one kind of operation on one project."""
    return f"{project_id}:{operation}"


class LockRegistry:
    """Keyed FIFO locks on the running event loop."""

    def __init__(
        self,
        default_timeout_s: float = DEFAULT_TIMEOUT_S,
        event_log: ReconciliationLogger | None = None,
    ) -> None:
        self._default_timeout_s = default_timeout_s
        self._event_log = event_log
        self._held: dict[str, asyncio.Future[None]] = {}
        self._waiters: dict[str, deque[asyncio.Future[None]]] = {}
        # Waiters handed the lock whose grant callback has not run yet.
        self._granting: dict[str, asyncio.Future[None]] = {}
        self._acquired_at: dict[str, float] = {}

    @classmethod
    def from_settings(
        cls, settings: Settings, event_log: ReconciliationLogger | None = None,
    ) -> LockRegistry:
        return cls(default_timeout_s=settings.lock_timeout_s, event_log=event_log)

    async def acquire(self, key: str, timeout: float | None = None) -> None:
        """Acquire ``key``, waiting in FIFO order behind the current holder.

        Raises:
            LockTimeoutError: Not granted within ``timeout`` seconds.
            LockClearedError: clear_all() ran while waiting.
        """
        timeout = self._default_timeout_s if timeout is None else timeout
        loop = asyncio.get_running_loop()

        if key not in self._held:
            self._take(key, loop)
            logger.debug("Lock acquired: %s", key)
            return

        waiter: asyncio.Future[None] = loop.create_future()
        self._waiters.setdefault(key, deque()).append(waiter)
        logger.debug("Waiting for lock %s (%d queued)", key, len(self._waiters[key]))

        started = time.monotonic()
        try:
            await asyncio.wait_for(waiter, timeout)
        except asyncio.TimeoutError:
            self._abandon(key, waiter)
            raise LockTimeoutError(key, timeout) from None
        except asyncio.CancelledError:
            self._abandon(key, waiter)
            raise

        waited = time.monotonic() - started
        logger.debug("Lock acquired after %.3fs: %s", waited, key)
        if self._event_log is not None:
            self._event_log.log_race_condition(
                "lock_acquire", key, wait_time_s=waited, project_id=key.split(":", 1)[0],
            )

    def release(self, key: str) -> None:
        """Release ``key`` and hand it to the next waiter. Unheld keys only warn."""
        signal = self._held.pop(key, None)
        self._acquired_at.pop(key, None)
        if signal is None:
            logger.warning("Attempted to release unheld lock: %s", key)
            return
        if not signal.done():
            signal.set_result(None)
        logger.debug("Lock released: %s", key)
        self._hand_off(key)

    async def with_lock(
        self,
        key: str,
        fn: Callable[[], Awaitable[T]],
        timeout: float | None = None,
    ) -> T:
        """Run ``fn`` while holding ``key``; the lock is released even if it raises."""
        await self.acquire(key, timeout)
        try:
            return await fn()
        finally:
            self.release(key)

    def is_locked(self, key: str) -> bool:
        return key in self._held

    def get_held_locks(self) -> list[str]:
        return list(self._held)

    def get_debug_info(self) -> dict[str, Any]:
        """Held keys with hold durations and queue depths, for operators."""
        now = time.monotonic()
        return {
            "held_locks": len(self._held),
            "locks": [
                {
                    "key": key,
                    "held_for_s": round(now - self._acquired_at.get(key, now), 3),
                    "waiters": len(self._waiters.get(key, ())),
                }
                for key in self._held
            ],
        }

    def clear_all(self) -> None:
        """Operator recovery: release every holder and reject every waiter."""
        logger.warning(
            "Clearing all locks (%d held, %d waiting)",
            len(self._held),
            sum(len(q) for q in self._waiters.values()) + len(self._granting),
        )
        for signal in self._held.values():
            if not signal.done():
                signal.set_result(None)
        for key, queue in self._waiters.items():
            for waiter in queue:
                if not waiter.done():
                    waiter.set_exception(LockClearedError(key))
        for key, waiter in self._granting.items():
            if not waiter.done():
                waiter.set_exception(LockClearedError(key))
        self._held.clear()
        self._waiters.clear()
        self._granting.clear()
        self._acquired_at.clear()

    # --- Internals ---

    def _take(self, key: str, loop: asyncio.AbstractEventLoop) -> None:
        self._held[key] = loop.create_future()
        self._acquired_at[key] = time.monotonic()

    def _discard_waiter(self, key: str, waiter: asyncio.Future[None]) -> None:
        queue = self._waiters.get(key)
        if queue is None:
            return
        try:
            queue.remove(waiter)
        except ValueError:
            pass
        if not queue:
            del self._waiters[key]

    def _abandon(self, key: str, waiter: asyncio.Future[None]) -> None:
        self._discard_waiter(key, waiter)
        if waiter.done() and not waiter.cancelled() and waiter.exception() is None:
            # Granted between the timeout firing and this handler running.
            self.release(key)
        else:
            waiter.cancel()

    def _hand_off(self, key: str) -> None:
        queue = self._waiters.get(key)
        while queue:
            waiter = queue.popleft()
            if waiter.done():
                continue
            if not queue:
                del self._waiters[key]
            loop = waiter.get_loop()
            self._take(key, loop)
            self._granting[key] = waiter
            loop.call_soon(self._grant, key, waiter)
            return
        self._waiters.pop(key, None)

    def _grant(self, key: str, waiter: asyncio.Future[None]) -> None:
        if self._granting.get(key) is not waiter:
            # clear_all() rejected this waiter before the grant ran.
            return
        del self._granting[key]
        if waiter.done():
            # Waiter gave up after hand-off was scheduled.
            self.release(key)
            return
        waiter.set_result(None)
