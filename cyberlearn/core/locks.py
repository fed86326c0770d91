"""Per-learner write serialization.

UserProfile is written by every lesson completion and quiz pass of a learner,
so profile recomputations for the same learner run one at a time. With Redis
configured the lock is shared by every engine process; without it an
in-process ``asyncio.Lock`` per learner is used.
"""

import asyncio
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING
from uuid import UUID

from redis.exceptions import LockError

from cyberlearn.core.errors import ConcurrencyConflictError
from cyberlearn.core.logging import get_logger
from cyberlearn.core.redis import profile_lock_key


if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)


class UserLockManager:
    """Hands out one exclusive lock per learner."""

    def __init__(self, redis: "Redis | None" = None, timeout_seconds: float = 10.0):
        self.redis = redis
        self.timeout_seconds = timeout_seconds
        # Entries disappear once no holder or waiter references the lock
        self._local_locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @property
    def distributed(self) -> bool:
        """True when locks are shared across processes through Redis."""
        return self.redis is not None

    @asynccontextmanager
    async def hold(self, user_id: UUID) -> AsyncIterator[None]:
        """Hold the learner's lock for the duration of the block.

        Raises:
            ConcurrencyConflictError: If the lock cannot be acquired in time.
        """
        if not self.redis:
            lock = self._local_locks.setdefault(user_id, asyncio.Lock())
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout_seconds)
            except TimeoutError as e:
                raise ConcurrencyConflictError from e
            try:
                yield
            finally:
                lock.release()
            return

        redis_lock = self.redis.lock(
            profile_lock_key(str(user_id)),
            timeout=self.timeout_seconds,
            blocking_timeout=self.timeout_seconds,
        )
        acquired = await redis_lock.acquire()
        if not acquired:
            logger.warning("profile_lock_timeout", user_id=str(user_id))
            raise ConcurrencyConflictError
        try:
            yield
        finally:
            try:
                await redis_lock.release()
            except LockError:
                # Lock expired while held; the version check on the
                # profile row still rejects a conflicting write.
                logger.warning("profile_lock_expired", user_id=str(user_id))
