"""Per-user serialization of derived-state recomputation within one process."""

import asyncio
import weakref

# An entry lives only while some task holds or waits on the lock
_locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()


def user_lock(user_id: int) -> asyncio.Lock:
    """Lock held while one user's workout commit is turned into records, challenge progress and badges."""
    lock = _locks.get(user_id)
    if lock is None:
        lock = _locks[user_id] = asyncio.Lock()
    return lock


def tracked_users() -> int:
    return len(_locks)
