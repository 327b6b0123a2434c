from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from newsadmin.storage.models import User, utcnow


class LockoutPolicy:
    """Failed-login bookkeeping over ``User.failed_attempts``/``lock_until``.

    The policy never writes to the store itself; each transition returns the
    field changes to persist so the caller decides how to apply them.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 5,
        lock_duration: timedelta = timedelta(hours=2),
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be positive")
        self.max_attempts = max_attempts
        self.lock_duration = lock_duration
        self._clock = clock or utcnow

    def now(self) -> datetime:
        return self._clock()

    def is_locked(self, user: User) -> bool:
        return user.is_locked(self.now())

    def minutes_remaining(self, user: User) -> int:
        if not user.lock_until:
            return 0
        seconds = (user.lock_until - self.now()).total_seconds()
        return max(int(math.ceil(seconds / 60)), 0)

    def lock_expired(self, user: User) -> bool:
        """True when a past lock is still recorded and should be cleared."""
        return user.lock_until is not None and not self.is_locked(user)

    def register_failure(self, user: User) -> Dict[str, Any]:
        if self.lock_expired(user):
            # Lazy unlock: a stale counter from before the lock does not carry over
            attempts = 1
        else:
            attempts = user.failed_attempts + 1
        if attempts >= self.max_attempts:
            return {"failed_attempts": 0, "lock_until": self.now() + self.lock_duration}
        return {"failed_attempts": attempts, "lock_until": None}

    def register_success(self, user: User) -> Dict[str, Any]:
        return {"failed_attempts": 0, "lock_until": None}

    @staticmethod
    def locks(changes: Dict[str, Any]) -> bool:
        return changes.get("lock_until") is not None


__all__ = ["LockoutPolicy"]
