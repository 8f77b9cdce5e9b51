"""In-memory conversation sessions keyed by chat user id."""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Optional

from relay.logging_config import get_logger

logger = get_logger("session_store")

DEFAULT_SESSION_TTL = timedelta(minutes=10)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConversationState:
    flow: str
    step: str
    data: dict[str, str] = field(default_factory=dict)
    last_activity: datetime = field(default_factory=utc_now)

    def touch(self, now: datetime) -> None:
        self.last_activity = now


class SessionStore:
    """Holds at most one ConversationState per user.

    Expiry is lazy: callers that are about to act on a session go through
    ``get_active`` which deletes a stale state and reports it as expired.
    Mutations for one user are serialized with ``locked(user_id)``.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.ttl = ttl
        self.clock = clock
        self._states: dict[str, ConversationState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_refs: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._states

    def get(self, user_id: str) -> Optional[ConversationState]:
        return self._states.get(user_id)

    def set(self, user_id: str, state: ConversationState) -> None:
        self._states[user_id] = state

    def delete(self, user_id: str) -> None:
        self._states.pop(user_id, None)

    def is_expired(self, state: ConversationState, now: Optional[datetime] = None) -> bool:
        now = now or self.clock()
        return now - state.last_activity > self.ttl

    def get_active(self, user_id: str) -> tuple[Optional[ConversationState], bool]:
        """Return ``(state, expired)``.

        An expired state is removed before returning ``(None, True)``.
        """
        state = self._states.get(user_id)
        if state is None:
            return None, False
        if self.is_expired(state):
            logger.info(
                "Session expired",
                extra={"context": {"user_id": user_id, "flow": state.flow, "step": state.step}},
            )
            self.delete(user_id)
            return None, True
        return state, False

    @asynccontextmanager
    async def locked(self, user_id: str) -> AsyncIterator[None]:
        """Serialize work for one user; waiters are released in arrival order."""
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        self._lock_refs[user_id] = self._lock_refs.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_refs[user_id] -= 1
            if self._lock_refs[user_id] == 0:
                del self._lock_refs[user_id]
                self._locks.pop(user_id, None)
