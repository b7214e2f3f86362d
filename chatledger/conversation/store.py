import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Hashable, Iterator

from loguru import logger

from chatledger.conversation.state import ConversationState


class ConversationStateStore:
    """In-memory, process-wide store of conversation states.

    Every conversation id gets its own lock; callers hold it for the whole
    read-modify-save cycle of one message. A lock lives only while some
    caller holds or waits on it. States are kept in memory only and
    vanish on restart.
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(minutes=10),
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.ttl = ttl
        self.clock = clock
        self._states: dict[Hashable, ConversationState] = {}
        self._locks: dict[Hashable, threading.Lock] = {}
        self._lock_users: dict[Hashable, int] = {}
        self._guard = threading.Lock()

    def get(self, conversation_id: Hashable) -> ConversationState:
        with self._guard:
            state = self._states.get(conversation_id)
            if state is None:
                state = ConversationState(
                    conversation_id=conversation_id, last_updated=self.clock()
                )
                self._states[conversation_id] = state
                logger.debug("Created conversation state for {}", conversation_id)
            return state

    def save(self, state: ConversationState) -> None:
        state.touch(self.clock())
        with self._guard:
            self._states[state.conversation_id] = state

    def clear(self, conversation_id: Hashable) -> None:
        with self._guard:
            self._states.pop(conversation_id, None)

    def __contains__(self, conversation_id: Hashable) -> bool:
        with self._guard:
            return conversation_id in self._states

    def __len__(self) -> int:
        with self._guard:
            return len(self._states)

    def _acquire_lock_ref(self, conversation_id: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(conversation_id)
            if lock is None:
                lock = self._locks[conversation_id] = threading.Lock()
            self._lock_users[conversation_id] = self._lock_users.get(conversation_id, 0) + 1
            return lock

    def _release_lock_ref(self, conversation_id: Hashable) -> None:
        with self._guard:
            users = self._lock_users[conversation_id] - 1
            if users:
                self._lock_users[conversation_id] = users
            else:
                # No holder or waiter left; the next message gets a fresh lock.
                del self._lock_users[conversation_id]
                del self._locks[conversation_id]

    @contextmanager
    def lock(self, conversation_id: Hashable) -> Iterator[None]:
        """Serialize processing of messages for one conversation."""
        lock = self._acquire_lock_ref(conversation_id)
        try:
            with lock:
                yield
        finally:
            self._release_lock_ref(conversation_id)

    def evict_stale(self, max_age: timedelta | None = None) -> int:
        """Drop states idle for longer than `max_age` (default: the store TTL).

        Conversations whose lock is currently held or awaited are skipped.
        """
        cutoff = self.clock() - (max_age if max_age is not None else self.ttl)
        evicted = 0
        with self._guard:
            for conversation_id, state in list(self._states.items()):
                if state.last_updated >= cutoff:
                    continue
                if self._lock_users.get(conversation_id, 0):
                    continue
                del self._states[conversation_id]
                evicted += 1
        if evicted:
            logger.info("Evicted {} stale conversation(s)", evicted)
        return evicted
