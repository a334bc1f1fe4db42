from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Callable, Iterator

from .models import Conversation, Message
from .time_utils import utc_now

DEFAULT_TTL = timedelta(hours=1)
DEFAULT_MAX_MESSAGES = 10

Clock = Callable[[], datetime]


class ConversationStore:
    """Process-lifetime conversation memory keyed by conversation id.

    Mutations for one id run under that id's lock. The registry lock only guards the
    id -> conversation and id -> lock maps, so collaborator latency for one user never
    blocks another. Callers receive snapshots; the live objects never leave the store.
    """

    def __init__(
        self,
        *,
        ttl: timedelta = DEFAULT_TTL,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        clock: Clock = utc_now,
    ) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self.ttl = ttl
        self.max_messages = max_messages
        self._clock = clock
        self._conversations: dict[str, Conversation] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._conversations)

    def __contains__(self, conversation_id: object) -> bool:
        with self._registry_lock:
            return conversation_id in self._conversations

    @contextmanager
    def _locked(self, conversation_id: str) -> Iterator[None]:
        while True:
            with self._registry_lock:
                lock = self._locks.setdefault(conversation_id, threading.Lock())
            lock.acquire()
            with self._registry_lock:
                current = self._locks.get(conversation_id)
            if current is lock:
                break
            # reset() or sweep() retired this lock while we waited on it.
            lock.release()
        try:
            yield
        finally:
            with self._registry_lock:
                if conversation_id not in self._conversations and self._locks.get(conversation_id) is lock:
                    del self._locks[conversation_id]
            lock.release()

    def _live(self, conversation_id: str) -> Conversation | None:
        with self._registry_lock:
            return self._conversations.get(conversation_id)

    def _live_or_create(self, conversation_id: str) -> Conversation:
        with self._registry_lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                conversation = Conversation(id=conversation_id, last_activity=self._clock())
                self._conversations[conversation_id] = conversation
            return conversation

    def _touch(self, conversation: Conversation) -> None:
        now = self._clock()
        if now > conversation.last_activity:
            conversation.last_activity = now

    def get(self, conversation_id: str) -> Conversation | None:
        if conversation_id not in self:
            return None
        with self._locked(conversation_id):
            conversation = self._live(conversation_id)
            return conversation.snapshot() if conversation else None

    def get_or_create(self, conversation_id: str) -> Conversation:
        with self._locked(conversation_id):
            return self._live_or_create(conversation_id).snapshot()

    def append(self, conversation_id: str, message: Message) -> Conversation:
        with self._locked(conversation_id):
            conversation = self._live_or_create(conversation_id)
            conversation.messages.append(message)
            overflow = len(conversation.messages) - self.max_messages
            if overflow > 0:
                del conversation.messages[:overflow]
            self._touch(conversation)
            return conversation.snapshot()

    def set_last_assessment(self, conversation_id: str, assessment: Any) -> None:
        with self._locked(conversation_id):
            conversation = self._live_or_create(conversation_id)
            conversation.last_assessment = assessment
            self._touch(conversation)

    def set_language(self, conversation_id: str, language: str) -> None:
        with self._locked(conversation_id):
            conversation = self._live_or_create(conversation_id)
            conversation.language = language
            self._touch(conversation)

    def reset(self, conversation_id: str) -> bool:
        with self._locked(conversation_id):
            with self._registry_lock:
                removed = self._conversations.pop(conversation_id, None)
                self._locks.pop(conversation_id, None)
        return removed is not None

    def sweep(self, now: datetime | None = None) -> list[str]:
        now = now or self._clock()
        removed: list[str] = []
        with self._registry_lock:
            for conversation_id, conversation in list(self._conversations.items()):
                if now - conversation.last_activity <= self.ttl:
                    continue
                lock = self._locks.get(conversation_id)
                if lock is not None and not lock.acquire(blocking=False):
                    # A request is mid-flight for this id, so it is not inactive.
                    continue
                try:
                    del self._conversations[conversation_id]
                    self._locks.pop(conversation_id, None)
                    removed.append(conversation_id)
                finally:
                    if lock is not None:
                        lock.release()
        return removed
