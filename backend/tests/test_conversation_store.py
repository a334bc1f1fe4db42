from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

from memory import ConversationStore, Message, NLUAnnotation


class ManualClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def test_append_never_exceeds_max_messages_and_evicts_oldest_first():
    store = ConversationStore(max_messages=10)
    for index in range(25):
        conversation = store.append("user-a", Message.user(f"message {index}"))
        assert len(conversation.messages) <= 10

    conversation = store.get("user-a")
    assert conversation is not None
    assert [message.content for message in conversation.messages] == [f"message {i}" for i in range(15, 25)]


def test_get_returns_none_for_unknown_id_and_does_not_create():
    store = ConversationStore()
    assert store.get("missing") is None
    assert "missing" not in store
    assert len(store) == 0


def test_get_or_create_returns_existing_conversation():
    store = ConversationStore()
    created = store.get_or_create("user-a")
    assert created.messages == []
    store.append("user-a", Message.user("hello"))
    existing = store.get_or_create("user-a")
    assert [message.content for message in existing.messages] == ["hello"]
    assert len(store) == 1


def test_snapshots_do_not_alias_store_state():
    store = ConversationStore()
    snapshot = store.append("user-a", Message.user("first"))
    snapshot.messages.append(Message.assistant("injected"))
    assert [m.content for m in store.get("user-a").messages] == ["first"]


def test_user_message_keeps_nlu_annotation():
    store = ConversationStore()
    annotation = NLUAnnotation(keywords=("headache",), sentiment="negative")
    store.append("user-a", Message.user("my head hurts", annotation))
    stored = store.get("user-a").messages[0]
    assert stored.nlu == annotation
    assert store.get("user-a").user_turns == 1


def test_last_activity_is_monotonic_even_if_clock_goes_backwards():
    clock = ManualClock()
    store = ConversationStore(clock=clock)
    store.append("user-a", Message.user("one"))
    first = store.get("user-a").last_activity
    clock.advance(minutes=-5)
    store.append("user-a", Message.user("two"))
    assert store.get("user-a").last_activity == first
    clock.advance(minutes=10)
    store.set_last_assessment("user-a", {"analysis": "x"})
    assert store.get("user-a").last_activity > first


def test_set_last_assessment_replaces_wholesale():
    store = ConversationStore()
    store.set_last_assessment("user-a", {"analysis": "first"})
    store.set_last_assessment("user-a", {"analysis": "second"})
    assert store.get("user-a").last_assessment == {"analysis": "second"}


def test_reset_removes_conversation():
    store = ConversationStore()
    store.append("user-a", Message.user("hi"))
    assert store.reset("user-a") is True
    assert store.get("user-a") is None
    assert store.reset("user-a") is False


def test_sweep_removes_exactly_the_expired_conversations():
    clock = ManualClock()
    store = ConversationStore(ttl=timedelta(hours=1), clock=clock)
    store.append("old", Message.user("a"))
    clock.advance(minutes=30)
    store.append("middle", Message.user("b"))
    clock.advance(minutes=30)
    store.append("fresh", Message.user("c"))

    # "old" is exactly at the TTL boundary, which is not expired.
    assert store.sweep(clock.now) == []

    clock.advance(seconds=1)
    assert store.sweep(clock.now) == ["old"]
    assert "middle" in store and "fresh" in store

    clock.advance(minutes=30)
    assert sorted(store.sweep(clock.now)) == ["middle"]
    assert store.get("fresh") is not None


def test_set_language_is_recorded():
    store = ConversationStore()
    store.set_language("user-a", "Spanish")
    assert store.get("user-a").language == "Spanish"


def test_concurrent_appends_for_same_id_keep_bound_and_lose_nothing_recent():
    store = ConversationStore(max_messages=10)
    workers = 8
    per_worker = 50
    barrier = threading.Barrier(workers)

    def writer(worker: int) -> None:
        barrier.wait()
        for index in range(per_worker):
            store.append("shared", Message.user(f"{worker}:{index}"))

    threads = [threading.Thread(target=writer, args=(worker,)) for worker in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    conversation = store.get("shared")
    assert len(conversation.messages) == 10
    # Each worker's messages keep their relative order inside the surviving window.
    by_worker: dict[str, list[int]] = {}
    for message in conversation.messages:
        worker, index = message.content.split(":")
        by_worker.setdefault(worker, []).append(int(index))
    for indexes in by_worker.values():
        assert indexes == sorted(indexes)


def test_concurrent_reset_and_append_leave_single_live_entry():
    store = ConversationStore(max_messages=5)
    stop = threading.Event()

    def resetter() -> None:
        while not stop.is_set():
            store.reset("shared")

    thread = threading.Thread(target=resetter)
    thread.start()
    try:
        for index in range(200):
            snapshot = store.append("shared", Message.user(str(index)))
            assert len(snapshot.messages) <= 5
    finally:
        stop.set()
        thread.join()
    assert len(store) <= 1
