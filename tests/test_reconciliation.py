from campusmart.client.messages import (
    ChatMessage,
    UserSummary,
    is_pending_id,
    new_pending_id,
    normalize_message,
)
from campusmart.client.reconciliation import ReconciliationStore, merge_message
from tests.helpers import BUYER_ID, SELLER_ID, wire_message


def _pending(message_id, content, chat_id="c1"):
    raw = wire_message(message_id, content, chat_id=chat_id)
    raw["senderId"] = {"id": BUYER_ID, "firstName": "Ann", "lastName": "Buyer"}
    return normalize_message(raw)


def test_normalize_expands_bare_ids():
    message = normalize_message(wire_message("m1", "hi"))

    assert message.sender == UserSummary(id=BUYER_ID, first_name="User", last_name="")
    assert message.receiver.id == SELLER_ID
    assert message.timestamp.year == 2024


def test_normalize_is_idempotent():
    raw = wire_message("m1", "hi")
    once = normalize_message(raw)

    assert normalize_message(once) == once
    assert normalize_message(once.model_dump(by_alias=True)) == once


def test_normalize_uses_created_at_when_timestamp_missing():
    raw = wire_message("m1", "hi")
    del raw["timestamp"]

    assert normalize_message(raw).timestamp == normalize_message(wire_message("m1", "hi")).timestamp


def test_normalize_rejects_malformed():
    raw = wire_message("m1", "hi")
    del raw["chatId"]

    assert normalize_message(raw) is None
    assert normalize_message(None) is None
    assert normalize_message({**wire_message("m1", "hi"), "timestamp": "not a date"}) is None


def test_pending_ids():
    pending = new_pending_id()

    assert is_pending_id(pending)
    assert pending != new_pending_id()
    assert not is_pending_id("abc123")


def test_merge_duplicate_delivery_is_ignored():
    message = normalize_message(wire_message("m1", "hi"))

    merged = merge_message(merge_message([], message), message)

    assert [m.id for m in merged] == ["m1"]


def test_merge_confirmation_keeps_position():
    current = [
        normalize_message(wire_message("m0", "earlier")),
        _pending("temp_1001", "Hello"),
        normalize_message(wire_message("m2", "from seller", sender=SELLER_ID, receiver=BUYER_ID)),
    ]

    merged = merge_message(current, normalize_message(wire_message("abc123", "Hello")))

    assert [m.id for m in merged] == ["m0", "abc123", "m2"]
    assert [m.id for m in current] == ["m0", "temp_1001", "m2"]


def test_merge_confirms_only_first_matching_pending():
    current = [_pending("temp_1", "ok"), _pending("temp_2", "ok")]

    merged = merge_message(current, normalize_message(wire_message("s1", "ok")))
    merged = merge_message(merged, normalize_message(wire_message("s2", "ok")))

    assert [m.id for m in merged] == ["s1", "s2"]


def test_merge_does_not_match_different_receiver():
    current = [_pending("temp_1", "ok")]

    merged = merge_message(current, normalize_message(wire_message("s1", "ok", sender=SELLER_ID, receiver=BUYER_ID)))

    assert [m.id for m in merged] == ["temp_1", "s1"]


def test_store_optimistic_then_confirmed():
    store = ReconciliationStore()
    store.add_message(wire_message("m0", "earlier"))
    entry = store.add_optimistic_message(
        chat_id="c1",
        sender=UserSummary(id=BUYER_ID, first_name="Ann"),
        receiver=UserSummary(id=SELLER_ID),
        content="Hello",
    )
    assert entry.is_pending
    assert entry.read_status is False

    store.add_message(wire_message("abc123", "Hello"))
    store.add_message(wire_message("abc123", "Hello"))

    assert [m.id for m in store.messages_for("c1")] == ["m0", "abc123"]
    assert store.messages_for("c1")[1].delivery_state == "confirmed"


def test_store_drops_malformed_events():
    store = ReconciliationStore()

    assert store.add_message({"content": "no chat"}) is None
    assert store.add_message("garbage") is None
    assert store.messages_for("c1") == []


def test_set_messages_for_chat_replaces_snapshot():
    store = ReconciliationStore()
    store.add_message(wire_message("old", "old"))

    store.set_messages_for_chat("c1", [wire_message("m1", "one"), {"bad": True}, wire_message("m2", "two")])

    messages = store.messages_for("c1")
    assert [m.id for m in messages] == ["m1", "m2"]
    assert all(isinstance(m, ChatMessage) for m in messages)


def test_mark_failed_and_dismiss():
    store = ReconciliationStore()
    entry = store.add_optimistic_message(
        chat_id="c1", sender=UserSummary(id=BUYER_ID), receiver=UserSummary(id=SELLER_ID), content="Hello"
    )

    assert store.mark_failed("c1", entry.id)
    assert store.get("c1", entry.id).delivery_state == "failed"
    assert not store.mark_failed("c1", "abc123")

    # Подтверждение может прийти и после таймаута
    store.add_message(wire_message("abc123", "Hello"))
    assert [m.id for m in store.messages_for("c1")] == ["abc123"]
    assert not store.dismiss("c1", "abc123")


def test_dismiss_removes_failed_entry():
    store = ReconciliationStore()
    entry = store.add_optimistic_message(
        chat_id="c1", sender=UserSummary(id=BUYER_ID), receiver=UserSummary(id=SELLER_ID), content="Hello"
    )
    store.mark_failed("c1", entry.id)

    assert store.dismiss("c1", entry.id)
    assert store.messages_for("c1") == []


def test_listeners_are_notified():
    store = ReconciliationStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.add_message(wire_message("m1", "hi"))
    unsubscribe()
    store.add_message(wire_message("m2", "hi"))

    assert seen == ["c1"]


def test_online_users():
    store = ReconciliationStore()
    store.set_online_users([BUYER_ID, SELLER_ID])
    store.set_online_users("not a list")

    assert store.is_online(SELLER_ID)
    store.clear_online_users()
    assert store.online_users == []
