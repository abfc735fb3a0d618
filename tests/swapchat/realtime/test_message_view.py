"""Tests for MessageView."""

import uuid
from datetime import datetime, timedelta, timezone

from swapchat.realtime.view import MessageView
from swapchat.schemas.message import MessageRead, MessageStatus

ROOM = uuid.uuid4()
T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _message(seconds, sender=None, content=None):
    return MessageRead(
        id=uuid.uuid4(),
        chat_room_id=ROOM,
        sender_id=sender or uuid.uuid4(),
        content=content or f"at {seconds}",
        created_at=T0 + timedelta(seconds=seconds),
    )


def test_add_ignores_known_ids():
    view = MessageView()
    m = _message(1)
    assert view.add(m) is True
    assert view.add(m) is False
    assert len(view) == 1
    assert m.id in view


def test_history_and_live_overlap_never_duplicates():
    view = MessageView()
    m1, m2, m3 = _message(1), _message(2), _message(3)

    # Live delivery of m2 races the history load.
    view.add(m2)
    added = view.merge([m1, m2, m3])

    assert added == 2
    assert [m.id for m in view.messages] == [m1.id, m2.id, m3.id]
    assert view.merge([m1, m2, m3]) == 0
    assert len(view) == 3


def test_merge_into_empty_view_keeps_order():
    view = MessageView()
    history = [_message(s) for s in range(5)]
    assert view.merge(history) == 5
    assert [m.id for m in view.messages] == [m.id for m in history]


def test_merge_breaks_timestamp_ties_by_id():
    view = MessageView()
    a, b = _message(1), _message(1)
    first, second = sorted([a, b], key=lambda m: str(m.id))
    view.merge([second])
    view.merge([first])
    assert [m.id for m in view.messages] == [first.id, second.id]


def test_add_keeps_arrival_order():
    view = MessageView()
    late, early = _message(5), _message(1)
    view.add(late)
    view.add(early)
    assert [m.id for m in view.messages] == [late.id, early.id]


def test_set_status_is_local():
    view = MessageView()
    me, them = uuid.uuid4(), uuid.uuid4()
    mine, theirs = _message(1, sender=me), _message(2, sender=them)
    view.merge([mine, theirs])

    changed = view.set_status(MessageStatus.READ, lambda m: m.sender_id == them)

    assert changed == 1
    statuses = {m.id: m.status for m in view.messages}
    assert statuses[theirs.id] == MessageStatus.READ
    assert statuses[mine.id] == MessageStatus.SENT
    assert theirs.status == MessageStatus.SENT
