"""Tests for request and read schemas."""

import uuid
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from swapchat.schemas.chat_room import ChatRoomRead, ChatRoomResolve
from swapchat.schemas.message import MessageCreate, MessageRead
from swapchat.schemas.swap_request import ALLOWED_TRANSITIONS, SwapRequestStatus


def test_chat_room_resolve_requires_exactly_one_key():
    ChatRoomResolve(swap_request_id=uuid.uuid4())
    ChatRoomResolve(counterparty_id=uuid.uuid4())
    with pytest.raises(ValidationError):
        ChatRoomResolve()
    with pytest.raises(ValidationError):
        ChatRoomResolve(swap_request_id=uuid.uuid4(), counterparty_id=uuid.uuid4())


def test_chat_room_read_counterparty():
    a, b = uuid.uuid4(), uuid.uuid4()
    now = datetime.now(timezone.utc)
    room = ChatRoomRead(
        id=uuid.uuid4(), participant_1=a, participant_2=b, created_at=now, updated_at=now
    )
    assert room.counterparty_of(a) == b
    assert room.counterparty_of(b) == a
    assert room.has_participant(a)
    assert not room.has_participant(uuid.uuid4())


def test_naive_datetimes_are_read_as_utc():
    message = MessageRead(
        id=uuid.uuid4(),
        chat_room_id=uuid.uuid4(),
        sender_id=uuid.uuid4(),
        content="hi",
        created_at=datetime(2026, 1, 1, 12, 0),
    )
    assert message.created_at.tzinfo == timezone.utc
    assert message.created_at.hour == 12


def test_message_create_limits_client_ref():
    with pytest.raises(ValidationError):
        MessageCreate(content="hi", client_ref="x" * 65)


def test_only_pending_can_transition():
    assert ALLOWED_TRANSITIONS[SwapRequestStatus.PENDING] == {
        SwapRequestStatus.ACCEPTED,
        SwapRequestStatus.REJECTED,
    }
    assert not ALLOWED_TRANSITIONS[SwapRequestStatus.ACCEPTED]
    assert not ALLOWED_TRANSITIONS[SwapRequestStatus.REJECTED]
