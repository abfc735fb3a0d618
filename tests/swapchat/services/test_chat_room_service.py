"""Tests for ChatRoomService."""

import uuid
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from swapchat.core.room_key import build_pair_key
from swapchat.exceptions import NotFoundError, ValidationError
from swapchat.models.chat_room import ChatRoom
from swapchat.services.chat_room_service import ChatRoomService


def test_resolve_for_request_creates_room(db: Session, setup_swap_request):
    room = ChatRoomService(db).resolve_for_request(setup_swap_request.id)
    assert room.id is not None
    assert room.swap_request_id == setup_swap_request.id
    assert room.participant_1 == setup_swap_request.requester_id
    assert room.participant_2 == setup_swap_request.owner_id
    assert room.pair_key is None


def test_resolve_for_request_is_idempotent(db: Session, setup_swap_request):
    svc = ChatRoomService(db)
    first = svc.resolve_for_request(setup_swap_request.id)
    second = svc.resolve_for_request(setup_swap_request.id)
    assert first.id == second.id
    assert db.query(ChatRoom).count() == 1


def test_resolve_for_request_unknown_request(db: Session):
    with pytest.raises(NotFoundError):
        ChatRoomService(db).resolve_for_request(uuid.uuid4())
    assert db.query(ChatRoom).count() == 0


def test_resolve_for_request_adopts_room_created_concurrently(
    db: Session, setup_swap_request, setup_chat_room
):
    """The loser of the insert race adopts the winner's row instead of failing."""
    svc = ChatRoomService(db)
    real_lookup = svc.get_room_for_request
    calls = []

    def lookup(swap_request_id):
        calls.append(swap_request_id)
        # First lookup runs before the other creator commits.
        if len(calls) == 1:
            return None
        return real_lookup(swap_request_id)

    with patch.object(svc, "get_room_for_request", side_effect=lookup):
        room = svc.resolve_for_request(setup_swap_request.id)

    assert room.id == setup_chat_room.id
    assert len(calls) == 2
    assert db.query(ChatRoom).count() == 1


def test_resolve_for_pair_is_order_independent(db: Session, requester_id, owner_id):
    svc = ChatRoomService(db)
    ab = svc.resolve_for_pair(requester_id, owner_id)
    ba = svc.resolve_for_pair(owner_id, requester_id)
    assert ab.id == ba.id
    assert ab.pair_key == build_pair_key(owner_id, requester_id)
    assert db.query(ChatRoom).count() == 1


def test_resolve_for_pair_rejects_self(db: Session, requester_id):
    with pytest.raises(ValidationError):
        ChatRoomService(db).resolve_for_pair(requester_id, requester_id)


def test_resolve_for_pair_reuses_request_room(db: Session, setup_chat_room):
    """Direct contact between two users who already negotiate a swap lands in that room."""
    room = ChatRoomService(db).resolve_for_pair(
        setup_chat_room.participant_2, setup_chat_room.participant_1
    )
    assert room.id == setup_chat_room.id
    assert db.query(ChatRoom).count() == 1


def test_resolve_for_pair_adopts_room_created_concurrently(db: Session, requester_id, owner_id):
    pair_key = build_pair_key(requester_id, owner_id)
    existing = ChatRoom(participant_1=owner_id, participant_2=requester_id, pair_key=pair_key)
    db.add(existing)
    db.commit()

    svc = ChatRoomService(db)
    real_lookup = svc.get_room_for_pair_key
    calls = []

    def lookup(key):
        calls.append(key)
        if len(calls) == 1:
            return None
        return real_lookup(key)

    with patch.object(svc, "get_room_for_pair_key", side_effect=lookup), patch.object(
        svc, "get_rooms_between", return_value=[]
    ):
        room = svc.resolve_for_pair(requester_id, owner_id)

    assert room.id == existing.id
    assert db.query(ChatRoom).count() == 1


def test_second_request_between_same_pair_gets_own_room(
    db: Session, faker, setup_swap_request, setup_chat_room
):
    from swapchat.models.swap_request import SwapRequest

    other = SwapRequest(
        requester_id=setup_swap_request.owner_id,
        owner_id=setup_swap_request.requester_id,
        offered_item_id=setup_swap_request.requested_item_id,
        requested_item_id=setup_swap_request.offered_item_id,
        status="pending",
    )
    db.add(other)
    db.commit()

    room = ChatRoomService(db).resolve_for_request(other.id)
    assert room.id != setup_chat_room.id
    assert db.query(ChatRoom).count() == 2


def test_get_rooms_for_user(db: Session, setup_chat_room, outsider_id):
    svc = ChatRoomService(db)
    assert [r.id for r in svc.get_rooms_for_user(setup_chat_room.participant_1)] == [
        setup_chat_room.id
    ]
    assert [r.id for r in svc.get_rooms_for_user(setup_chat_room.participant_2)] == [
        setup_chat_room.id
    ]
    assert svc.get_rooms_for_user(outsider_id) == []


def test_is_participant(setup_chat_room, outsider_id):
    assert ChatRoomService.is_participant(setup_chat_room, setup_chat_room.participant_1)
    assert ChatRoomService.is_participant(setup_chat_room, setup_chat_room.participant_2)
    assert not ChatRoomService.is_participant(setup_chat_room, outsider_id)


def test_build_pair_key_is_symmetric():
    a, b = uuid.uuid4(), uuid.uuid4()
    assert build_pair_key(a, b) == build_pair_key(b, a)
    assert build_pair_key(a, b) == ":".join(sorted([a.hex, b.hex]))
