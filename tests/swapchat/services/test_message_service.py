"""Tests for MessageService."""

import uuid
from unittest.mock import AsyncMock, Mock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from swapchat.exceptions import (
    NotFoundError,
    NotParticipantError,
    TransportError,
    ValidationError,
)
from swapchat.models.chat_room import ChatRoom
from swapchat.models.message import Message
from swapchat.models.mixins import utcnow
from swapchat.models.notification import Notification
from swapchat.realtime.bus import message_channel
from swapchat.schemas.message import MessageRead, MessageType
from swapchat.services.message_service import MessageService


@pytest.mark.asyncio
async def test_append_and_list_ordered(db: Session, setup_chat_room):
    svc = MessageService(db)
    sender = setup_chat_room.participant_1
    for i in range(5):
        await svc.append(setup_chat_room.id, sender, f"message {i}")

    messages = svc.list_ordered(setup_chat_room.id)
    assert len(messages) == 5
    assert [m.content for m in messages] == [f"message {i}" for i in range(5)]
    keys = [m.sort_key for m in messages]
    assert keys == sorted(keys)
    assert all(isinstance(m, MessageRead) for m in messages)
    assert svc.get_message_count(setup_chat_room.id) == 5


@pytest.mark.asyncio
async def test_append_strips_content(db: Session, setup_chat_room):
    message = await MessageService(db).append(
        setup_chat_room.id, setup_chat_room.participant_2, "  hello  "
    )
    assert message.content == "hello"
    assert message.message_type == MessageType.TEXT
    assert message.status.value == "sent"


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "   ", None])
async def test_append_rejects_empty_text(db: Session, setup_chat_room, content):
    with pytest.raises(ValidationError):
        await MessageService(db).append(
            setup_chat_room.id, setup_chat_room.participant_1, content
        )
    assert db.query(Message).count() == 0


@pytest.mark.asyncio
async def test_append_image_requires_url(db: Session, setup_chat_room):
    svc = MessageService(db)
    with pytest.raises(ValidationError):
        await svc.append(
            setup_chat_room.id,
            setup_chat_room.participant_1,
            "look",
            message_type=MessageType.IMAGE,
        )
    message = await svc.append(
        setup_chat_room.id,
        setup_chat_room.participant_1,
        "",
        message_type="image",
        image_url="http://testserver/storage/chat-images/a.jpg",
    )
    assert message.content == "Image"
    assert message.image_url.endswith("a.jpg")


@pytest.mark.asyncio
async def test_append_text_rejects_image_url(db: Session, setup_chat_room):
    with pytest.raises(ValidationError):
        await MessageService(db).append(
            setup_chat_room.id,
            setup_chat_room.participant_1,
            "hi",
            image_url="http://example.com/x.png",
        )


@pytest.mark.asyncio
async def test_append_rejects_unknown_type(db: Session, setup_chat_room):
    with pytest.raises(ValidationError):
        await MessageService(db).append(
            setup_chat_room.id, setup_chat_room.participant_1, "hi", message_type="video"
        )


@pytest.mark.asyncio
async def test_append_unknown_room(db: Session, requester_id):
    with pytest.raises(NotFoundError):
        await MessageService(db).append(uuid.uuid4(), requester_id, "hi")


@pytest.mark.asyncio
async def test_append_rejects_non_participant(db: Session, setup_chat_room, outsider_id):
    with pytest.raises(NotParticipantError):
        await MessageService(db).append(setup_chat_room.id, outsider_id, "hi")
    assert db.query(Message).count() == 0


@pytest.mark.asyncio
async def test_append_publishes_to_room_channel(db: Session, setup_chat_room):
    bus = AsyncMock()
    message = await MessageService(db, bus=bus).append(
        setup_chat_room.id, setup_chat_room.participant_1, "hi"
    )
    bus.publish.assert_awaited_once()
    channel, payload = bus.publish.await_args.args
    assert channel == message_channel(setup_chat_room.id)
    assert payload["id"] == str(message.id)
    assert MessageRead.model_validate(payload) == message


@pytest.mark.asyncio
async def test_append_survives_publish_failure(db: Session, setup_chat_room):
    bus = AsyncMock()
    bus.publish.side_effect = TransportError("bus down")
    svc = MessageService(db, bus=bus)
    message = await svc.append(setup_chat_room.id, setup_chat_room.participant_1, "hi")
    assert [m.id for m in svc.list_ordered(setup_chat_room.id)] == [message.id]


@pytest.mark.asyncio
async def test_publish_failure_calls_hook_with_message(db: Session, bus, setup_chat_room):
    hook = Mock()
    bus.available = False
    svc = MessageService(db, bus=bus, on_publish_failed=hook)
    message = await svc.append(setup_chat_room.id, setup_chat_room.participant_1, "hi")
    hook.assert_called_once_with(message)

    bus.available = True
    await svc.append(setup_chat_room.id, setup_chat_room.participant_1, "again")
    assert hook.call_count == 1


@pytest.mark.asyncio
async def test_append_storage_failure_is_transport_error(db: Session, setup_chat_room):
    svc = MessageService(db)
    with patch.object(db, "commit", side_effect=SQLAlchemyError("db down")):
        with pytest.raises(TransportError):
            await svc.append(setup_chat_room.id, setup_chat_room.participant_1, "hi")


@pytest.mark.asyncio
async def test_append_with_client_ref_is_idempotent(db: Session, setup_chat_room):
    svc = MessageService(db)
    sender = setup_chat_room.participant_1
    first = await svc.append(setup_chat_room.id, sender, "hi", client_ref="ref-1")
    again = await svc.append(setup_chat_room.id, sender, "hi", client_ref="ref-1")
    assert again.id == first.id
    assert svc.get_message_count(setup_chat_room.id) == 1


@pytest.mark.asyncio
async def test_append_notifies_counterparty(db: Session, setup_chat_room):
    await MessageService(db).append(
        setup_chat_room.id, setup_chat_room.participant_1, "x" * 200
    )
    notes = db.query(Notification).all()
    assert len(notes) == 1
    assert notes[0].user_id == setup_chat_room.participant_2
    assert notes[0].type == "message"
    assert notes[0].related_id == setup_chat_room.id
    assert len(notes[0].message) == 80
    assert notes[0].message.endswith("...")


@pytest.mark.asyncio
async def test_append_bumps_room_updated_at(db: Session, setup_chat_room):
    before = setup_chat_room.updated_at
    await MessageService(db).append(
        setup_chat_room.id, setup_chat_room.participant_1, "hi"
    )
    db.expire_all()
    assert db.get(ChatRoom, setup_chat_room.id).updated_at > before


def test_list_ordered_empty_room(db: Session, setup_chat_room):
    assert MessageService(db).list_ordered(setup_chat_room.id) == []


@pytest.mark.asyncio
async def test_list_ordered_since(db: Session, setup_chat_room):
    svc = MessageService(db)
    sender = setup_chat_room.participant_1
    await svc.append(setup_chat_room.id, sender, "before")
    cutoff = utcnow()
    later = await svc.append(setup_chat_room.id, sender, "after")

    assert [m.id for m in svc.list_ordered(setup_chat_room.id, since=cutoff)] == [later.id]
    assert len(svc.list_ordered(setup_chat_room.id)) == 2
