"""Chat rooms API: resolve, list, history, send, image upload and live stream."""

import asyncio
from typing import Optional, Set
from uuid import UUID

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    Header,
    HTTPException,
    Query,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi_pagination import Page, Params
from fastapi_pagination.ext.sqlalchemy import paginate
from sqlalchemy.orm import Session

from swapchat.core.app_state import AppState
from swapchat.db import get_db
from swapchat.exceptions import TransportError
from swapchat.infra.logging_config import get_logger
from swapchat.models.chat_room import ChatRoom
from swapchat.models.mixins import utcnow
from swapchat.realtime.feed import FeedState
from swapchat.routers.utils.dependencies import (
    get_app_state,
    get_chat_room_by_id,
    get_current_user_id,
)
from swapchat.schemas.chat_room import ChatRoomRead, ChatRoomResolve
from swapchat.schemas.message import MessageCreate, MessageRead, MessageType
from swapchat.services.chat_room_service import ChatRoomService
from swapchat.services.message_service import MessageService
from swapchat.services.swap_request_service import SwapRequestService

logger = get_logger("chat_rooms")

router = APIRouter(
    prefix="/chat-rooms",
    tags=["chat-rooms"],
    responses={404: {"description": "Not found"}},
)


def _message_service(db: Session, app_state: AppState) -> MessageService:
    """Message store that asks local subscribers to resync when a publish fails."""
    return MessageService(
        db,
        bus=app_state.bus,
        on_publish_failed=lambda message: app_state.feed.resync(message.chat_room_id),
    )


@router.post("/resolve", response_model=ChatRoomRead)
def resolve_chat_room(
    data: ChatRoomResolve,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ChatRoomRead:
    """Find or create the room for a swap request or for the caller and a counterparty."""
    svc = ChatRoomService(db)
    if data.swap_request_id is not None:
        request = SwapRequestService(db).get_swap_request(data.swap_request_id)
        if request is None:
            raise HTTPException(status_code=404, detail="Swap request not found")
        if user_id not in (request.requester_id, request.owner_id):
            raise HTTPException(status_code=403, detail="Not a party to this swap request")
        return svc.resolve_for_request(request.id)
    return svc.resolve_for_pair(user_id, data.counterparty_id)


@router.get("", response_model=Page[ChatRoomRead])
def list_chat_rooms(
    params: Params = Depends(),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Page[ChatRoomRead]:
    """List the caller's rooms, most recently active first."""
    query = ChatRoomService(db).get_rooms_for_user_query(user_id)
    return paginate(query, params=params)


@router.get("/{room_id}", response_model=ChatRoomRead)
def get_chat_room(
    room: ChatRoom = Depends(get_chat_room_by_id),
) -> ChatRoomRead:
    return room


@router.get("/{room_id}/messages", response_model=Page[MessageRead])
def list_chat_room_messages(
    params: Params = Depends(),
    room: ChatRoom = Depends(get_chat_room_by_id),
    db: Session = Depends(get_db),
) -> Page[MessageRead]:
    """Room history, oldest first."""
    query = MessageService(db).get_messages_query(room.id)
    return paginate(query, params=params)


@router.post("/{room_id}/messages", response_model=MessageRead, status_code=201)
async def post_chat_room_message(
    data: MessageCreate,
    room: ChatRoom = Depends(get_chat_room_by_id),
    user_id: UUID = Depends(get_current_user_id),
    app_state: AppState = Depends(get_app_state),
    db: Session = Depends(get_db),
) -> MessageRead:
    """Append a message; live subscribers receive it over the room stream."""
    svc = _message_service(db, app_state)
    return await svc.append(
        room.id,
        user_id,
        data.content,
        message_type=data.message_type,
        image_url=data.image_url,
        client_ref=data.client_ref,
    )


@router.post("/{room_id}/images", response_model=MessageRead, status_code=201)
async def post_chat_room_image(
    file: UploadFile = File(...),
    caption: str = Form(""),
    client_ref: Optional[str] = Form(None),
    room: ChatRoom = Depends(get_chat_room_by_id),
    user_id: UUID = Depends(get_current_user_id),
    app_state: AppState = Depends(get_app_state),
    db: Session = Depends(get_db),
) -> MessageRead:
    """Upload an image to blob storage and post it as an image message."""
    data = await file.read()
    url = await app_state.blob_storage.upload(data, file.filename or "", file.content_type)
    svc = _message_service(db, app_state)
    return await svc.append(
        room.id,
        user_id,
        caption,
        message_type=MessageType.IMAGE,
        image_url=url,
        client_ref=client_ref,
    )


@router.websocket("/{room_id}/ws")
async def stream_chat_room(
    websocket: WebSocket,
    room_id: UUID,
    user_id: Optional[UUID] = Query(None),
    x_user_id: Optional[UUID] = Header(default=None),
    db: Session = Depends(get_db),
) -> None:
    """
    Push every message appended to the room after the connection opens.

    Browsers cannot set headers on a WebSocket handshake, so the viewer may
    also be passed as ?user_id=. Clients load history through GET /messages.
    After a feed reconnect the messages stored while it was down are pushed
    from history, each message id at most once per connection.
    """
    viewer = x_user_id or user_id
    room = ChatRoomService(db).get_chat_room(room_id)
    if viewer is None or room is None or not ChatRoomService.is_participant(room, viewer):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    app_state: AppState = websocket.app.state.app_state
    outbox: asyncio.Queue = asyncio.Queue()
    opened_at = utcnow()

    def on_state_change(state: FeedState, error: Optional[Exception]) -> None:
        if state == FeedState.FAILED:
            outbox.put_nowait(None)

    def backfill() -> None:
        for message in MessageService(db).list_ordered(room_id, since=opened_at):
            outbox.put_nowait(message)

    # Subscribe before accepting so nothing appended after the handshake is missed.
    try:
        subscription = await app_state.feed.subscribe(
            room_id,
            outbox.put_nowait,
            on_state_change=on_state_change,
            on_reconnect=backfill,
        )
    except TransportError as e:
        logger.warning("Cannot stream room %s: %s", room_id, e)
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return
    await websocket.accept()
    logger.info("User %s streaming room %s", viewer, room_id)

    async def pump() -> None:
        sent: Set[UUID] = set()
        while True:
            message = await outbox.get()
            if message is None:
                await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
                return
            if message.id in sent:
                continue
            sent.add(message.id)
            await websocket.send_json(message.model_dump(mode="json"))

    async def drain() -> None:
        # Inbound frames are ignored; receiving is how a disconnect is noticed.
        while True:
            await websocket.receive_text()

    sender = asyncio.create_task(pump())
    receiver = asyncio.create_task(drain())
    try:
        done, _ = await asyncio.wait(
            {sender, receiver}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        sender.cancel()
        receiver.cancel()
        subscription.close()

    errors = [t.exception() for t in done if t.exception() is not None]
    if all(isinstance(e, WebSocketDisconnect) for e in errors):
        logger.info("User %s left room %s stream", viewer, room_id)
        return
    logger.error("Stream for room %s failed: %r", room_id, errors[0])
    try:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    except (RuntimeError, WebSocketDisconnect):
        # the socket is already gone
        pass
