from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from swapchat.core.app_state import AppState
from swapchat.db import get_db
from swapchat.models.chat_room import ChatRoom
from swapchat.models.swap_request import SwapRequest
from swapchat.services.chat_room_service import ChatRoomService
from swapchat.services.swap_request_service import SwapRequestService


def get_current_user_id(
    x_user_id: Optional[UUID] = Header(default=None),
) -> UUID:
    """The caller's user id, as supplied by the upstream auth layer."""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


def get_app_state(request: Request) -> AppState:
    return request.app.state.app_state


def get_chat_room_by_id(
    room_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ChatRoom:
    """FastAPI dependency to get a chat room the caller participates in."""
    room = ChatRoomService(db).get_chat_room(room_id)
    if room is None:
        raise HTTPException(status_code=404, detail="Chat room not found")
    if not ChatRoomService.is_participant(room, user_id):
        raise HTTPException(status_code=403, detail="Not a participant of this chat room")
    return room


def get_swap_request_by_id(
    request_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> SwapRequest:
    """FastAPI dependency to get a swap request the caller is a party to."""
    request = SwapRequestService(db).get_swap_request(request_id)
    if request is None:
        raise HTTPException(status_code=404, detail="Swap request not found")
    if user_id not in (request.requester_id, request.owner_id):
        raise HTTPException(status_code=403, detail="Not a party to this swap request")
    return request
