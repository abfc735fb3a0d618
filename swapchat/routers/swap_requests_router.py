"""Swap requests API: propose, list, accept, reject."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi_pagination import Page, Params
from fastapi_pagination.ext.sqlalchemy import paginate
from sqlalchemy.orm import Session

from swapchat.db import get_db
from swapchat.models.swap_request import SwapRequest
from swapchat.routers.utils.dependencies import (
    get_current_user_id,
    get_swap_request_by_id,
)
from swapchat.schemas.swap_request import (
    SwapRequestBody,
    SwapRequestCreate,
    SwapRequestDirection,
    SwapRequestRead,
)
from swapchat.services.swap_request_service import SwapRequestService

router = APIRouter(
    prefix="/swap-requests",
    tags=["swap-requests"],
    responses={404: {"description": "Not found"}},
)


@router.post("", response_model=SwapRequestRead, status_code=201)
def create_swap_request(
    data: SwapRequestBody,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> SwapRequestRead:
    """Propose swapping one of the caller's items for one of the owner's."""
    svc = SwapRequestService(db)
    request = svc.create_swap_request(
        SwapRequestCreate(requester_id=user_id, **data.model_dump())
    )
    return request


@router.get("", response_model=Page[SwapRequestRead])
def list_swap_requests(
    params: Params = Depends(),
    direction: Optional[SwapRequestDirection] = Query(None),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> Page[SwapRequestRead]:
    """List the caller's incoming and/or outgoing requests, newest first."""
    query = SwapRequestService(db).get_swap_requests_query(user_id, direction)
    return paginate(query, params=params)


@router.get("/{request_id}", response_model=SwapRequestRead)
def get_swap_request(
    request: SwapRequest = Depends(get_swap_request_by_id),
) -> SwapRequestRead:
    return request


@router.post("/{request_id}/accept", response_model=SwapRequestRead)
def accept_swap_request(
    request: SwapRequest = Depends(get_swap_request_by_id),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> SwapRequestRead:
    """Owner accepts a pending request."""
    return SwapRequestService(db).accept(request.id, user_id)


@router.post("/{request_id}/reject", response_model=SwapRequestRead)
def reject_swap_request(
    request: SwapRequest = Depends(get_swap_request_by_id),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> SwapRequestRead:
    """Owner rejects a pending request."""
    return SwapRequestService(db).reject(request.id, user_id)
