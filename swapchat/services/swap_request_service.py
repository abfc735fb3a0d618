"""
Swap request ledger: create proposals and drive the pending/accepted/rejected
state machine.

Requests are never deleted. Owner notifications and profile counters are
side effects; their failure is logged and does not fail the request write.
"""

from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from swapchat.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    NotParticipantError,
    ValidationError,
)
from swapchat.models.mixins import utcnow
from swapchat.models.swap_item import ITEM_STATUS_AVAILABLE, SwapItem
from swapchat.models.swap_request import SwapRequest
from swapchat.schemas.notification import NotificationType
from swapchat.schemas.swap_request import (
    ALLOWED_TRANSITIONS,
    SwapRequestCreate,
    SwapRequestDirection,
    SwapRequestStatus,
)
from swapchat.services.notification_service import NotificationService
from swapchat.services.profile_service import ProfileService

logger = logging.getLogger(__name__)


class SwapRequestService:
    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        profile_service: Optional[ProfileService] = None,
    ) -> None:
        self.db = db
        self._notifications = notification_service or NotificationService(db)
        self._profiles = profile_service or ProfileService(db)

    def get_swap_request(self, request_id: UUID) -> Optional[SwapRequest]:
        return self.db.query(SwapRequest).filter(SwapRequest.id == request_id).first()

    def get_swap_requests_query(
        self,
        user_id: UUID,
        direction: Optional[SwapRequestDirection] = None,
    ) -> Query[SwapRequest]:
        """Requests the user sent (outgoing), received (incoming) or both; newest first."""
        query = self.db.query(SwapRequest)
        if direction == SwapRequestDirection.INCOMING:
            query = query.filter(SwapRequest.owner_id == user_id)
        elif direction == SwapRequestDirection.OUTGOING:
            query = query.filter(SwapRequest.requester_id == user_id)
        else:
            query = query.filter(
                or_(SwapRequest.owner_id == user_id, SwapRequest.requester_id == user_id)
            )
        return query.order_by(SwapRequest.created_at.desc())

    def get_swap_requests_for_user(
        self,
        user_id: UUID,
        direction: Optional[SwapRequestDirection] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[SwapRequest]:
        return (
            self.get_swap_requests_query(user_id, direction)
            .offset(skip)
            .limit(limit)
            .all()
        )

    def create_swap_request(self, data: SwapRequestCreate) -> SwapRequest:
        """
        Record a proposal to swap offered_item_id for requested_item_id.

        Raises:
            ValidationError: self-swap, unknown item, wrong owner or item not available.
        """
        self._validate_new_request(data)
        request = SwapRequest(
            **data.model_dump(), status=SwapRequestStatus.PENDING.value
        )
        self.db.add(request)
        self.db.commit()
        self.db.refresh(request)
        logger.info(
            "Swap request %s created by %s for owner %s",
            request.id,
            request.requester_id,
            request.owner_id,
        )

        self._notifications.notify(
            user_id=request.owner_id,
            title="New swap request",
            message=data.message or "Someone wants to swap with one of your items.",
            type=NotificationType.SWAP_REQUEST,
            related_id=request.id,
        )
        return request

    def set_status(
        self, request_id: UUID, new_status: SwapRequestStatus | str
    ) -> SwapRequest:
        """
        Move a request from pending to accepted or rejected.

        The write is a conditional UPDATE on the current status, so of two
        concurrent transitions only one can succeed.

        Raises:
            NotFoundError: unknown request id.
            InvalidTransitionError: the request is already terminal.
            ValidationError: new_status is not a known status.
        """
        try:
            target = SwapRequestStatus(new_status)
        except ValueError as e:
            raise ValidationError(f"Unknown swap request status: {new_status!r}") from e

        request = self.get_swap_request(request_id)
        if request is None:
            raise NotFoundError(f"Swap request {request_id} not found")

        current = SwapRequestStatus(request.status)
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Cannot move swap request {request_id} from {current.value} to {target.value}"
            )

        updated = (
            self.db.query(SwapRequest)
            .filter(SwapRequest.id == request_id, SwapRequest.status == current.value)
            .update(
                {SwapRequest.status: target.value, SwapRequest.updated_at: utcnow()},
                synchronize_session=False,
            )
        )
        self.db.commit()
        if updated == 0:
            raise InvalidTransitionError(
                f"Swap request {request_id} was changed concurrently"
            )
        self.db.refresh(request)
        logger.info("Swap request %s moved to %s", request_id, target.value)
        return request

    def accept(self, request_id: UUID, acting_user_id: UUID) -> SwapRequest:
        """Owner accepts; bumps both profiles' swap counters and tells the requester."""
        self._ensure_owner(request_id, acting_user_id)
        request = self.set_status(request_id, SwapRequestStatus.ACCEPTED)
        try:
            self._profiles.increment_total_swaps(request.requester_id, request.owner_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Failed to update swap counters for %s: %s", request_id, e)
        self._notifications.notify(
            user_id=request.requester_id,
            title="Swap request accepted",
            message="Your swap request has been accepted!",
            type=NotificationType.SWAP_REQUEST,
            related_id=request.id,
        )
        return request

    def reject(self, request_id: UUID, acting_user_id: UUID) -> SwapRequest:
        self._ensure_owner(request_id, acting_user_id)
        request = self.set_status(request_id, SwapRequestStatus.REJECTED)
        self._notifications.notify(
            user_id=request.requester_id,
            title="Swap request rejected",
            message="Your swap request has been rejected.",
            type=NotificationType.SWAP_REQUEST,
            related_id=request.id,
        )
        return request

    def _ensure_owner(self, request_id: UUID, user_id: UUID) -> None:
        request = self.get_swap_request(request_id)
        if request is None:
            raise NotFoundError(f"Swap request {request_id} not found")
        if request.owner_id != user_id:
            raise NotParticipantError("Only the item owner can accept or reject a request")

    def _validate_new_request(self, data: SwapRequestCreate) -> None:
        if data.requester_id == data.owner_id:
            raise ValidationError("Cannot request a swap with yourself")
        if data.offered_item_id == data.requested_item_id:
            raise ValidationError("Offered and requested item must differ")

        offered = self.db.get(SwapItem, data.offered_item_id)
        requested = self.db.get(SwapItem, data.requested_item_id)
        if offered is None:
            raise ValidationError(f"Offered item {data.offered_item_id} does not exist")
        if requested is None:
            raise ValidationError(
                f"Requested item {data.requested_item_id} does not exist"
            )
        if offered.user_id != data.requester_id:
            raise ValidationError("Offered item does not belong to the requester")
        if requested.user_id != data.owner_id:
            raise ValidationError("Requested item does not belong to the owner")
        for item in (offered, requested):
            if item.status != ITEM_STATUS_AVAILABLE:
                raise ValidationError(f"Item {item.id} is not available for swapping")
