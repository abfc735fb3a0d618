from swapchat.services.chat_room_service import ChatRoomService
from swapchat.services.message_service import MessageService
from swapchat.services.notification_service import NotificationService
from swapchat.services.profile_service import ProfileService
from swapchat.services.rating_service import RatingService
from swapchat.services.swap_request_service import SwapRequestService

__all__ = [
    "ChatRoomService",
    "MessageService",
    "NotificationService",
    "ProfileService",
    "RatingService",
    "SwapRequestService",
]
