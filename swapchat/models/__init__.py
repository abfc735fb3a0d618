from swapchat.models.chat_room import ChatRoom
from swapchat.models.message import Message
from swapchat.models.notification import Notification
from swapchat.models.profile import Profile
from swapchat.models.rating import Rating
from swapchat.models.swap_item import SwapItem
from swapchat.models.swap_request import SwapRequest

__all__ = [
    "ChatRoom",
    "Message",
    "Notification",
    "Profile",
    "Rating",
    "SwapItem",
    "SwapRequest",
]
