"""Realtime message delivery: change bus, feed and deduplicating view."""

from swapchat.realtime.bus import ChangeBus, InMemoryChangeBus, message_channel
from swapchat.realtime.feed import FeedState, FeedSubscription, RealtimeMessageFeed
from swapchat.realtime.view import MessageView

__all__ = [
    "ChangeBus",
    "FeedState",
    "FeedSubscription",
    "InMemoryChangeBus",
    "MessageView",
    "RealtimeMessageFeed",
    "message_channel",
]
