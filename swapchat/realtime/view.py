"""
MessageView: a consumer's materialised message list.

No message id ever appears twice, however many delivery paths (history
load, live feed, reconnect gap-fill) observe it.
"""

from __future__ import annotations

from typing import Callable, Iterable, Iterator, List, Set
from uuid import UUID

from swapchat.schemas.message import MessageRead, MessageStatus


class MessageView:
    def __init__(self) -> None:
        self._messages: List[MessageRead] = []
        self._ids: Set[UUID] = set()

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[MessageRead]:
        return iter(list(self._messages))

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    @property
    def messages(self) -> tuple[MessageRead, ...]:
        return tuple(self._messages)

    @property
    def ids(self) -> frozenset[UUID]:
        return frozenset(self._ids)

    def add(self, message: MessageRead) -> bool:
        """Append a live message in arrival order. False if already present."""
        if message.id in self._ids:
            return False
        self._ids.add(message.id)
        self._messages.append(message)
        return True

    def merge(self, history: Iterable[MessageRead]) -> int:
        """
        Fold an ordered history snapshot into the view; returns how many were new.

        Unknown messages are placed after the last known message that sorts
        at or before them, so a fresh view ends up in (created_at, id) order.
        """
        added = 0
        for message in history:
            if message.id in self._ids:
                continue
            index = len(self._messages)
            while index > 0 and self._messages[index - 1].sort_key > message.sort_key:
                index -= 1
            self._messages.insert(index, message)
            self._ids.add(message.id)
            added += 1
        return added

    def set_status(
        self, status: MessageStatus, predicate: Callable[[MessageRead], bool]
    ) -> int:
        """Overwrite the viewer-local status of matching messages."""
        changed = 0
        for index, message in enumerate(self._messages):
            if predicate(message) and message.status != status:
                self._messages[index] = message.model_copy(update={"status": status})
                changed += 1
        return changed
