"""Domain errors raised by the swap and chat services."""

from __future__ import annotations


class SwapChatError(Exception):
    """Base class for all domain errors."""


class ValidationError(SwapChatError):
    """Malformed or inconsistent input (self-swap, empty message, bad rating)."""


class NotParticipantError(ValidationError):
    """The acting user is not one of the room's or request's two participants."""


class NotFoundError(SwapChatError):
    """A referenced entity does not exist."""


class InvalidTransitionError(SwapChatError):
    """Illegal swap request status change."""


class InvalidStateError(SwapChatError):
    """Operation invoked on a closed or failed chat session."""


class TransportError(SwapChatError):
    """Network or subscription failure on the realtime channel."""
