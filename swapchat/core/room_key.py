"""Pair key derivation for direct (user, user) chat rooms."""

from __future__ import annotations

from uuid import UUID


def build_pair_key(user_a: UUID, user_b: UUID) -> str:
    """
    Build an order-independent key for the unordered pair {user_a, user_b}.

    Form: {lower_hex}:{higher_hex}, so (A, B) and (B, A) map to the same key.
    """
    first, second = sorted((user_a.hex, user_b.hex))
    return f"{first}:{second}"
