"""Chat and swap-negotiation core for a peer-to-peer item swapping marketplace."""

__version__ = "0.1.0"
