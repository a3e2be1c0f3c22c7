"""WebSocket fan-out of session events."""
from .hub import EVENT_TYPES, BroadcastHub

__all__ = ["BroadcastHub", "EVENT_TYPES"]
