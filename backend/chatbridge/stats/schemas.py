"""Pydantic schemas for the stats endpoint."""
from typing import Optional

from pydantic import BaseModel


class UnreadStats(BaseModel):
    """Unread aggregate for dashboard polling.

    ``status`` is ``connected``, ``connecting``, ``disconnected`` or ``error``;
    counters are zero unless connected.
    """
    status: str
    unreadTotal: int = 0
    unreadChats: int = 0
    unreadGroups: int = 0
    unreadMentions: int = 0
    totalChats: int = 0
    cachedAt: str
    error: Optional[str] = None
