"""Chat list, send, read, media and search operations."""
from .service import ChatService

__all__ = ["ChatService"]
