"""Messaging session interface and implementations."""
import importlib
from typing import Callable

from .base import (
    Chat,
    Contact,
    EventType,
    MediaPayload,
    MessagingSession,
    Participant,
    SessionEvent,
    SessionMessage,
)
from .memory import InMemorySession

SessionFactory = Callable[[], MessagingSession]


def load_session_factory(path: str) -> SessionFactory:
    """Import a session factory from a ``"package.module:attribute"`` path."""
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Session factory must look like 'module:attribute', got {path!r}")
    module = importlib.import_module(module_name)
    factory = getattr(module, attr)
    if not callable(factory):
        raise TypeError(f"Session factory {path!r} is not callable")
    return factory


__all__ = [
    "Chat",
    "Contact",
    "EventType",
    "InMemorySession",
    "MediaPayload",
    "MessagingSession",
    "Participant",
    "SessionEvent",
    "SessionFactory",
    "SessionMessage",
    "load_session_factory",
]
