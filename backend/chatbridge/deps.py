"""FastAPI dependency getters.

Services are built once in the application lifespan and stored on
``app.state``; routers reach them through these getters so tests can build
an app around any ``MessagingSession``.
"""
from fastapi import Request, WebSocket

from chatbridge.broadcast import BroadcastHub
from chatbridge.chats.service import ChatService
from chatbridge.config import BridgeConfig
from chatbridge.connection.manager import SessionManager
from chatbridge.connection.state import SessionStateStore
from chatbridge.contacts import ContactResolver
from chatbridge.groups.service import GroupService
from chatbridge.messages.pagination import MessagePager
from chatbridge.stats.service import StatsService


def get_bridge_config(request: Request) -> BridgeConfig:
    return request.app.state.config


def get_state_store(request: Request) -> SessionStateStore:
    return request.app.state.store


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.manager


def get_contact_resolver(request: Request) -> ContactResolver:
    return request.app.state.resolver


def get_message_pager(request: Request) -> MessagePager:
    return request.app.state.pager


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_group_service(request: Request) -> GroupService:
    return request.app.state.group_service


def get_stats_service(request: Request) -> StatsService:
    return request.app.state.stats_service


def get_broadcast_hub(websocket: WebSocket) -> BroadcastHub:
    return websocket.app.state.hub
