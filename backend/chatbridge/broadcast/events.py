"""Payload builders for events pushed to WebSocket observers."""
from typing import Optional

from chatbridge.session import Chat, SessionMessage

# message_ack codes reported by the session
ACK_NAMES = {1: "sent", 2: "delivered", 3: "read", 4: "played"}


def message_payload(message: SessionMessage, chat: Optional[Chat] = None) -> dict:
    """Incoming message. Chat name and group flag are best-effort."""
    return {
        "id": message.id,
        "chatId": message.chat_id,
        "chatName": chat.name if chat else None,
        "body": message.body,
        "fromMe": message.from_me,
        "timestamp": message.timestamp,
        "type": message.type,
        "hasMedia": message.has_media,
        "isGroup": chat.is_group if chat else message.chat_id.endswith("@g.us"),
    }


def message_sent_payload(message: SessionMessage) -> dict:
    return {
        "id": message.id,
        "chatId": message.chat_id,
        "body": message.body,
        "timestamp": message.timestamp,
        "type": message.type,
    }


def message_ack_payload(message: SessionMessage, ack: int) -> dict:
    return {
        "id": message.id,
        "chatId": message.chat_id,
        "ack": ack,
        "ackName": ACK_NAMES.get(ack, "unknown"),
    }


def message_deleted_payload(message: SessionMessage, revoked: Optional[SessionMessage] = None) -> dict:
    return {
        "id": revoked.id if revoked is not None else message.id,
        "chatId": message.chat_id,
    }


def typing_payload(chat_id: str, is_typing: bool) -> dict:
    return {"chatId": chat_id, "isTyping": is_typing}


def chat_update_payload(chat_id: str, unread_count: int) -> dict:
    return {"chatId": chat_id, "unreadCount": unread_count}
