"""Chat and participant identifier helpers.

Identifiers look like ``<digits>@c.us`` (direct chats / contacts) or
``<digits>-<digits>@g.us`` (groups). Browsers and proxies sometimes mangle
the ``@``, so callers may send ``5491112345678-c.us`` instead.
"""
import re
from typing import Iterable, List
from urllib.parse import unquote

DIRECT_SUFFIX = "@c.us"
GROUP_SUFFIX = "@g.us"

_NON_DIGITS = re.compile(r"\D")


def normalize_chat_id(raw_id: str) -> str:
    """Decode a chat id from a URL and restore a mangled ``@`` suffix."""
    chat_id = unquote(raw_id)
    if "@" not in chat_id:
        if "-g.us" in chat_id:
            chat_id = chat_id.replace("-g.us", GROUP_SUFFIX)
        elif "-c.us" in chat_id:
            chat_id = chat_id.replace("-c.us", DIRECT_SUFFIX)
    return chat_id


def phone_of(identifier: str) -> str:
    """Return the part of an identifier before ``@``."""
    return identifier.split("@")[0] if identifier else ""


def digits_only(value: str) -> str:
    return _NON_DIGITS.sub("", str(value))


def normalize_participant_ids(participants: Iterable[str]) -> List[str]:
    """Coerce participant ids to ``<digits>@c.us`` unless already suffixed."""
    normalized = []
    for raw in participants:
        value = str(raw).strip()
        if "@" in value:
            normalized.append(value)
        else:
            normalized.append(f"{digits_only(value)}{DIRECT_SUFFIX}")
    return normalized


def mask_phone(phone: str) -> str:
    """Hide all but the last four digits (for logs)."""
    return re.sub(r"\d(?=\d{4})", "*", phone)
