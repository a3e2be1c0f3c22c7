"""Chat bridge configuration.

Settings are read from ``chatbridge.settings.yaml`` (path overridable with the
``CHATBRIDGE_SETTINGS`` environment variable). Every key is optional; a
missing file yields the defaults below.

Example:
    server:
      port: 3008
    session:
      factory: "chatbridge.session.memory:InMemorySession"
      reconnect_delay_seconds: 5
    cache:
      avatar_ttl_seconds: 3600
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("chatbridge.settings.yaml")
SETTINGS_ENV  = "CHATBRIDGE_SETTINGS"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:                    str       = "0.0.0.0"
    port:                    int       = 3008
    allowed_origins:         List[str] = Field(default_factory=lambda: ["*"])
    ws_send_timeout_seconds: float     = Field(default=5, gt=0)


class LoggingSettings(BaseModel):
    level: str = "info"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if getattr(logging, value.upper(), None) is None:
            raise ValueError(f"Unknown log level: {value}")
        return value.lower()


class SessionSettings(BaseModel):
    """Messaging session factory and reconnection policy."""
    factory:                 str   = "chatbridge.session.memory:InMemorySession"
    reconnect_delay_seconds: float = Field(default=5.0, ge=0)
    pairing_timeout_seconds: float = Field(default=30.0, gt=0)


class CacheSettings(BaseModel):
    stats_ttl_seconds:   float = Field(default=10, gt=0)
    avatar_ttl_seconds:  float = Field(default=3600, gt=0)
    contact_ttl_seconds: float = Field(default=1800, gt=0)


class ContactSettings(BaseModel):
    concurrency:       int = Field(default=5, ge=1)
    group_concurrency: int = Field(default=10, ge=1)


class MessageSettings(BaseModel):
    default_page_size:            int   = Field(default=20, ge=1)
    max_page_size:                int   = Field(default=50, ge=1)
    chat_lookup_timeout_seconds:  float = Field(default=10, gt=0)
    history_sync_timeout_seconds: float = Field(default=15, gt=0)
    default_timeout_ms:           int   = Field(default=30000, gt=0)


class ChatListSettings(BaseModel):
    default_limit:      int = Field(default=50, ge=1)
    max_limit:          int = Field(default=200, ge=1)
    default_timeout_ms: int = Field(default=30000, gt=0)


class StatsSettings(BaseModel):
    timeout_seconds: float = Field(default=15, gt=0)


class SearchSettings(BaseModel):
    default_limit: int = Field(default=20, ge=1)
    max_limit:     int = Field(default=50, ge=1)


class MediaSettings(BaseModel):
    url_fetch_timeout_seconds: float = Field(default=30, gt=0)
    download_scan_limit:       int   = Field(default=100, ge=1)


class BridgeConfig(BaseModel):
    server:   ServerSettings   = Field(default_factory=ServerSettings)
    logging:  LoggingSettings  = Field(default_factory=LoggingSettings)
    session:  SessionSettings  = Field(default_factory=SessionSettings)
    cache:    CacheSettings    = Field(default_factory=CacheSettings)
    contacts: ContactSettings  = Field(default_factory=ContactSettings)
    messages: MessageSettings  = Field(default_factory=MessageSettings)
    chats:    ChatListSettings = Field(default_factory=ChatListSettings)
    stats:    StatsSettings    = Field(default_factory=StatsSettings)
    search:   SearchSettings   = Field(default_factory=SearchSettings)
    media:    MediaSettings    = Field(default_factory=MediaSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(settings_path: Optional[Union[str, Path]] = None) -> BridgeConfig:
    """Load *BridgeConfig* from YAML.

    Args:
        settings_path: Explicit settings file. Falls back to
            ``$CHATBRIDGE_SETTINGS`` and then ``./chatbridge.settings.yaml``.
    """
    if settings_path is None:
        settings_path = os.environ.get(SETTINGS_ENV) or SETTINGS_FILE
    data = _load_yaml(Path(settings_path))

    config = BridgeConfig(**data)
    logger.info(
        "Settings loaded (server=%s:%s, session.factory=%s)",
        config.server.host,
        config.server.port,
        config.session.factory,
    )
    return config


@lru_cache(maxsize=1)
def get_config() -> BridgeConfig:
    """Return the process-wide configuration, loading it on first use."""
    return load_config()
