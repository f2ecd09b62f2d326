"""Unified message model and enums for channel-agnostic processing.

This module defines the `MessageType` enum and the `UnifiedMessage` dataclass
used by channel adapters to normalize incoming payloads for the core pipeline.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class MessageType(Enum):
    """Supported inbound message types."""
    TEXT = "text"
    INTERACTIVE = "interactive"
    IMAGE = "image"
    AUDIO = "audio"


@dataclass
class UnifiedMessage:
    """Normalized inbound message.

    Attributes:
        channel: Logical channel identifier (e.g. 'whatsapp', 'test').
        user_id: Sender phone / id as delivered by the channel.
        message_type: One of MessageType values describing the content.
        content: Text content (button title, caption, ...); empty for voice notes.
        message_id: Channel message id, used for dedup and quoted replies.
        media_id: Channel media id for audio messages.
        mime_type: MIME type of the media, when known.
        timestamp: Channel timestamp string, if any.
        metadata: Channel-specific fields preserved for logging.
    """
    channel: str
    user_id: str
    message_type: MessageType
    content: str
    message_id: Optional[str] = None
    media_id: Optional[str] = None
    mime_type: Optional[str] = None
    timestamp: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def dedup_key(self) -> str:
        """Message id, or sender/timestamp/text when the channel sent no id."""
        return self.message_id or f"{self.user_id}:{self.timestamp}:{self.content}"

    @property
    def has_audio(self) -> bool:
        return self.message_type == MessageType.AUDIO and bool(self.media_id)
