"""WhatsApp channel adapter for the Meta Cloud API webhook."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sociobot import whatsapp_client
from sociobot.adapters.base_channel_adapter import ChannelAdapter
from sociobot.models.unified_message import MessageType, UnifiedMessage

logger = logging.getLogger(__name__)

CHANNEL = "whatsapp"


def _obj(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _dicts(items: Any) -> List[Dict[str, Any]]:
    """Only the object items of a payload list; anything else is skipped."""
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def extract_incoming_text(msg: Dict[str, Any]) -> str:
    """Text carried by a Cloud API message: body, button/list title (or id), image caption."""
    if not msg:
        return ""
    msg_type = msg.get("type")
    if msg_type == "text":
        return _obj(msg.get("text")).get("body") or ""
    if msg_type == "interactive":
        interactive = _obj(msg.get("interactive"))
        kind = interactive.get("type")
        if kind in ("button_reply", "list_reply"):
            reply = _obj(interactive.get(kind))
            return reply.get("title") or reply.get("id") or ""
    if msg_type == "image":
        return _obj(msg.get("image")).get("caption") or ""
    return ""


class MetaCloudAdapter(ChannelAdapter):
    """Adapter for WhatsApp via the Meta Cloud API."""

    def parse_incoming(self, raw: Dict[str, Any]) -> List[UnifiedMessage]:
        parsed = []
        if not isinstance(raw, dict):
            return parsed
        for entry in _dicts(raw.get("entry")):
            for change in _dicts(entry.get("changes")):
                value = change.get("value")
                if not isinstance(value, dict):
                    continue
                for msg in _dicts(value.get("messages")):
                    unified = self._parse_message(msg)
                    if unified is not None:
                        parsed.append(unified)
        return parsed

    def _parse_message(self, msg: Dict[str, Any]) -> Optional[UnifiedMessage]:
        sender = msg.get("from")
        if not sender:
            return None

        msg_type = msg.get("type")
        common = {
            "channel": CHANNEL,
            "user_id": sender,
            "message_id": msg.get("id"),
            "timestamp": msg.get("timestamp"),
            "metadata": {"meta_mid": msg.get("id")},
        }

        if msg_type == "audio":
            audio = _obj(msg.get("audio"))
            if not audio.get("id"):
                return None
            return UnifiedMessage(
                message_type=MessageType.AUDIO,
                content="",
                media_id=audio["id"],
                mime_type=audio.get("mime_type"),
                **common,
            )

        text = extract_incoming_text(msg)
        if not text:
            logger.info(f"[WEBHOOK] Ignoring {msg_type} message without text from {sender}")
            return None
        try:
            message_type = MessageType(msg_type)
        except ValueError:
            message_type = MessageType.TEXT
        return UnifiedMessage(message_type=message_type, content=text, **common)

    async def send_outgoing(self, user_id: str, message: str, reply_to: Optional[str] = None) -> bool:
        result = await whatsapp_client.send_whatsapp_text(user_id, message, reply_to=reply_to)
        return result is not None

    async def download_audio(self, message: UnifiedMessage) -> Optional[tuple]:
        if not message.has_audio:
            return None
        return await whatsapp_client.download_media(message.media_id)
