"""
Handling of one inbound WhatsApp message, from dedup to the logged reply.
"""
import logging
import time
from typing import Optional

from . import agent, config, profile_store, sheets_client, whisper_client
from .adapters.base_channel_adapter import ChannelAdapter
from .dedup import RecentMessages, recent_messages
from .models.unified_message import UnifiedMessage

logger = logging.getLogger(__name__)

PING_REPLY = "🏓 ¡Activo! El bot de {org} está en línea."
ERROR_REPLY = "😕 Hubo un problema. Probá de nuevo en un momento."
NOT_SENT_ERROR = "not sent"


def _latency_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


async def transcribe_if_audio(adapter: ChannelAdapter, message: UnifiedMessage) -> str:
    """Message text, replaced by the transcript for voice notes.

    Transcription problems are logged and the original text is kept.
    """
    if not message.has_audio:
        return message.content
    try:
        media = await adapter.download_audio(message)
        if media:
            data, mime = media
            if (mime or "").startswith("audio/"):
                transcript = (await whisper_client.transcribe_buffer(data, mime)).strip()
                if transcript:
                    logger.info(f"[STT] Transcripción: {transcript[:80]}")
                    return transcript
    except Exception as e:
        logger.warning(f"[STT] warn: {e}")
    return message.content


def _remember(phone: str, **fields) -> None:
    try:
        profile_store.update_profile(phone, **fields)
    except Exception as e:
        logger.warning(f"[PROFILE] Could not update profile for {phone}: {e}")


async def handle_message(
    adapter: ChannelAdapter,
    message: UnifiedMessage,
    dedup: Optional[RecentMessages] = None,
) -> Optional[str]:
    """Process one inbound message and send the reply through `adapter`.

    Returns the reply text that was sent, or None when the message was
    skipped (duplicate, empty) or the channel did not accept the reply.
    """
    dedup = dedup or recent_messages
    phone = message.user_id
    extra = {"msg_id": message.message_id or ""}

    if dedup.check_and_mark(message.dedup_key):
        logger.info(f"[DEDUP] Duplicate ignored: {message.dedup_key}")
        return None

    quote = message.message_id if config.WHATSAPP_QUOTE_REPLY else None
    try:
        text = (await transcribe_if_audio(adapter, message)).strip()
        if not text:
            logger.info(f"[WEBHOOK] Empty message from {phone}, nothing to answer")
            return None

        member = await agent.lookup_member(phone)
        await sheets_client.log_message(
            direction="inbound",
            phone=phone,
            is_member=bool(member.is_member),
            name=member.name or "",
            tone=config.DEFAULT_TONE,
            message=text,
            extra={**extra, "stt_from_audio": message.has_audio and text != message.content},
        )

        # Health command
        if text.lower().startswith("!ping"):
            reply = PING_REPLY.format(org=config.ORG_NAME)
            sent = await adapter.send_outgoing(phone, reply, reply_to=quote)
            await sheets_client.log_message(
                direction="outbound", phone=phone, reply=reply,
                error="" if sent else NOT_SENT_ERROR, extra=extra,
            )
            return reply if sent else None

        start = time.monotonic()
        result = await agent.run_agent(phone, text)
        sent = await adapter.send_outgoing(phone, result.text, reply_to=quote)
        if sent:
            logger.info(f"[WEBHOOK] Replied to {phone} ({result.source}, tone={result.tone})")
        else:
            logger.warning(f"[WEBHOOK] Reply to {phone} not sent (channel not configured)")

        await sheets_client.log_message(
            direction="outbound",
            phone=phone,
            is_member=result.is_member,
            name=result.name or "",
            tone=result.tone,
            reply=result.text,
            error=(result.error or "") if sent else NOT_SENT_ERROR,
            extra={**extra, "latency_ms": _latency_ms(start), "source": result.source},
        )
        _remember(phone, name=result.name, is_member=result.is_member, last_tone=result.tone, last_message=text)
        return result.text if sent else None

    except Exception as e:
        logger.exception(f"[WEBHOOK] Error handling message from {phone}")
        try:
            await adapter.send_outgoing(phone, ERROR_REPLY, reply_to=quote)
        except Exception as send_err:
            logger.error(f"[WEBHOOK] Could not send error reply to {phone}: {send_err}")
        await sheets_client.log_message(
            direction="outbound",
            phone=phone,
            reply="",
            error=str(e) or "handler error",
            extra=extra,
        )
        return None
