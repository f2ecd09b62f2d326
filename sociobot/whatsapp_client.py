import httpx
import logging
from typing import Optional, Tuple

from . import config

logger = logging.getLogger(__name__)


def _auth_headers() -> dict:
    return {"Authorization": f"Bearer {config.WHATSAPP_TOKEN}"}


async def send_whatsapp_text(to: str, body: str, reply_to: Optional[str] = None) -> Optional[dict]:
    """Send a text message through the Meta Cloud API.

    Returns the API response, or None when the channel is not configured.
    When `reply_to` is given the message quotes that inbound message.
    """
    if not config.PHONE_NUMBER_ID or not config.WHATSAPP_TOKEN:
        logger.warning("[WHATSAPP] PHONE_NUMBER_ID or WHATSAPP_TOKEN missing, message not sent")
        return None

    url = f"{config.GRAPH_API_URL}/{config.PHONE_NUMBER_ID}/messages"
    payload = {
        "messaging_product": "whatsapp",
        "to": to,
        "type": "text",
        "text": {"body": body},
    }
    if reply_to:
        payload["context"] = {"message_id": reply_to}

    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            response = await client.post(url, json=payload, headers={**_auth_headers(), "Content-Type": "application/json"})
            response.raise_for_status()
            logger.info(f"[WHATSAPP] Message sent to {to}: {response.status_code}")
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"[WHATSAPP] Error sending message to {to}: {e.response.text}")
            raise


async def download_media(media_id: str) -> Tuple[bytes, str]:
    """Fetch a media object (e.g. a voice note) by id.

    The Graph API first returns a short-lived URL plus the MIME type; the
    bytes are then downloaded from that URL with the same bearer token.
    """
    headers = _auth_headers()
    async with httpx.AsyncClient(timeout=60.0) as client:
        meta = await client.get(f"{config.GRAPH_API_URL}/{media_id}", headers=headers)
        meta.raise_for_status()
        info = meta.json()

        response = await client.get(info["url"], headers=headers)
        response.raise_for_status()

    mime = info.get("mime_type") or response.headers.get("Content-Type", "audio/ogg")
    logger.info(f"[WHATSAPP] Downloaded media {media_id} ({mime}, {len(response.content)} bytes)")
    return response.content, mime
