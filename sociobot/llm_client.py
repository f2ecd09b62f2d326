"""
Chat completion calls for member/interested-party replies.
"""
import logging
from typing import Optional

from openai import AsyncOpenAI

from . import config

logger = logging.getLogger(__name__)

NO_CONTEXT_MESSAGE = "Sin contexto adicional."

_client: Optional[AsyncOpenAI] = None


def get_client() -> AsyncOpenAI:
    """Lazily create the shared AsyncOpenAI client."""
    global _client
    if _client is None:
        if not config.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY not configured")
        _client = AsyncOpenAI(api_key=config.OPENAI_API_KEY)
    return _client


def context_message(context: str) -> str:
    if context:
        return f"Contexto de conocimiento (útil para responder):\n{context}"
    return NO_CONTEXT_MESSAGE


async def generate(
    system_prompt: str,
    context: str,
    user_text: str,
    temperature: float,
    client: Optional[AsyncOpenAI] = None,
) -> str:
    """Ask the chat model for a reply. Returns the stripped text (may be empty).

    Rate-limit, quota and network errors from the OpenAI SDK propagate.
    """
    client = client or get_client()
    response = await client.chat.completions.create(
        model=config.CHAT_MODEL,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "system", "content": context_message(context)},
            {"role": "user", "content": user_text},
        ],
        temperature=temperature,
    )
    if not response.choices:
        return ""
    return (response.choices[0].message.content or "").strip()
