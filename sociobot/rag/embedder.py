"""
Embedder module for generating OpenAI embeddings.

Knowledge paragraphs are embedded in a single batched request at index time;
user queries are embedded one at a time at retrieval time.
"""

import logging
from typing import List, Optional

from openai import AsyncOpenAI

from sociobot import config

logger = logging.getLogger(__name__)


def _get_openai_client() -> AsyncOpenAI:
    """Get an AsyncOpenAI client using the configured API key.

    Raises:
        ValueError: If OPENAI_API_KEY is not set.
    """
    if not config.OPENAI_API_KEY:
        raise ValueError("OPENAI_API_KEY not configured")
    return AsyncOpenAI(api_key=config.OPENAI_API_KEY)


async def embed_texts(
    texts: List[str],
    client: Optional[AsyncOpenAI] = None,
) -> List[List[float]]:
    """Generate embeddings for a list of texts in one request.

    Args:
        texts: List of text strings to embed.
        client: Optional pre-existing AsyncOpenAI client.

    Returns:
        List of embedding vectors, in the same order as `texts`.
    """
    if not texts:
        return []
    if client is None:
        client = _get_openai_client()

    # OpenAI accepts up to 2048 inputs per request; a knowledge folder of a
    # few documents fits in one batch
    response = await client.embeddings.create(
        model=config.EMBEDDING_MODEL,
        input=texts,
    )

    embeddings = [item.embedding for item in response.data]
    logger.info(
        f"[EMBEDDER] Generated {len(embeddings)} embeddings "
        f"({config.EMBEDDING_MODEL}), usage: {response.usage.total_tokens} tokens"
    )
    return embeddings


async def embed_query(
    query: str,
    client: Optional[AsyncOpenAI] = None,
) -> List[float]:
    """Generate an embedding for a single query string."""
    if client is None:
        client = _get_openai_client()

    response = await client.embeddings.create(
        model=config.EMBEDDING_MODEL,
        input=query,
    )

    return response.data[0].embedding
