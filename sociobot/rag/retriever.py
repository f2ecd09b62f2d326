"""
Retriever module for knowledge retrieval at query time.

Embeds the user message, ranks the indexed chunks by cosine similarity and
returns the top-k formatted as a single context block for the generator.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List

from sociobot import config
from sociobot.models.chunk import ScoredChunk
from .chunk_store import ensure_index
from .ranker import rank

logger = logging.getLogger(__name__)

CHUNK_SEPARATOR = "\n---\n"

QueryEmbedFn = Callable[[str], Awaitable[List[float]]]


async def retrieve_with_details(
    query: str,
    top_k: int = None,
    embed_query: QueryEmbedFn = None,
    documents_dir: str = None,
    index_file: str = None,
) -> Dict[str, Any]:
    """Retrieve chunks with full details (for debugging/logging).

    Returns:
        Dict with keys: formatted_content, chunks (list of ScoredChunk),
        index_size.
    """
    top_k = config.RAG_TOP_K if top_k is None else top_k
    index = await ensure_index(documents_dir=documents_dir, index_file=index_file)

    if not index:
        # Nothing to rank: skip the query embedding call entirely
        return {"formatted_content": "", "chunks": [], "index_size": 0}

    if embed_query is None:
        from .embedder import embed_query

    query_vector = await embed_query(query)
    results = rank(query_vector, index, top_k)

    logger.info(
        f"[RETRIEVER] Retrieved {len(results)}/{len(index)} chunks "
        f"for query: {query[:80]}"
    )
    return {
        "formatted_content": format_chunks(results),
        "chunks": results,
        "index_size": len(index),
    }


async def retrieve(
    query: str,
    top_k: int = None,
    embed_query: QueryEmbedFn = None,
    documents_dir: str = None,
    index_file: str = None,
) -> str:
    """Return the top-k knowledge chunks for `query` as one context string.

    Empty string when the index has no chunks. Errors from the embedding
    provider or the index file propagate to the caller.
    """
    details = await retrieve_with_details(
        query,
        top_k=top_k,
        embed_query=embed_query,
        documents_dir=documents_dir,
        index_file=index_file,
    )
    return details["formatted_content"]


def format_chunks(results: List[ScoredChunk]) -> str:
    """Tag each chunk with its source file and join them, best first."""
    return CHUNK_SEPARATOR.join(f"({r.source_id}) {r.text}" for r in results)
