"""
Similarity ranking of indexed chunks against a query vector.
"""

import math
from itertools import zip_longest
from typing import List, Sequence

from sociobot.models.chunk import Chunk, ScoredChunk

DEFAULT_TOP_K = 4


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Components missing from the shorter vector count as 0. A zero norm on
    either side substitutes 1 for the denominator, so all-zero vectors score
    0 instead of raising.
    """
    dot = na = nb = 0.0
    for ai, bi in zip_longest(a, b, fillvalue=0.0):
        ai = ai or 0.0
        bi = bi or 0.0
        dot += ai * bi
        na += ai * ai
        nb += bi * bi
    return dot / (math.sqrt(na) * math.sqrt(nb) or 1)


def rank(
    query_vector: Sequence[float],
    chunks: Sequence[Chunk],
    k: int = DEFAULT_TOP_K,
) -> List[ScoredChunk]:
    """Score every chunk and return the top `k`, best first.

    Python's sort is stable, so chunks with equal scores keep their index
    order.
    """
    scored = [ScoredChunk(chunk=c, score=cosine(query_vector, c.embedding)) for c in chunks]
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored[:max(k, 0)]
