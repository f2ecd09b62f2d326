"""Knowledge chunk records used by the RAG index.

`Chunk` is what gets persisted in the index file; `ScoredChunk` is what the
ranker hands back for a query.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List

# Paragraphs longer than this are cut before embedding and storage
MAX_CHUNK_CHARS = 2000


@dataclass(frozen=True)
class Chunk:
    """A paragraph of a knowledge document plus its embedding.

    Attributes:
        source_id: File name of the document the paragraph came from.
        text: Paragraph text (at most MAX_CHUNK_CHARS characters).
        embedding: Vector returned by the embedding provider for `text`.
    """
    source_id: str
    text: str
    embedding: List[float] = field(default_factory=list)

    def to_record(self) -> Dict[str, Any]:
        return {"file": self.source_id, "text": self.text, "embedding": list(self.embedding)}

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Chunk":
        return cls(
            source_id=record.get("file", ""),
            text=record.get("text", ""),
            embedding=list(record.get("embedding") or []),
        )


@dataclass(frozen=True)
class ScoredChunk:
    chunk: Chunk
    score: float

    @property
    def source_id(self) -> str:
        return self.chunk.source_id

    @property
    def text(self) -> str:
        return self.chunk.text
