"""
Chunker module for splitting knowledge documents into paragraph chunks.

Every `.md` / `.txt` file in the knowledge directory is split on blank lines
(two or more consecutive newlines). Each non-empty, trimmed paragraph becomes
one chunk, cut to MAX_CHUNK_CHARS so the stored text is exactly the text that
gets embedded.
"""

import logging
import os
import re
from typing import List, Tuple

from sociobot.models.chunk import MAX_CHUNK_CHARS

logger = logging.getLogger(__name__)

DOCUMENT_EXTENSIONS = (".md", ".txt")

_PARAGRAPH_BREAK = re.compile(r"\n{2,}")


def split_paragraphs(text: str, max_chars: int = MAX_CHUNK_CHARS) -> List[str]:
    """Split raw document text into trimmed, non-empty paragraphs.

    Args:
        text: Full document contents.
        max_chars: Paragraphs longer than this are truncated.

    Returns:
        List of paragraph strings in document order.
    """
    paragraphs = []
    for part in _PARAGRAPH_BREAK.split(text or ""):
        part = part.strip()
        if not part:
            continue
        paragraphs.append(part[:max_chars])
    return paragraphs


def list_documents(documents_dir: str) -> List[str]:
    """Return knowledge file names in a stable (sorted) order.

    Creates the directory when it does not exist yet, so a fresh deployment
    simply ends up with an empty index.
    """
    if not os.path.isdir(documents_dir):
        os.makedirs(documents_dir, exist_ok=True)
        logger.info(f"[CHUNKER] Created empty knowledge directory: {documents_dir}")
        return []

    return sorted(
        name for name in os.listdir(documents_dir)
        if name.lower().endswith(DOCUMENT_EXTENSIONS)
        and os.path.isfile(os.path.join(documents_dir, name))
    )


def chunk_documents(documents_dir: str) -> List[Tuple[str, str]]:
    """Read every knowledge document and return (file name, paragraph) pairs."""
    pieces = []
    for name in list_documents(documents_dir):
        with open(os.path.join(documents_dir, name), "r", encoding="utf-8") as f:
            raw = f.read()
        paragraphs = split_paragraphs(raw)
        logger.debug(f"[CHUNKER] {name}: {len(paragraphs)} paragraphs")
        pieces.extend((name, p) for p in paragraphs)

    logger.info(f"[CHUNKER] Produced {len(pieces)} paragraphs from {documents_dir}")
    return pieces
