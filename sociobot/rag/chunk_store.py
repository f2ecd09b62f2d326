"""
File-backed index of knowledge chunks and their embeddings.

The index is a single JSON file holding a list of
`{"file", "text", "embedding"}` records. It is written whole on every build
(temp file + atomic rename) and read whole on every query.

Index state:
    ABSENT - no index file; the next query builds it lazily.
    STALE  - a knowledge document changed after the index was written.
             Reported only; nothing rebuilds until `rebuild_index()` runs.
    FRESH  - index file newer than every knowledge document.
"""

import asyncio
import json
import logging
import os
import tempfile
import weakref
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from sociobot import config
from sociobot.models.chunk import Chunk
from .chunker import chunk_documents, list_documents

logger = logging.getLogger(__name__)

EmbedFn = Callable[[List[str]], Awaitable[List[List[float]]]]

# Serializes builds so a rebuild never interleaves with a lazy build.
# One lock per event loop: asyncio locks cannot be shared across loops.
_build_locks = weakref.WeakKeyDictionary()


def _get_build_lock() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    lock = _build_locks.get(loop)
    if lock is None:
        lock = _build_locks[loop] = asyncio.Lock()
    return lock


class IndexState(Enum):
    ABSENT = "absent"
    STALE = "stale"
    FRESH = "fresh"


def _index_path(index_file: Optional[str]) -> str:
    return index_file or config.INDEX_FILE


def _documents_dir(documents_dir: Optional[str]) -> str:
    return documents_dir or config.KNOWLEDGE_DIR


def index_state(index_file: str = None, documents_dir: str = None) -> IndexState:
    """Report whether the index file exists and is newer than the documents."""
    path = _index_path(index_file)
    if not os.path.exists(path):
        return IndexState.ABSENT

    docs_dir = _documents_dir(documents_dir)
    if not os.path.isdir(docs_dir):
        return IndexState.FRESH

    index_mtime = os.path.getmtime(path)
    for name in list_documents(docs_dir):
        if os.path.getmtime(os.path.join(docs_dir, name)) > index_mtime:
            return IndexState.STALE
    return IndexState.FRESH


def load_index(index_file: str = None) -> List[Chunk]:
    """Read the index file. Raises FileNotFoundError when it is absent."""
    with open(_index_path(index_file), "r", encoding="utf-8") as f:
        records = json.load(f)
    return [Chunk.from_record(r) for r in records]


def save_index(chunks: List[Chunk], index_file: str = None) -> None:
    """Write the whole index atomically (temp file in the same dir + rename)."""
    path = _index_path(index_file)
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump([c.to_record() for c in chunks], f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise

    logger.info(f"[CHUNK_STORE] Saved {len(chunks)} chunks to {path}")


def drop_index(index_file: str = None) -> bool:
    """Delete the index file. Returns True if a file was removed."""
    path = _index_path(index_file)
    if os.path.exists(path):
        os.unlink(path)
        logger.info(f"[CHUNK_STORE] Dropped index {path}")
        return True
    return False


async def build_index(
    documents_dir: str = None,
    index_file: str = None,
    embed: EmbedFn = None,
) -> List[Chunk]:
    """Chunk all knowledge documents, embed them in one batch and persist.

    An empty knowledge folder persists an empty index without calling the
    embedding provider. Provider errors propagate and leave the previous
    index file (if any) untouched.
    """
    if embed is None:
        from .embedder import embed_texts as embed

    pieces = chunk_documents(_documents_dir(documents_dir))
    if not pieces:
        save_index([], index_file)
        return []

    vectors = await embed([text for _, text in pieces])
    if len(vectors) != len(pieces):
        raise ValueError(
            f"Embedding provider returned {len(vectors)} vectors for {len(pieces)} chunks"
        )

    chunks = [
        Chunk(source_id=name, text=text, embedding=list(vector))
        for (name, text), vector in zip(pieces, vectors)
    ]
    save_index(chunks, index_file)
    return chunks


async def ensure_index(
    documents_dir: str = None,
    index_file: str = None,
    embed: EmbedFn = None,
) -> List[Chunk]:
    """Load the index, building it first if the file does not exist."""
    path = _index_path(index_file)
    if os.path.exists(path):
        return load_index(path)

    async with _get_build_lock():
        # Another task may have finished the build while we waited
        if os.path.exists(path):
            return load_index(path)
        logger.info(f"[CHUNK_STORE] No index at {path}, building")
        return await build_index(documents_dir, path, embed)


async def rebuild_index(
    documents_dir: str = None,
    index_file: str = None,
    embed: EmbedFn = None,
) -> List[Chunk]:
    """Explicit rebuild: build a new index and replace the old one.

    The old file is only replaced once the new one is complete, so a failed
    rebuild keeps serving the previous index.
    """
    async with _get_build_lock():
        logger.info("[CHUNK_STORE] Rebuilding index")
        return await build_index(documents_dir, _index_path(index_file), embed)


if __name__ == "__main__":
    # Standalone script: rebuild the index from the knowledge folder
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    print("=== Knowledge Indexer ===")
    print(f"Documents: {config.KNOWLEDGE_DIR}")
    print(f"Index:     {config.INDEX_FILE} ({index_state().value})")

    built = asyncio.run(rebuild_index())
    print(f"\nDone! Indexed {len(built)} chunks.")
