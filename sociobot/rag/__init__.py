"""
RAG (Retrieval Augmented Generation) module for the sociobot system.

Supplies the generator with paragraphs from the organization's knowledge
documents (`knowledge/*.md|txt`) that are relevant to the user message.

Components:
    - chunker: Splits knowledge documents into paragraph chunks
    - embedder: Generates embeddings via OpenAI
    - chunk_store: JSON index file (build, load, drop, state)
    - ranker: Cosine similarity and top-k selection
    - retriever: Query-time retrieval and context formatting
"""
