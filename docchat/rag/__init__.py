"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Document chunking with overlap
- Embedding generation through a lazily-loaded gateway
- In-memory vector storage with cosine ranking
- Ingestion and semantic retrieval
"""
