"""Retriever for semantic search over ingested documents.

Handles:
- Query embedding generation
- Vector store ranking
- Context formatting for the generation prompt
"""
from typing import Dict, List, Optional
import structlog

from docchat import config
from docchat.rag.embeddings import EmbeddingGateway
from docchat.rag.models import ScoredChunk
from docchat.rag.store import VectorStore

logger = structlog.get_logger()

CONTEXT_SEPARATOR = "\n---\n"

GROUNDING_INSTRUCTIONS = """You are a helpful assistant that answers questions about the user's uploaded documents.

INSTRUCTIONS:
- Answer using the document excerpts below when they are relevant
- Cite the source of any information you use, e.g. [Source 1]
- If the excerpts do not contain the answer, say so instead of guessing
- Be concise"""

NO_CONTEXT_INSTRUCTIONS = """You are a helpful assistant. No document excerpts matched this question. Say that the uploaded documents do not cover it, then answer briefly from general knowledge if you can."""


def format_context(results: List[ScoredChunk], max_chars: int = None) -> str:
    """Format retrieved chunks as attributable excerpts.

    Args:
        results: Ranked retrieval results
        max_chars: Maximum total characters of context (default from config)

    Returns:
        Excerpts joined by a separator, or an empty string for no results
    """
    max_chars = max_chars or config.MAX_CONTEXT_CHARS

    context_parts = []
    total_chars = 0

    for i, result in enumerate(results, 1):
        excerpt = f"[Source {i}: {result.source}]\n{result.text.strip()}"

        if total_chars + len(excerpt) > max_chars:
            # Try to fit a truncated version
            remaining = max_chars - total_chars
            if remaining > 200:
                context_parts.append(excerpt[: remaining - 3] + "...")
            break

        context_parts.append(excerpt)
        total_chars += len(excerpt) + len(CONTEXT_SEPARATOR)

    return CONTEXT_SEPARATOR.join(context_parts)


def build_messages(
    query: str,
    results: List[ScoredChunk],
    history: Optional[List[Dict[str, str]]] = None,
    max_chars: int = None,
) -> List[Dict[str, str]]:
    """Assemble generation messages grounded on retrieved excerpts.

    Args:
        query: Current user question
        results: Ranked retrieval results
        history: Prior conversation turns with 'role' and 'content'
        max_chars: Context character budget

    Returns:
        Messages for the generation oracle: system, history, then the question
    """
    context = format_context(results, max_chars=max_chars)

    if context:
        system_content = f"{GROUNDING_INSTRUCTIONS}\n\nDOCUMENT EXCERPTS:\n{context}"
    else:
        system_content = NO_CONTEXT_INSTRUCTIONS

    messages = [{"role": "system", "content": system_content}]
    messages.extend(history or [])
    messages.append({"role": "user", "content": query})
    return messages


class Retriever:
    """Semantic retriever for RAG pipeline."""

    def __init__(
        self,
        gateway: EmbeddingGateway,
        vector_store: VectorStore,
        top_k: int = None,
    ):
        """Initialize the retriever.

        Args:
            gateway: Embedding gateway shared with ingestion
            vector_store: Store to rank
            top_k: Default number of results (default from config)
        """
        self.gateway = gateway
        self.vector_store = vector_store
        self.top_k = top_k or config.RETRIEVAL_TOP_K

        logger.info("retriever_initialized", top_k=self.top_k)

    async def retrieve(
        self,
        query: str,
        top_k: Optional[int] = None,
        min_similarity: Optional[float] = None,
    ) -> List[ScoredChunk]:
        """Retrieve relevant chunks for a query.

        The embedding oracle is not called when the store is empty.

        Args:
            query: User query text
            top_k: Number of results to return (overrides default)
            min_similarity: Drop results below this cosine similarity

        Returns:
            List of ScoredChunk objects, most similar first

        Raises:
            EmbeddingFailed: If the query cannot be embedded
        """
        top_k = self.top_k if top_k is None else top_k

        if len(self.vector_store) == 0:
            logger.warning("empty_store_no_results")
            return []

        logger.info("retrieval_started", query_length=len(query), top_k=top_k)

        query_vector = await self.gateway.embed(query)
        ranked = self.vector_store.query(query_vector, top_k)

        results = [
            ScoredChunk(
                text=record.text,
                source_id=record.source_id,
                index=record.index,
                start_offset=record.start_offset,
                end_offset=record.end_offset,
                similarity=similarity,
            )
            for record, similarity in ranked
        ]

        if min_similarity is not None:
            results = [r for r in results if r.similarity >= min_similarity]

        logger.info(
            "retrieval_completed",
            query_length=len(query),
            results_returned=len(results),
            top_similarity=results[0].similarity if results else None,
        )

        return results

    async def retrieve_context(
        self,
        query: str,
        top_k: Optional[int] = None,
        max_chars: int = None,
    ) -> str:
        """Retrieve and format context for LLM prompt.

        Args:
            query: User query text
            top_k: Number of results to retrieve
            max_chars: Maximum total characters of context to return

        Returns:
            Formatted context string ready for LLM prompt
        """
        results = await self.retrieve(query, top_k=top_k)
        context = format_context(results, max_chars=max_chars)

        logger.debug(
            "context_formatted",
            num_chunks=len(results),
            total_chars=len(context),
        )

        return context
