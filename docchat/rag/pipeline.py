"""Wiring for the retrieval pipeline.

One RAGPipeline owns the embedding gateway and the vector store and hands the
same instances to ingestion and retrieval, so both paths see one model handle
and one store.
"""
from typing import Optional
import structlog

from docchat import config
from docchat.llm_client import OllamaClient
from docchat.rag.embeddings import EmbeddingGateway, ollama_gateway
from docchat.rag.ingest import IngestPipeline
from docchat.rag.retriever import Retriever
from docchat.rag.store import VectorStore

logger = structlog.get_logger()


class RAGPipeline:
    """Ingestion and retrieval over a shared gateway and store."""

    def __init__(
        self,
        gateway: EmbeddingGateway,
        vector_store: Optional[VectorStore] = None,
        chunk_size: int = None,
        chunk_overlap: int = None,
        top_k: int = None,
    ):
        self.gateway = gateway
        self.vector_store = vector_store if vector_store is not None else VectorStore()
        self.ingestor = IngestPipeline(
            gateway,
            self.vector_store,
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
        )
        self.retriever = Retriever(gateway, self.vector_store, top_k=top_k)

    # Delegates so callers need only the pipeline object

    async def ingest(self, document):
        return await self.ingestor.ingest(document)

    async def ingest_upload(self, filename: str, data: bytes):
        return await self.ingestor.ingest_upload(filename, data)

    async def ingest_files(self, file_paths, progress_callback=None):
        return await self.ingestor.ingest_files(file_paths, progress_callback)

    async def retrieve(self, query: str, top_k: int = None, min_similarity: float = None):
        return await self.retriever.retrieve(
            query, top_k=top_k, min_similarity=min_similarity
        )

    def get_stats(self) -> dict:
        return {
            "documents": len(self.ingestor.documents),
            "gateway_state": self.gateway.state.value,
            **self.ingestor.stats,
            "store": self.vector_store.get_stats(),
        }


def create_pipeline(client: Optional[OllamaClient] = None) -> RAGPipeline:
    """Build a pipeline backed by Ollama using configured defaults."""
    client = client or OllamaClient()
    pipeline = RAGPipeline(
        ollama_gateway(client, model=config.EMBEDDING_MODEL),
        chunk_size=config.CHUNK_SIZE,
        chunk_overlap=config.CHUNK_OVERLAP,
        top_k=config.RETRIEVAL_TOP_K,
    )
    logger.info(
        "rag_pipeline_created",
        embedding_model=config.EMBEDDING_MODEL,
        base_url=client.base_url,
    )
    return pipeline
