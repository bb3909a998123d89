"""Ingest pipeline for indexing uploaded documents.

Orchestrates:
- Text extraction
- Text chunking
- Embedding generation
- Vector storage
"""
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional
import structlog

from docchat.errors import EmbeddingFailed, ExtractionFailed, InvalidParameter
from docchat.extract import ExtractedText, extract_text
from docchat.rag.chunker import TextChunker
from docchat.rag.embeddings import EmbeddingGateway
from docchat.rag.models import ChunkFailure, Document, IngestResult, VectorRecord
from docchat.rag.store import VectorStore

logger = structlog.get_logger()

ProgressCallback = Callable[[int, int, str], None]


def _empty_stats() -> Dict[str, int]:
    return {
        "documents_processed": 0,
        "documents_failed": 0,
        "chunks_created": 0,
        "vectors_stored": 0,
        "chunk_failures": 0,
    }


class IngestPipeline:
    """Pipeline for ingesting documents into the vector store."""

    def __init__(
        self,
        gateway: EmbeddingGateway,
        vector_store: VectorStore,
        chunk_size: int = None,
        chunk_overlap: int = None,
    ):
        """Initialize the ingest pipeline.

        Args:
            gateway: Embedding gateway used for every chunk
            vector_store: Store receiving the embedded chunks
            chunk_size: Chunk size in characters (default from config)
            chunk_overlap: Chunk overlap in characters (default from config)
        """
        self.gateway = gateway
        self.vector_store = vector_store
        self.chunker = TextChunker(chunk_size=chunk_size, chunk_overlap=chunk_overlap)

        self.documents: Dict[str, Document] = {}
        self.chunk_counts: Dict[str, int] = {}
        self.stats = _empty_stats()

        logger.info(
            "ingest_pipeline_initialized",
            chunk_size=self.chunker.chunk_size,
            chunk_overlap=self.chunker.chunk_overlap,
        )

    def _unique_id(self, filename: str) -> str:
        if filename not in self.documents:
            return filename
        n = 2
        while f"{filename} ({n})" in self.documents:
            n += 1
        return f"{filename} ({n})"

    def create_document(self, filename: str, extracted: ExtractedText) -> Document:
        """Build a Document with an id that is unique among ingested documents."""
        return Document(
            id=self._unique_id(filename),
            raw_text=extracted.text,
            page_count=extracted.page_count,
            filename=filename,
            metadata=extracted.metadata,
        )

    async def ingest(self, document: Document) -> IngestResult:
        """Chunk, embed and store one document.

        Chunks are embedded in index order. A chunk whose embedding fails is
        recorded in the result and skipped; the rest of the document is still
        stored.

        Args:
            document: Document to ingest

        Returns:
            IngestResult with counts and per-chunk failures

        Raises:
            InvalidParameter: If a document with the same id is already ingested
        """
        if document.id in self.documents:
            raise InvalidParameter(
                f"Document {document.id!r} is already ingested; use create_document for unique ids"
            )

        self.documents[document.id] = document

        chunks = self.chunker.chunk_text(document.raw_text, document.id)
        result = IngestResult(document_id=document.id, chunks_produced=len(chunks))
        self.chunk_counts[document.id] = len(chunks)

        if not chunks:
            logger.warning("no_chunks_created", document_id=document.id)

        for chunk in chunks:
            try:
                vector = await self.gateway.embed(chunk.text)
            except EmbeddingFailed as e:
                logger.error(
                    "chunk_embedding_failed",
                    document_id=document.id,
                    chunk_index=chunk.index,
                    error=str(e),
                )
                result.failures.append(ChunkFailure(index=chunk.index, error=str(e)))
                continue

            self.vector_store.append(VectorRecord.from_chunk(chunk, vector))
            result.vectors_stored += 1

        self.stats["documents_processed"] += 1
        self.stats["chunks_created"] += result.chunks_produced
        self.stats["vectors_stored"] += result.vectors_stored
        self.stats["chunk_failures"] += len(result.failures)

        logger.info(
            "document_ingested",
            document_id=document.id,
            page_count=document.page_count,
            chunks_produced=result.chunks_produced,
            vectors_stored=result.vectors_stored,
            chunk_failures=len(result.failures),
        )

        return result

    async def ingest_upload(self, filename: str, data: bytes) -> IngestResult:
        """Extract and ingest an uploaded file.

        Raises:
            ExtractionFailed: If text cannot be extracted; nothing is stored
        """
        extracted = extract_text(data, filename=filename)
        return await self.ingest(self.create_document(filename, extracted))

    async def ingest_file(self, file_path: Path) -> IngestResult:
        """Extract and ingest a file from disk.

        Raises:
            ExtractionFailed: If text cannot be extracted; nothing is stored
        """
        logger.info("ingesting_file", path=str(file_path))
        extracted = extract_text(file_path)
        return await self.ingest(self.create_document(file_path.name, extracted))

    async def ingest_files(
        self,
        file_paths: Iterable[Path],
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """Ingest several files, skipping those that fail extraction.

        Args:
            file_paths: Files to ingest, in order
            progress_callback: Optional callback function(current, total, name)

        Returns:
            Dictionary with ingestion statistics for this batch and the
            per-document results
        """
        file_paths = list(file_paths)
        stats = _empty_stats()
        results: List[Dict[str, Any]] = []

        logger.info("starting_ingest_files", count=len(file_paths))

        for idx, file_path in enumerate(file_paths, 1):
            if progress_callback:
                progress_callback(idx, len(file_paths), file_path.name)

            try:
                result = await self.ingest_file(file_path)
            except ExtractionFailed as e:
                logger.error(
                    "document_extraction_failed",
                    path=str(file_path),
                    error=str(e),
                )
                stats["documents_failed"] += 1
                self.stats["documents_failed"] += 1
                results.append({"filename": file_path.name, "error": str(e)})
                continue

            stats["documents_processed"] += 1
            stats["chunks_created"] += result.chunks_produced
            stats["vectors_stored"] += result.vectors_stored
            stats["chunk_failures"] += len(result.failures)
            results.append({"filename": file_path.name, **result.to_dict()})

        logger.info("ingest_files_completed", stats=stats)

        return {**stats, "results": results}

    def list_documents(self) -> List[Dict[str, Any]]:
        """Summarize ingested documents in upload order."""
        vectors = self.vector_store.count_by_source()
        return [
            {
                "id": doc.id,
                "filename": doc.filename or doc.id,
                "page_count": doc.page_count,
                "chunk_count": self.chunk_counts.get(doc.id, 0),
                "vector_count": vectors.get(doc.id, 0),
                "metadata": doc.metadata,
                "ingested_at": doc.ingested_at.isoformat(),
            }
            for doc in self.documents.values()
        ]

    def list_chunks(self, limit: int = 10, preview_chars: int = 150) -> Dict[str, Any]:
        """Preview the first stored chunks.

        Args:
            limit: Maximum number of chunks to include
            preview_chars: Characters of text to show per chunk

        Returns:
            Dictionary with the total count and chunk previews
        """
        previews = []
        for record in self.vector_store.records():
            if len(previews) >= limit:
                break
            text = record.text
            previews.append(
                {
                    "source_id": record.source_id,
                    "index": record.index,
                    "length": len(text),
                    "preview": text[:preview_chars] + ("..." if len(text) > preview_chars else ""),
                }
            )

        return {"total": len(self.vector_store), "chunks": previews}
