"""Records flowing through the ingestion and query paths."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from docchat.rag.chunker import Chunk


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Document:
    """An uploaded document after successful text extraction."""

    id: str
    raw_text: str
    page_count: int
    filename: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    ingested_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class VectorRecord:
    """An embedded chunk with its provenance."""

    text: str
    vector: Tuple[float, ...]
    source_id: str
    index: int
    start_offset: int
    end_offset: int

    @classmethod
    def from_chunk(cls, chunk: Chunk, vector) -> "VectorRecord":
        return cls(
            text=chunk.text,
            vector=tuple(float(x) for x in vector),
            source_id=chunk.source_id,
            index=chunk.index,
            start_offset=chunk.start_offset,
            end_offset=chunk.end_offset,
        )


@dataclass(frozen=True)
class ScoredChunk:
    """A retrieved chunk with its similarity to the query."""

    text: str
    source_id: str
    index: int
    start_offset: int
    end_offset: int
    similarity: float

    @property
    def source(self) -> str:
        """Get a formatted source string for display."""
        return f"{self.source_id} #{self.index}"

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "source_id": self.source_id,
            "index": self.index,
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
            "similarity": round(self.similarity, 4),
        }


@dataclass(frozen=True)
class ChunkFailure:
    """An embedding failure attributed to one chunk."""

    index: int
    error: str


@dataclass
class IngestResult:
    """Outcome of ingesting one document."""

    document_id: str
    chunks_produced: int = 0
    vectors_stored: int = 0
    failures: List[ChunkFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "chunks_produced": self.chunks_produced,
            "vectors_stored": self.vectors_stored,
            "failures": [
                {"index": f.index, "error": f.error} for f in self.failures
            ],
        }
