"""In-memory vector store for semantic search.

Handles:
- Dimension pinning on first append
- Append-only record storage with stable record ids
- Exact cosine-similarity ranking by linear scan
"""
from collections import Counter
from typing import Dict, Iterator, List, Optional, Sequence, Tuple
import numpy as np
import structlog

from docchat.errors import DimensionMismatch
from docchat.rag.models import VectorRecord

logger = structlog.get_logger()

_INITIAL_CAPACITY = 64


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        DimensionMismatch: If the vectors differ in length
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise DimensionMismatch(va.size, vb.size)

    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / denom, -1.0, 1.0))


class VectorStore:
    """Append-only vector store with exact cosine ranking.

    Vectors live in a preallocated matrix that grows by doubling. A record's id
    is its row in that matrix and never changes.
    """

    def __init__(self):
        """Initialize an empty store; the dimension is set by the first append."""
        self.dimension: Optional[int] = None
        self._records: List[VectorRecord] = []
        self._vectors: Optional[np.ndarray] = None
        self._norms: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return len(self._records)

    def _grow(self, min_capacity: int) -> None:
        capacity = max(_INITIAL_CAPACITY, min_capacity)
        if self._vectors is not None:
            capacity = max(capacity, self._vectors.shape[0] * 2)

        vectors = np.zeros((capacity, self.dimension), dtype=np.float64)
        norms = np.zeros(capacity, dtype=np.float64)
        n = len(self._records)
        if self._vectors is not None:
            vectors[:n] = self._vectors[:n]
            norms[:n] = self._norms[:n]

        self._vectors = vectors
        self._norms = norms

    def append(self, record: VectorRecord) -> int:
        """Append a record to the store.

        Args:
            record: Embedded chunk to store

        Returns:
            The record id (its stable position in the store)

        Raises:
            DimensionMismatch: If the vector length differs from the store's dimension
        """
        vector = np.asarray(record.vector, dtype=np.float64)

        if self.dimension is None:
            self.dimension = int(vector.size)
            logger.info("vector_store_dimension_set", dimension=self.dimension)
        elif vector.size != self.dimension:
            raise DimensionMismatch(self.dimension, int(vector.size))

        record_id = len(self._records)
        if self._vectors is None or record_id >= self._vectors.shape[0]:
            self._grow(record_id + 1)

        self._vectors[record_id] = vector
        self._norms[record_id] = np.linalg.norm(vector)
        self._records.append(record)

        logger.debug(
            "vector_appended",
            record_id=record_id,
            source_id=record.source_id,
            index=record.index,
        )

        return record_id

    def query(
        self, query_vector: Sequence[float], top_k: int
    ) -> List[Tuple[VectorRecord, float]]:
        """Rank stored records by cosine similarity to a query vector.

        Args:
            query_vector: Query embedding
            top_k: Maximum number of results

        Returns:
            (record, similarity) pairs, highest similarity first; ties keep
            insertion order

        Raises:
            DimensionMismatch: If the query vector length differs from the store's dimension
        """
        n = len(self._records)
        if n == 0 or top_k <= 0:
            return []

        q = np.asarray(query_vector, dtype=np.float64)
        if q.ndim != 1 or q.size != self.dimension:
            raise DimensionMismatch(self.dimension, int(q.size))

        dots = self._vectors[:n] @ q
        denoms = self._norms[:n] * np.linalg.norm(q)
        similarities = np.zeros(n, dtype=np.float64)
        np.divide(dots, denoms, out=similarities, where=denoms > 0)
        np.clip(similarities, -1.0, 1.0, out=similarities)

        order = np.argsort(-similarities, kind="stable")[:top_k]

        logger.info(
            "vector_search_completed",
            top_k=top_k,
            scanned=n,
            results_found=len(order),
        )

        return [(self._records[i], float(similarities[i])) for i in order]

    def get(self, record_id: int) -> VectorRecord:
        """Get a record by id."""
        return self._records[record_id]

    def records(self) -> Iterator[VectorRecord]:
        """Iterate over records in insertion order."""
        return iter(list(self._records))

    def count_by_source(self) -> Dict[str, int]:
        """Count stored vectors per source document."""
        return dict(Counter(r.source_id for r in self._records))

    def get_stats(self) -> Dict[str, object]:
        """Get statistics about the vector store.

        Returns:
            Dictionary with store statistics
        """
        return {
            "vector_count": len(self._records),
            "dimension": self.dimension,
            "capacity": 0 if self._vectors is None else self._vectors.shape[0],
            "sources": len(self.count_by_source()),
        }
