"""Unit tests for cosine similarity and the in-memory vector store."""
import math

import numpy as np
import pytest

from docchat.errors import DimensionMismatch
from docchat.rag.models import VectorRecord
from docchat.rag.store import VectorStore, cosine_similarity


def make_record(vector, source_id="doc", index=0, text=None):
    return VectorRecord(
        text=text if text is not None else f"chunk {index}",
        vector=tuple(vector),
        source_id=source_id,
        index=index,
        start_offset=index * 10,
        end_offset=index * 10 + 10,
    )


class TestCosineSimilarity:
    """Tests for cosine_similarity()."""

    def test_self_similarity_is_one(self):
        v = [0.3, -1.2, 4.5, 0.01]
        assert cosine_similarity(v, v) == pytest.approx(1.0)

    def test_opposite_is_minus_one(self):
        v = [0.3, -1.2, 4.5]
        assert cosine_similarity(v, [-x for x in v]) == pytest.approx(-1.0)

    def test_symmetric(self):
        a, b = [1.0, 2.0, 3.0], [-2.0, 0.5, 1.0]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_orthogonal_is_zero(self):
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)

    def test_zero_vector_similarity_is_zero(self):
        assert cosine_similarity([0, 0, 0], [1, 2, 3]) == 0.0
        assert cosine_similarity([1, 2, 3], [0, 0, 0]) == 0.0

    def test_length_mismatch_raises(self):
        with pytest.raises(DimensionMismatch):
            cosine_similarity([1, 2], [1, 2, 3])


class TestVectorStore:
    """Tests for VectorStore append and query."""

    def test_query_empty_store_returns_empty(self):
        store = VectorStore()

        assert store.query([1.0, 0.0], top_k=5) == []
        assert len(store) == 0

    def test_dimension_fixed_by_first_append(self):
        store = VectorStore()
        store.append(make_record([1.0, 0.0, 0.0]))

        assert store.dimension == 3

        with pytest.raises(DimensionMismatch):
            store.append(make_record([1.0, 0.0]))
        assert len(store) == 1

    def test_query_dimension_mismatch_raises(self):
        store = VectorStore()
        store.append(make_record([1.0, 0.0]))

        with pytest.raises(DimensionMismatch):
            store.query([1.0, 0.0, 0.0], top_k=1)

    def test_ranking_with_near_duplicate_and_orthogonal(self):
        """Test [1,0], [0,1] and normalized [0.9,0.1] against query [1,0]."""
        norm = math.hypot(0.9, 0.1)
        store = VectorStore()
        store.append(make_record([1.0, 0.0], index=0))
        store.append(make_record([0.0, 1.0], index=1))
        store.append(make_record([0.9 / norm, 0.1 / norm], index=2))

        results = store.query([1.0, 0.0], top_k=3)

        assert [r.index for r, _ in results] == [0, 2, 1]
        assert results[0][1] == pytest.approx(1.0)
        assert results[1][1] == pytest.approx(0.9 / norm)
        assert results[2][1] == pytest.approx(0.0, abs=1e-12)

    def test_results_sorted_and_truncated(self):
        rng = np.random.default_rng(7)
        store = VectorStore()
        for i in range(20):
            store.append(make_record(rng.normal(size=8), index=i))

        results = store.query(rng.normal(size=8), top_k=5)
        similarities = [s for _, s in results]

        assert len(results) == 5
        assert similarities == sorted(similarities, reverse=True)

    def test_top_k_larger_than_store(self):
        store = VectorStore()
        store.append(make_record([1.0, 0.0], index=0))
        store.append(make_record([0.0, 1.0], index=1))

        assert len(store.query([1.0, 1.0], top_k=10)) == 2

    def test_non_positive_top_k_returns_empty(self):
        store = VectorStore()
        store.append(make_record([1.0, 0.0]))

        assert store.query([1.0, 0.0], top_k=0) == []

    def test_ties_keep_insertion_order(self):
        store = VectorStore()
        for i in range(5):
            store.append(make_record([1.0, 1.0], index=i, text="same text"))

        results = store.query([1.0, 1.0], top_k=5)

        assert [r.index for r, _ in results] == [0, 1, 2, 3, 4]

    def test_zero_vector_record_scores_zero(self):
        store = VectorStore()
        store.append(make_record([0.0, 0.0], index=0))
        store.append(make_record([0.0, 1.0], index=1))

        results = store.query([1.0, 0.0], top_k=2)

        assert [s for _, s in results] == [0.0, 0.0]
        assert [r.index for r, _ in results] == [0, 1]

    def test_zero_query_vector_scores_zero(self):
        store = VectorStore()
        store.append(make_record([1.0, 0.0]))

        assert store.query([0.0, 0.0], top_k=1)[0][1] == 0.0

    def test_record_ids_stable_across_growth(self):
        store = VectorStore()
        ids = [store.append(make_record([float(i), 1.0], index=i)) for i in range(200)]

        assert ids == list(range(200))
        assert store.get(150).index == 150
        assert [r.index for r in store.records()] == list(range(200))
        assert store.get_stats()["capacity"] >= 200

    def test_duplicates_permitted_and_counted_by_source(self):
        store = VectorStore()
        store.append(make_record([1.0, 0.0], source_id="a.pdf", index=0))
        store.append(make_record([1.0, 0.0], source_id="a.pdf", index=0))
        store.append(make_record([0.0, 1.0], source_id="b.pdf", index=0))

        assert len(store) == 3
        assert store.count_by_source() == {"a.pdf": 2, "b.pdf": 1}
