"""Pytest configuration and shared fixtures."""
import asyncio
from typing import Dict, List, Optional

import numpy as np
import pytest

from docchat.rag.embeddings import EmbeddingGateway
from docchat.rag.pipeline import RAGPipeline


def letter_vector(text: str) -> List[float]:
    """Deterministic 26-dim embedding: normalized letter counts."""
    vector = np.zeros(26)
    for ch in text.lower():
        if "a" <= ch <= "z":
            vector[ord(ch) - ord("a")] += 1
    norm = np.linalg.norm(vector)
    return (vector / norm if norm else vector).tolist()


class FakeOracle:
    """Embedding oracle stub with call counters and scripted failures."""

    def __init__(
        self,
        fail_on: Optional[Dict[str, Exception]] = None,
        fail_all: Optional[Exception] = None,
        load_error: Optional[Exception] = None,
    ):
        self.fail_on = fail_on or {}
        self.fail_all = fail_all
        self.load_error = load_error
        self.dimension: Optional[int] = None
        self.load_calls = 0
        self.embed_calls = 0

    async def load(self) -> None:
        self.load_calls += 1
        await asyncio.sleep(0)
        if self.load_error is not None:
            raise self.load_error
        self.dimension = 26

    async def embed(self, text: str) -> List[float]:
        self.embed_calls += 1
        await asyncio.sleep(0)
        if self.fail_all is not None:
            raise self.fail_all
        if text in self.fail_on:
            raise self.fail_on[text]
        return letter_vector(text)


class FakeOracleFactory:
    """Creates FakeOracles from a list of per-instance plans."""

    def __init__(self, plans: Optional[List[dict]] = None):
        self.plans = list(plans or [])
        self.created: List[FakeOracle] = []

    def __call__(self) -> FakeOracle:
        plan = self.plans.pop(0) if self.plans else {}
        oracle = FakeOracle(**plan)
        self.created.append(oracle)
        return oracle

    @property
    def embed_calls(self) -> int:
        return sum(o.embed_calls for o in self.created)


class FakeGenerator:
    """Generation oracle stub that records prompts."""

    model = "fake-chat"

    def __init__(self, reply: str = "Generated answer", error: Exception = None):
        self.reply = reply
        self.error = error
        self.calls: List[list] = []

    async def complete(self, messages, temperature=None, max_tokens=None):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return {"content": self.reply}


@pytest.fixture
def oracle_factory() -> FakeOracleFactory:
    return FakeOracleFactory()


@pytest.fixture
def gateway(oracle_factory: FakeOracleFactory) -> EmbeddingGateway:
    return EmbeddingGateway(oracle_factory)


@pytest.fixture
def pipeline(gateway: EmbeddingGateway) -> RAGPipeline:
    return RAGPipeline(gateway, chunk_size=500, chunk_overlap=100, top_k=5)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()
