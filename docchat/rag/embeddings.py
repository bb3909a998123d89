"""Embedding gateway and oracle adapters.

The gateway owns a single embedding oracle handle, loads it lazily, and
recovers once from an oracle that reports corrupted internal state.
"""
import asyncio
from enum import Enum
from typing import Callable, List, Optional, Protocol

import httpx
import numpy as np
import structlog

from docchat import config
from docchat.errors import EmbeddingFailed, OracleError, OracleErrorKind
from docchat.llm_client import OllamaClient

logger = structlog.get_logger()


class EmbeddingOracle(Protocol):
    """Maps text to a fixed-length, mean-pooled, L2-normalized vector."""

    dimension: Optional[int]

    async def load(self) -> None:
        ...

    async def embed(self, text: str) -> List[float]:
        ...


def classify_http_error(error: httpx.HTTPError) -> OracleError:
    """Map an httpx error from Ollama onto an oracle error kind.

    A 404 means the model handle is gone from the server, which a reload
    (and pull) can repair.
    """
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 404:
            kind = OracleErrorKind.CORRUPTED_STATE
        elif status >= 500:
            kind = OracleErrorKind.TRANSIENT_FAILURE
        else:
            kind = OracleErrorKind.INVALID_INPUT
        return OracleError(kind, str(error), status_code=status)

    return OracleError(OracleErrorKind.TRANSIENT_FAILURE, str(error))


class OllamaEmbeddingOracle:
    """Embedding oracle backed by an Ollama embedding model."""

    def __init__(self, client: OllamaClient, model: str = None):
        self.client = client
        self.model = model or config.EMBEDDING_MODEL
        self.dimension: Optional[int] = None

    async def load(self) -> None:
        """Make sure the model is installed, pulling it if needed, and probe its dimension.

        Raises:
            OracleError: If the model cannot be fetched or probed
        """
        try:
            await self.client.show_model(self.model)
        except httpx.HTTPStatusError as e:
            if e.response.status_code != 404:
                raise classify_http_error(e) from e
            logger.warning("embedding_model_missing_pulling", model=self.model)
            try:
                await self.client.pull_model(self.model)
            except httpx.HTTPError as pull_error:
                raise classify_http_error(pull_error) from pull_error
        except httpx.HTTPError as e:
            raise classify_http_error(e) from e

        probe = await self.embed("dimension probe")
        self.dimension = len(probe)

        logger.info(
            "embedding_model_loaded",
            model=self.model,
            dimension=self.dimension,
        )

    async def embed(self, text: str) -> List[float]:
        """Embed one text and return its unit-length vector.

        Raises:
            OracleError: On HTTP failure or an empty embedding
        """
        try:
            data = await self.client.embed(text, model=self.model)
        except httpx.HTTPError as e:
            raise classify_http_error(e) from e

        embeddings = data.get("embeddings") or []
        if not embeddings or not embeddings[0]:
            raise OracleError(
                OracleErrorKind.CORRUPTED_STATE,
                f"Empty embedding returned by {self.model}",
            )

        vector = np.asarray(embeddings[0], dtype=np.float64)
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm
        return vector.tolist()


class GatewayState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"


class EmbeddingGateway:
    """Lazily-loaded owner of the embedding oracle.

    Loading is collapsed into a single in-flight task: callers that arrive
    while the state is LOADING await the same task. A failed load returns the
    gateway to UNLOADED so the next call can try again.
    """

    def __init__(self, oracle_factory: Callable[[], EmbeddingOracle]):
        """Initialize the gateway.

        Args:
            oracle_factory: Creates a fresh, unloaded oracle handle
        """
        self._oracle_factory = oracle_factory
        self._oracle: Optional[EmbeddingOracle] = None
        self._state = GatewayState.UNLOADED
        self._loading: Optional[asyncio.Task] = None

    @property
    def state(self) -> GatewayState:
        return self._state

    @property
    def dimension(self) -> Optional[int]:
        if self._oracle is None:
            return None
        return self._oracle.dimension

    async def _load(self) -> None:
        logger.info("embedding_gateway_loading")
        try:
            oracle = self._oracle_factory()
            await oracle.load()
        except BaseException:
            self._state = GatewayState.UNLOADED
            raise
        finally:
            self._loading = None

        self._oracle = oracle
        self._state = GatewayState.READY
        logger.info("embedding_gateway_ready", dimension=oracle.dimension)

    async def ensure_ready(self) -> None:
        """Load the oracle if it is not loaded yet.

        Raises:
            EmbeddingFailed: If the oracle fails to load
        """
        if self._state is GatewayState.READY:
            return

        if self._loading is None:
            self._state = GatewayState.LOADING
            self._loading = asyncio.get_running_loop().create_task(self._load())

        try:
            await asyncio.shield(self._loading)
        except Exception as e:
            logger.error(
                "embedding_gateway_load_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise EmbeddingFailed(f"Failed to load embedding model: {e}") from e

    def reset(self) -> None:
        """Drop the oracle handle; the next call reloads it."""
        self._oracle = None
        self._state = GatewayState.UNLOADED
        logger.warning("embedding_gateway_reset")

    async def _embed_once(self, oracle: EmbeddingOracle, text: str) -> List[float]:
        vector = await oracle.embed(text)
        if len(vector) == 0:
            raise EmbeddingFailed("Empty embedding returned")
        return vector

    async def embed(self, text: str) -> List[float]:
        """Embed text, reloading and retrying once if the oracle reports corrupted state.

        Args:
            text: Text to embed

        Returns:
            Embedding vector (normalized by the oracle)

        Raises:
            EmbeddingFailed: If embedding fails
        """
        await self.ensure_ready()
        oracle = self._oracle

        try:
            return await self._embed_once(oracle, text)
        except EmbeddingFailed:
            raise
        except OracleError as e:
            if e.kind is not OracleErrorKind.CORRUPTED_STATE:
                raise EmbeddingFailed(f"Embedding failed ({e.kind.value}): {e}") from e
            logger.warning(
                "embedding_oracle_corrupted_reloading",
                error=str(e),
                text_length=len(text),
            )
        except Exception as e:
            raise EmbeddingFailed(f"Embedding failed: {e}") from e

        # Another caller may already have replaced the broken handle
        if self._oracle is oracle:
            self.reset()
        await self.ensure_ready()

        try:
            return await self._embed_once(self._oracle, text)
        except EmbeddingFailed:
            raise
        except Exception as e:
            logger.error("embedding_retry_failed", error=str(e))
            raise EmbeddingFailed(f"Embedding failed after reload: {e}") from e


def ollama_gateway(client: OllamaClient, model: str = None) -> EmbeddingGateway:
    """Build a gateway that loads an Ollama embedding model on first use."""
    return EmbeddingGateway(lambda: OllamaEmbeddingOracle(client, model=model))
