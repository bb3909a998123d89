"""Text chunking with overlap for RAG pipeline.

Implements character-based sliding windows over whitespace-normalized text
to avoid tokenizer dependencies. Offsets refer to the normalized text.
"""
import re
from typing import List
from dataclasses import dataclass
import structlog

from docchat import config
from docchat.errors import InvalidParameter

logger = structlog.get_logger()

_WHITESPACE_RUN = re.compile(r"\s+")


@dataclass(frozen=True)
class Chunk:
    """A contiguous window of a document's normalized text."""

    source_id: str
    index: int
    text: str
    start_offset: int
    end_offset: int


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to a single space and trim the ends."""
    return _WHITESPACE_RUN.sub(" ", text).strip()


def chunk(
    text: str,
    source_id: str,
    window_size: int = 500,
    overlap: int = 100,
) -> List[Chunk]:
    """Split text into overlapping fixed-size windows.

    The cursor advances by ``window_size - overlap``. Every non-empty window is
    emitted and windowing stops after the window that reaches the end of the
    text, so the last chunk may be shorter than ``window_size``.

    Args:
        text: Raw text to chunk
        source_id: Identifier of the document the text came from
        window_size: Window length in characters
        overlap: Characters shared by consecutive windows

    Returns:
        Chunks in index order (empty if the normalized text is empty)

    Raises:
        InvalidParameter: If not ``0 <= overlap < window_size``
    """
    if overlap < 0 or overlap >= window_size:
        raise InvalidParameter(
            f"Overlap ({overlap}) must be >= 0 and less than "
            f"window size ({window_size})"
        )

    text = normalize_whitespace(text)
    text_length = len(text)
    step = window_size - overlap

    chunks: List[Chunk] = []
    cursor = 0
    while cursor < text_length:
        window = text[cursor : cursor + window_size]
        if window:
            chunks.append(
                Chunk(
                    source_id=source_id,
                    index=len(chunks),
                    text=window,
                    start_offset=cursor,
                    end_offset=cursor + len(window),
                )
            )

        if cursor + window_size >= text_length:
            break
        cursor += step

    return chunks


class TextChunker:
    """Character-based text chunker bound to a window configuration."""

    def __init__(
        self,
        chunk_size: int = None,
        chunk_overlap: int = None,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Size of each chunk in characters (default from config)
            chunk_overlap: Overlap between chunks in characters (default from config)

        Raises:
            InvalidParameter: If overlap is negative or not less than chunk size
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.chunk_overlap = (
            config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap
        )

        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise InvalidParameter(
                f"Overlap ({self.chunk_overlap}) must be >= 0 and less than "
                f"chunk size ({self.chunk_size})"
            )

        logger.info(
            "chunker_initialized",
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
        )

    def chunk_text(self, text: str, source_id: str) -> List[Chunk]:
        """Split text into overlapping chunks.

        Args:
            text: Text to chunk
            source_id: Identifier of the source document

        Returns:
            List of Chunk objects
        """
        chunks = chunk(
            text,
            source_id,
            window_size=self.chunk_size,
            overlap=self.chunk_overlap,
        )

        if chunks:
            logger.info(
                "text_chunked",
                source_id=source_id,
                text_length=chunks[-1].end_offset,
                chunk_count=len(chunks),
                avg_chunk_size=sum(len(c.text) for c in chunks) // len(chunks),
            )
        else:
            logger.debug("text_empty_after_normalization", source_id=source_id)

        return chunks

    def get_chunk_stats(self, chunks: List[Chunk]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: List of Chunk objects

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
                "overlap": self.chunk_overlap,
            }

        chunk_sizes = [len(c.text) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
            "overlap": self.chunk_overlap,
        }


# Convenience function
def chunk_text(text: str, source_id: str) -> List[Chunk]:
    """Chunk text with the configured window size and overlap.

    Args:
        text: Text to chunk
        source_id: Identifier of the source document

    Returns:
        List of Chunk objects
    """
    return TextChunker().chunk_text(text, source_id)
