"""Error taxonomy for the document chat pipeline.

Each error is attributable to a single call, chunk or document; none of them
leave previously ingested documents in a partial state.
"""
from enum import Enum
from typing import Optional


class DocChatError(Exception):
    """Base class for all pipeline errors."""


class InvalidParameter(DocChatError, ValueError):
    """A caller-supplied parameter is invalid (fatal to that call only)."""


class ExtractionFailed(DocChatError):
    """Text could not be extracted from a source file."""

    def __init__(self, filename: str, reason: str):
        super().__init__(f"Failed to extract text from {filename}: {reason}")
        self.filename = filename
        self.reason = reason


class EmbeddingFailed(DocChatError):
    """The embedding oracle could not produce a vector."""


class DimensionMismatch(DocChatError, ValueError):
    """Two vectors that must share a dimensionality do not."""

    def __init__(self, expected: int, got: int):
        super().__init__(
            f"Vector dimension mismatch: expected {expected}, got {got}"
        )
        self.expected = expected
        self.got = got


class GenerationFailed(DocChatError):
    """The generation oracle failed to produce a completion."""


class OracleErrorKind(str, Enum):
    """Failure classes reported by oracle adapters."""

    CORRUPTED_STATE = "corrupted_state"
    TRANSIENT_FAILURE = "transient_failure"
    INVALID_INPUT = "invalid_input"


class OracleError(DocChatError):
    """Failure raised by an external oracle adapter, tagged with its kind.

    Retry policy dispatches on ``kind``; the message is for humans only.
    """

    def __init__(
        self,
        kind: OracleErrorKind,
        message: str,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
