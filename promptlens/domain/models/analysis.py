"""Domain models specific to prompt analysis.

Covers the chunk plan produced from a token count, the validated per-chunk
result returned by the LLM, and the aggregate payload handed back to callers.
All entities are created and discarded within a single request.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .common import TokenCount


class ChunkPosition(str, Enum):
    """Where a piece of prompt text sits relative to the rest of the prompt."""
    SINGLE = "single"
    FIRST = "first"
    MIDDLE = "middle"
    LAST = "last"

    @property
    def is_chunked(self) -> bool:
        return self is not ChunkPosition.SINGLE


class PlanMode(str, Enum):
    """How a prompt of a given size is processed."""
    NO_OPTIMIZATION = "no_optimization"
    SINGLE = "single"
    CHUNKED = "chunked"


@dataclass(frozen=True)
class Chunk:
    """A contiguous token span ``[start_token, end_token)`` of the prompt."""
    index: int
    start_token: int
    end_token: int
    is_first: bool
    is_last: bool
    position: ChunkPosition

    @property
    def token_length(self) -> int:
        return self.end_token - self.start_token


@dataclass(frozen=True)
class ChunkPlan:
    """Ordered chunk layout for one prompt."""
    mode: PlanMode
    token_count: TokenCount
    chunks: Tuple[Chunk, ...] = ()

    @property
    def chunk_count(self) -> int:
        return len(self.chunks)


@dataclass(frozen=True)
class ChunkResult:
    """Canonical evaluation + optimization for one chunk (or a whole prompt)."""
    accuracy: int = 0
    suggestions: Tuple[str, ...] = ()
    reword: str = ""

    def to_payload(self) -> Dict[str, Any]:
        """Returns the ``{Evaluation, Optimization}`` JSON shape."""
        return {
            "Evaluation": {
                "Accuracy": self.accuracy,
                "Suggestions": list(self.suggestions),
            },
            "Optimization": {
                "Reword": self.reword,
            },
        }


NEUTRAL_CHUNK_RESULT = ChunkResult()


@dataclass(frozen=True)
class ValidationOutcome:
    """A validated chunk result, flagged when the LLM response had to be repaired.

    A degraded outcome still carries a usable (possibly neutral) result so that
    a multi-chunk run is never aborted by one malformed response.
    """
    result: ChunkResult
    degraded: bool = False
    reason: Optional[str] = None

    @classmethod
    def ok(cls, result: ChunkResult) -> "ValidationOutcome":
        return cls(result=result)

    @classmethod
    def degraded_with(cls, reason: str, result: ChunkResult = NEUTRAL_CHUNK_RESULT) -> "ValidationOutcome":
        return cls(result=result, degraded=True, reason=reason)


@dataclass(frozen=True)
class AggregateResult:
    """Final analysis payload for a prompt."""
    accuracy: float
    suggestions: Tuple[str, ...]
    reword: str
    was_chunked: bool
    token_count: TokenCount
    chunk_count: int = 1
    degraded_chunks: int = 0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "accuracy": self.accuracy,
            "suggestions": list(self.suggestions),
            "reword": self.reword,
            "wasChunked": self.was_chunked,
            "tokenCount": self.token_count,
            "chunkCount": self.chunk_count,
            "degradedChunks": self.degraded_chunks,
        }


@dataclass(frozen=True)
class NoOptimizationResult:
    """Returned when the prompt already sits inside the no-optimization band."""
    token_count: TokenCount
    message: str = "Prompt is already within optimal token range"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "type": "no_optimization_needed",
            "message": self.message,
            "tokenCount": self.token_count,
        }


@dataclass
class AnalysisErrorEnvelope:
    """Uniform error payload returned by every entry point."""
    error: str
    token_count: Optional[int] = None
    duration_ms: int = 0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "type": "analysis_error",
            "error": self.error,
            "tokenCount": self.token_count,
            "durationMs": self.duration_ms,
        }
