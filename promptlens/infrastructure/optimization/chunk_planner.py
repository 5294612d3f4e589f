"""Decides how a prompt of a given token count is processed.

Policy, in precedence order:

1. Reject prompts at or above 93.75% of the model's context window.
2. Skip prompts already inside the no-optimization band
   ``[0.75, 1.25] x optimal_token_len``.
3. Split prompts of ``max_optimal_token_len`` tokens or more into
   ``ceil(token_count / max_optimal_token_len)`` contiguous chunks.
4. Analyze everything else in a single call.
Bounded Context: Prompt Optimization
"""

import logging
import math
from typing import Any, List, Sequence, Tuple

from promptlens.domain.exceptions import InputError, InternalError, LimitExceeded
from promptlens.domain.models.analysis import Chunk, ChunkPlan, ChunkPosition, PlanMode
from promptlens.domain.models.common import ChunkText, TokenCount
from promptlens.infrastructure.optimization.token_estimator import TokenCounter

logger = logging.getLogger(__name__)

CONTEXT_SAFETY_MARGIN = 0.0625
NO_OPTIMIZATION_LOWER = 0.75
NO_OPTIMIZATION_UPPER = 1.25


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


class ChunkPlanner:
    """Plans chunk boundaries from a token count and configured thresholds."""

    def __init__(self, optimal_token_len: int, max_optimal_token_len: int, max_total_tokens: int):
        self.optimal_token_len = optimal_token_len
        self.max_optimal_token_len = max_optimal_token_len
        self.max_total_tokens = max_total_tokens

    @property
    def token_limit(self) -> float:
        return self.max_total_tokens * (1 - CONTEXT_SAFETY_MARGIN)

    @property
    def no_optimization_band(self) -> Tuple[float, float]:
        return (
            self.optimal_token_len * NO_OPTIMIZATION_LOWER,
            self.optimal_token_len * NO_OPTIMIZATION_UPPER,
        )

    def plan(self, token_count: int) -> ChunkPlan:
        """Builds the ChunkPlan for a prompt of `token_count` tokens.

        Raises:
            LimitExceeded: If the prompt is too large to analyze at all.
            InputError: If `token_count` is negative.
        """
        if token_count < 0:
            raise InputError(f"Token count cannot be negative (got {token_count})")
        count = TokenCount(token_count)

        if token_count >= self.token_limit:
            raise LimitExceeded(
                f"Input exceeds {_fmt(self.token_limit)} token limit (has {token_count} tokens)",
                token_count=token_count,
            )

        lower, upper = self.no_optimization_band
        if lower <= token_count <= upper:
            logger.debug(f"{token_count} tokens inside no-optimization band [{_fmt(lower)}, {_fmt(upper)}]")
            return ChunkPlan(mode=PlanMode.NO_OPTIMIZATION, token_count=count)

        if token_count >= self.max_optimal_token_len:
            return ChunkPlan(mode=PlanMode.CHUNKED, token_count=count, chunks=self._split(token_count))

        single = Chunk(
            index=0,
            start_token=0,
            end_token=token_count,
            is_first=True,
            is_last=True,
            position=ChunkPosition.SINGLE,
        )
        return ChunkPlan(mode=PlanMode.SINGLE, token_count=count, chunks=(single,))

    def _split(self, token_count: int) -> Tuple[Chunk, ...]:
        size = self.max_optimal_token_len
        chunk_count = math.ceil(token_count / size)
        chunks = []
        for i in range(chunk_count):
            is_first = i == 0
            is_last = i == chunk_count - 1
            if is_first:
                position = ChunkPosition.FIRST
            elif is_last:
                position = ChunkPosition.LAST
            else:
                position = ChunkPosition.MIDDLE
            chunks.append(Chunk(
                index=i,
                start_token=i * size,
                end_token=min((i + 1) * size, token_count),
                is_first=is_first,
                is_last=is_last,
                position=position,
            ))
        logger.debug(f"Split {token_count} tokens into {chunk_count} chunks of at most {size}")
        return tuple(chunks)

    def materialize(
        self, plan: ChunkPlan, tokens: Sequence[Any], counter: TokenCounter
    ) -> List[Tuple[Chunk, ChunkText]]:
        """Decodes each chunk's token span back to text.

        The decoded text is re-encoded because a decode/encode round trip can
        shift the count at span boundaries.

        Raises:
            InternalError: If a materialized chunk exceeds max_optimal_token_len.
        """
        materialized = []
        for chunk in plan.chunks:
            if chunk.token_length > self.max_optimal_token_len:
                raise InternalError(
                    f"Chunk {chunk.index + 1} too large ({chunk.token_length} tokens)",
                    token_count=plan.token_count,
                )
            text = counter.decode(tokens[chunk.start_token:chunk.end_token])
            actual = counter.count(text)
            if actual > self.max_optimal_token_len:
                raise InternalError(
                    f"Chunk {chunk.index + 1} too large after decoding ({actual} tokens)",
                    token_count=plan.token_count,
                )
            materialized.append((chunk, ChunkText(text)))
        return materialized
