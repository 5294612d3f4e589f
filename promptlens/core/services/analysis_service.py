"""Application service that runs one prompt through the analysis pipeline.

prompt -> token count -> chunk plan -> (per chunk) compose -> LLM -> validate
-> aggregate. Chunks are processed strictly one after another; the next
request is only composed once the previous chunk's result is validated.
"""

import logging
import time
from typing import List, Union

from promptlens.core.services.response_validator import ResponseValidator
from promptlens.core.services.result_aggregator import ResultAggregator
from promptlens.domain.exceptions import InputError, PromptLensError
from promptlens.domain.models.analysis import (
    AggregateResult,
    ChunkPlan,
    ChunkPosition,
    NoOptimizationResult,
    PlanMode,
    ValidationOutcome,
)
from promptlens.domain.models.common import CallerId, PromptText, TokenCount
from promptlens.infrastructure.ai.analysis_client import AnalysisClient
from promptlens.infrastructure.optimization.chunk_planner import ChunkPlanner
from promptlens.infrastructure.optimization.prompt_composer import PromptComposer
from promptlens.infrastructure.optimization.token_estimator import EncoderPool, TokenCounter
from promptlens.infrastructure.resilience.rate_limiter import CallerRateLimiter

logger = logging.getLogger(__name__)

AnalysisOutcome = Union[AggregateResult, NoOptimizationResult]

UNKNOWN_CALLER = CallerId("unknown")


class PromptAnalysisService:
    """Evaluates and rewords prompts within the model's token budget."""

    def __init__(
        self,
        encoder_pool: EncoderPool,
        planner: ChunkPlanner,
        composer: PromptComposer,
        analysis_client: AnalysisClient,
        validator: ResponseValidator,
        aggregator: ResultAggregator,
        rate_limiter: CallerRateLimiter,
    ):
        """Initializes the PromptAnalysisService.

        Args:
            encoder_pool: Shared tokenizer; one handle is held per request.
            planner: Decides reject / no-op / single / chunked.
            composer: Builds per-position instructions.
            analysis_client: Performs the LLM calls.
            validator: Sanitizes each raw LLM response.
            aggregator: Merges validated chunk results.
            rate_limiter: Per-caller admission control.
        """
        self.encoder_pool = encoder_pool
        self.planner = planner
        self.composer = composer
        self.analysis_client = analysis_client
        self.validator = validator
        self.aggregator = aggregator
        self.rate_limiter = rate_limiter

    async def analyze_prompt(self, prompt: str, caller_id: str = UNKNOWN_CALLER) -> AnalysisOutcome:
        """Analyzes a whole prompt.

        Raises:
            InputError: Empty or whitespace-only prompt.
            RateLimited: Caller is inside its cooldown window.
            LimitExceeded: Prompt is too large for the model.
            UpstreamError: An LLM call failed; remaining chunks are skipped.
            InternalError: A chunk invariant was violated.
        """
        if not prompt or not prompt.strip():
            raise InputError("Prompt cannot be empty")
        prompt = PromptText(prompt)

        await self.rate_limiter.check(caller_id)

        start_time = time.perf_counter()
        token_count = None
        with self.encoder_pool.acquire() as counter:
            try:
                tokens = counter.encode(prompt)
                token_count = TokenCount(len(tokens))
                if counter.is_approximate:
                    logger.warning(f"Token count for caller '{caller_id}' is approximate ({token_count})")

                plan = self.planner.plan(token_count)
                logger.info(f"Prompt from '{caller_id}': {token_count} tokens, mode={plan.mode.value}, chunks={plan.chunk_count}")

                if plan.mode is PlanMode.NO_OPTIMIZATION:
                    return NoOptimizationResult(token_count=token_count)
                if plan.mode is PlanMode.SINGLE:
                    outcome = await self._analyze_text(prompt, ChunkPosition.SINGLE, 0, 1)
                    result = self.aggregator.single(outcome, token_count)
                else:
                    result = await self._analyze_chunked(plan, tokens, counter)
            except PromptLensError as e:
                if e.token_count is None:
                    e.token_count = token_count
                raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Analysis complete: accuracy={result.accuracy}, chunks={result.chunk_count}, "
            f"degraded={result.degraded_chunks}, {duration_ms:.0f}ms"
        )
        return result

    async def _analyze_chunked(self, plan: ChunkPlan, tokens: List, counter: TokenCounter) -> AggregateResult:
        outcomes = []
        total = plan.chunk_count
        for chunk, text in self.planner.materialize(plan, tokens, counter):
            logger.debug(f"Analyzing chunk {chunk.index + 1}/{total} [{chunk.start_token}, {chunk.end_token}) as {chunk.position.value}")
            outcomes.append(await self._analyze_text(text, chunk.position, chunk.index, total))
        weights = [chunk.token_length for chunk in plan.chunks]
        return self.aggregator.combine(outcomes, plan.token_count, weights=weights)

    async def _analyze_text(
        self, text: str, position: ChunkPosition, chunk_index: int, total_chunks: int
    ) -> ValidationOutcome:
        instructions = self.composer.compose(position, chunk_index, total_chunks)
        raw = await self.analysis_client.analyze(instructions, text, position)
        outcome = self.validator.validate(raw)
        if outcome.degraded:
            logger.warning(f"Chunk {chunk_index + 1}/{total_chunks} degraded: {outcome.reason}")
        return outcome

    async def analyze_chunk(
        self,
        content: str,
        position: ChunkPosition,
        chunk_index: int = 0,
        total_chunks: int = 1,
        caller_id: str = UNKNOWN_CALLER,
    ) -> ValidationOutcome:
        """Analyzes one caller-provided chunk (the lower-level HTTP variant)."""
        if not content or not content.strip():
            raise InputError("Content cannot be empty")
        await self.rate_limiter.check(caller_id)
        with self.encoder_pool.acquire() as counter:
            token_count = counter.count(content)
            if token_count > self.planner.max_optimal_token_len:
                raise InputError(
                    f"Chunk exceeds {self.planner.max_optimal_token_len} tokens (has {token_count} tokens)",
                    token_count=token_count,
                )
            try:
                return await self._analyze_text(content, position, chunk_index, total_chunks)
            except PromptLensError as e:
                if e.token_count is None:
                    e.token_count = token_count
                raise
