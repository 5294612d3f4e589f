"""Merges validated chunk results into the final analysis payload."""

import logging
from typing import List, Optional, Sequence

from promptlens.core.services.response_validator import round_half_up
from promptlens.domain.exceptions import InternalError
from promptlens.domain.models.analysis import AggregateResult, ValidationOutcome
from promptlens.domain.models.common import TokenCount

logger = logging.getLogger(__name__)

REWORD_SEPARATOR = "\n\n"


class ResultAggregator:
    """Combines one or many ValidationOutcomes into an AggregateResult.

    By default every chunk contributes an equal share of the accuracy score,
    regardless of how many tokens it covers. With ``weight_by_token_share``
    the caller-supplied weights (chunk token lengths) are used instead.
    """

    def __init__(self, weight_by_token_share: bool = False):
        self.weight_by_token_share = weight_by_token_share

    def single(self, outcome: ValidationOutcome, token_count: TokenCount) -> AggregateResult:
        result = outcome.result
        return AggregateResult(
            accuracy=float(result.accuracy),
            suggestions=result.suggestions,
            reword=result.reword,
            was_chunked=False,
            token_count=token_count,
            chunk_count=1,
            degraded_chunks=1 if outcome.degraded else 0,
        )

    def combine(
        self,
        outcomes: Sequence[ValidationOutcome],
        token_count: TokenCount,
        weights: Optional[Sequence[int]] = None,
    ) -> AggregateResult:
        if not outcomes:
            raise InternalError("Cannot aggregate zero chunk results", token_count=token_count)

        chunk_count = len(outcomes)
        if self.weight_by_token_share and weights:
            if len(weights) != chunk_count or sum(weights) <= 0:
                raise InternalError("Chunk weights do not match chunk results", token_count=token_count)
            total_weight = sum(weights)
            mean = sum(o.result.accuracy * w for o, w in zip(outcomes, weights)) / total_weight
        else:
            mean = sum(o.result.accuracy for o in outcomes) / chunk_count

        suggestions: List[str] = []
        for outcome in outcomes:
            for suggestion in outcome.result.suggestions:
                if suggestion not in suggestions:
                    suggestions.append(suggestion)

        degraded = sum(1 for o in outcomes if o.degraded)
        if degraded:
            logger.warning(f"{degraded} of {chunk_count} chunks were degraded during validation")

        return AggregateResult(
            accuracy=round_half_up(mean * 10) / 10,
            suggestions=tuple(suggestions),
            reword=REWORD_SEPARATOR.join(o.result.reword for o in outcomes),
            was_chunked=True,
            token_count=token_count,
            chunk_count=chunk_count,
            degraded_chunks=degraded,
        )
