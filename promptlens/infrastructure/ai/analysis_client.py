"""Sends one composed analysis request to the LLM and returns its raw text.

Generation parameters are fixed per process (low temperature, JSON-object
response format). Each call is bounded by a timeout; nothing is retried.
"""

import asyncio
import logging
from typing import Optional

from promptlens.domain.exceptions import UpstreamError
from promptlens.domain.interfaces.ai_model import AIModel
from promptlens.domain.models.analysis import ChunkPosition
from promptlens.domain.models.common import AIResponse
from promptlens.infrastructure.optimization.prompt_composer import PromptComposer

logger = logging.getLogger(__name__)

JSON_RESPONSE_FORMAT = {"type": "json_object"}


class AnalysisClient:
    """Thin adapter between composed instructions and an AIModel."""

    def __init__(
        self,
        ai_model: AIModel,
        composer: PromptComposer,
        temperature: float,
        max_tokens: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.ai_model = ai_model
        self.composer = composer
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds

    async def analyze(self, instructions: str, chunk_text: str, position: ChunkPosition) -> AIResponse:
        """Performs one outbound LLM call.

        Raises:
            UpstreamError: On provider errors or when the call exceeds the timeout.
        """
        messages = self.composer.build_messages(instructions, chunk_text, position)
        call = self.ai_model.send_messages(
            messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format=JSON_RESPONSE_FORMAT,
        )
        try:
            response = await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.error(f"LLM call exceeded {self.timeout_seconds}s timeout ({position.value} chunk)")
            raise UpstreamError(f"LLM request timed out after {self.timeout_seconds}s") from e
        return AIResponse(response.content)
