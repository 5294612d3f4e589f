"""Concrete implementation of the AIModel interface using the OpenAI API.

Hides the specifics of the OpenAI client library and translates requests/
responses between the domain model and the OpenAI API format. Provider and
transport failures are re-raised as UpstreamError; retries are disabled.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI, OpenAIError

from promptlens.domain.exceptions import UpstreamError
from promptlens.domain.interfaces.ai_model import AIModel
from promptlens.domain.models.ai import ChatMessage, StructuredAIResponse
from promptlens.domain.models.common import TokenUsage

logger = logging.getLogger(__name__)


def _provider_message(error: APIStatusError) -> str:
    body = error.body
    if isinstance(body, dict):
        nested = body.get("error", body)
        if isinstance(nested, dict) and nested.get("message"):
            return str(nested["message"])
    return error.message or "Unknown error"


class GptClient(AIModel):
    """OpenAI implementation of the AIModel interface."""

    DEFAULT_MODEL = "gpt-4o"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[OpenAI] = None,
    ):
        """Initializes the OpenAI client.

        Args:
            api_key: OpenAI API key.
            model: The OpenAI model to use.
            timeout: Per-request timeout in seconds.
            client: Pre-built OpenAI client (tests).
        """
        if not api_key and client is None:
            raise ValueError("OpenAI API key not provided.")
        self.client = client or OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model or self.DEFAULT_MODEL
        logger.info(f"GptClient initialized for model: {self.model}")

    def _parse_openai_response(self, response: Any) -> StructuredAIResponse:
        """Parses the response object from OpenAI API call."""
        try:
            choice = response.choices[0]
            content = choice.message.content or ""
            token_usage = None
            if response.usage:
                token_usage = TokenUsage(
                    prompt_tokens=response.usage.prompt_tokens,
                    completion_tokens=response.usage.completion_tokens,
                    total_tokens=response.usage.total_tokens,
                )
            return StructuredAIResponse(
                content=content,
                token_usage=token_usage,
                model_name=response.model,
                finish_reason=choice.finish_reason,
            )
        except (AttributeError, IndexError, KeyError, TypeError) as e:
            logger.error(f"Failed to parse OpenAI response structure: {e}", exc_info=True)
            raise UpstreamError(f"Invalid response structure from OpenAI: {e}") from e

    async def send_messages(
        self,
        messages: List[ChatMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> StructuredAIResponse:
        """Sends messages to the configured OpenAI model asynchronously."""
        logger.debug(f"Sending {len(messages)} messages to OpenAI model: {self.model}")
        params: Dict[str, Any] = {"model": self.model, "messages": messages}
        if temperature is not None:
            params["temperature"] = temperature
        if max_tokens is not None:
            params["max_tokens"] = max_tokens
        if response_format is not None:
            params["response_format"] = response_format

        start_time = time.perf_counter()
        try:
            # Use asyncio.to_thread for the synchronous SDK call
            response = await asyncio.to_thread(self.client.chat.completions.create, **params)
        except APIStatusError as e:
            logger.error(f"OpenAI API Error (Status: {e.status_code}): {e}")
            raise UpstreamError(_provider_message(e), status=e.status_code) from e
        except APITimeoutError as e:
            logger.error(f"OpenAI request timed out: {e}")
            raise UpstreamError("Request to OpenAI timed out") from e
        except APIConnectionError as e:
            logger.error(f"Could not reach OpenAI: {e}")
            raise UpstreamError(f"Connection error: {e}") from e
        except OpenAIError as e:
            logger.error(f"Unexpected OpenAI error: {type(e).__name__} - {e}", exc_info=True)
            raise UpstreamError(str(e)) from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        structured_response = self._parse_openai_response(response)
        structured_response.latency_ms = latency_ms
        logger.debug(f"Received response from OpenAI in {latency_ms:.2f}ms. Usage: {structured_response.token_usage}")
        return structured_response
