"""Interface for AI Language Models (LLMs).

Defines the contract for sending messages to an AI provider
(currently OpenAI chat completions).
"""

import abc
from typing import Any, Dict, List, Optional

# Import relevant domain models
from ..models.ai import ChatMessage, StructuredAIResponse


class AIModel(abc.ABC):
    """Abstract Base Class for AI language model interactions."""

    @abc.abstractmethod
    async def send_messages(
        self,
        messages: List[ChatMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> StructuredAIResponse:
        """Sends a list of messages to the AI model asynchronously.

        Args:
            messages: A list of ChatMessage objects (system + user).
            temperature: Sampling temperature; provider default when None.
            max_tokens: Upper bound on completion tokens.
            response_format: Provider response format constraint,
                e.g. ``{"type": "json_object"}``.

        Returns:
            A StructuredAIResponse containing the AI's reply and metadata.

        Raises:
            UpstreamError: If the API call fails.
        """
        pass
