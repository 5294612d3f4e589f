"""Message-based entry point (extension-style ``analyzePrompt`` messages).

Every outcome, including failures, is returned as a plain dict so the
transport can forward it unchanged.
"""

import logging
import time
from typing import Any, Dict, Mapping, Optional, Union

from promptlens.core.services.analysis_service import AnalysisOutcome, PromptAnalysisService, UNKNOWN_CALLER
from promptlens.domain.exceptions import InputError, PromptLensError
from promptlens.domain.models.analysis import AnalysisErrorEnvelope

logger = logging.getLogger(__name__)

ANALYZE_ACTION = "analyzePrompt"
API_KEY_PREFIX = "sk-"
API_KEY_MIN_LENGTH = 32


def validate_api_key(api_key: Optional[str]) -> None:
    """Loose format check only: prefix and minimum length."""
    if not api_key or not api_key.startswith(API_KEY_PREFIX) or len(api_key) < API_KEY_MIN_LENGTH:
        raise InputError("Invalid API key format")


def build_error_envelope(error: Exception, token_count: Optional[int], start_time: float) -> AnalysisErrorEnvelope:
    message = str(error) if isinstance(error, PromptLensError) else f"{type(error).__name__}: {error}"
    return AnalysisErrorEnvelope(
        error=message,
        token_count=token_count,
        duration_ms=int((time.perf_counter() - start_time) * 1000),
    )


def error_envelope(error: Exception, token_count: Optional[int], start_time: float) -> Dict[str, Any]:
    return build_error_envelope(error, token_count, start_time).to_payload()


class MessageHandler:
    """Dispatches ``{action, prompt}`` messages to the analysis service."""

    def __init__(self, analysis_service: PromptAnalysisService, api_key: Optional[str]):
        self.analysis_service = analysis_service
        self.api_key = api_key

    async def run(self, prompt: Any, sender_id: Optional[str] = None) -> Union[AnalysisOutcome, AnalysisErrorEnvelope]:
        """Analyzes a prompt, converting every failure into an error envelope."""
        start_time = time.perf_counter()
        try:
            validate_api_key(self.api_key)
            if not isinstance(prompt, str):
                raise InputError("Prompt cannot be empty")
            return await self.analysis_service.analyze_prompt(prompt, caller_id=sender_id or UNKNOWN_CALLER)
        except PromptLensError as e:
            logger.error(f"Analysis Error: {e}")
            return build_error_envelope(e, e.token_count, start_time)
        except Exception as e:
            logger.error(f"Unexpected analysis failure: {e}", exc_info=True)
            return build_error_envelope(e, None, start_time)

    async def handle(self, message: Mapping[str, Any], sender_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Handles one message; returns None for actions this handler does not own."""
        if message.get("action") != ANALYZE_ACTION:
            logger.debug(f"Ignoring message with action {message.get('action')!r}")
            return None
        outcome = await self.run(message.get("prompt"), sender_id)
        return outcome.to_payload()
