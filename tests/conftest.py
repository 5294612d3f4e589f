import json
from typing import Any, Dict, List, Optional

import pytest
from unittest.mock import MagicMock
from typer.testing import CliRunner

from promptlens.domain.exceptions import UpstreamError
from promptlens.domain.interfaces.ai_model import AIModel
from promptlens.domain.models.ai import ChatMessage, StructuredAIResponse
from promptlens.infrastructure.config.settings import AnalysisSettings, clear_test_config
from promptlens.infrastructure.optimization import token_estimator
from promptlens.main import create_dependencies

VALID_API_KEY = "sk-test-" + "x" * 40


def canned_response(accuracy: Any = 80, suggestions: Optional[List[str]] = None, reword: Any = "Reworded prompt.") -> str:
    """Builds the JSON body the LLM is expected to return."""
    return json.dumps({
        "Evaluation": {
            "Accuracy": accuracy,
            "Suggestions": suggestions if suggestions is not None else ["Be specific", "Add context", "Name the audience"],
        },
        "Optimization": {"Reword": reword},
    })


class FakeAIModel(AIModel):
    """Records every call and replays queued responses (or raises queued errors)."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    async def send_messages(
        self,
        messages: List[ChatMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> StructuredAIResponse:
        self.calls.append({
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "response_format": response_format,
        })
        response = self.responses.pop(0) if self.responses else canned_response()
        if isinstance(response, Exception):
            raise response
        return StructuredAIResponse(content=response)

    @property
    def user_contents(self) -> List[str]:
        return [call["messages"][-1]["content"] for call in self.calls]


@pytest.fixture
def fake_ai_model():
    return FakeAIModel()


@pytest.fixture
def upstream_failure():
    return UpstreamError("Service unavailable", status=503)


@pytest.fixture
def settings():
    """Default thresholds with a well-formed API key and no rate limiting."""
    return AnalysisSettings(
        openai_api_key=VALID_API_KEY,
        rate_limit_window_seconds=0.0,
        allowed_origins=("https://app.example.com",),
    )


@pytest.fixture
def approximate_tokens(monkeypatch):
    """Forces EncoderPool into 4-characters-per-token mode (no tiktoken download)."""
    def _unavailable(model, encoding_name=None):
        raise RuntimeError("encoding unavailable in tests")
    monkeypatch.setattr(token_estimator, "load_encoding", _unavailable)


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_test_config():
    yield
    clear_test_config()


def prompt_of_tokens(token_count: int) -> str:
    """Text that counts as exactly `token_count` tokens in approximate mode."""
    return "abcd" * token_count


@pytest.fixture
def dependencies(settings, fake_ai_model, approximate_tokens):
    """Fully wired application around the fake model and a mocked UI."""
    return create_dependencies(settings=settings, ai_model=fake_ai_model, ui=MagicMock())
