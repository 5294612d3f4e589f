import asyncio

import pytest

from conftest import FakeAIModel, canned_response
from promptlens.domain.exceptions import UpstreamError
from promptlens.domain.models.analysis import ChunkPosition
from promptlens.infrastructure.ai.analysis_client import JSON_RESPONSE_FORMAT, AnalysisClient
from promptlens.infrastructure.optimization.prompt_composer import SYSTEM_PROMPT, PromptComposer


@pytest.fixture
def composer():
    return PromptComposer(optimal_token_len=4820, max_optimal_token_len=9820)


class SlowAIModel(FakeAIModel):
    async def send_messages(self, messages, **kwargs):
        await asyncio.sleep(1)
        return await super().send_messages(messages, **kwargs)


@pytest.mark.asyncio
async def test_analyze_sends_fixed_generation_parameters(composer):
    model = FakeAIModel([canned_response(accuracy=91)])
    client = AnalysisClient(model, composer, temperature=0.4, max_tokens=9820, timeout_seconds=5)

    raw = await client.analyze("Instructions", "Write a haiku", ChunkPosition.SINGLE)

    assert '"Accuracy": 91' in raw
    call = model.calls[0]
    assert call["temperature"] == 0.4
    assert call["max_tokens"] == 9820
    assert call["response_format"] == JSON_RESPONSE_FORMAT
    assert call["messages"][0]["content"] == SYSTEM_PROMPT
    assert model.user_contents == ["Instructions\n\nPrompt: Write a haiku"]


@pytest.mark.asyncio
async def test_analyze_propagates_upstream_errors(composer, upstream_failure):
    client = AnalysisClient(FakeAIModel([upstream_failure]), composer, temperature=0.4)
    with pytest.raises(UpstreamError, match="503"):
        await client.analyze("Instructions", "text", ChunkPosition.FIRST)


@pytest.mark.asyncio
async def test_analyze_times_out(composer):
    client = AnalysisClient(SlowAIModel(), composer, temperature=0.4, timeout_seconds=0.01)
    with pytest.raises(UpstreamError, match="timed out"):
        await client.analyze("Instructions", "text", ChunkPosition.SINGLE)
