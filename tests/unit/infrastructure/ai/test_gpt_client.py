import pytest
from unittest.mock import MagicMock, patch

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI

from promptlens.domain.exceptions import UpstreamError
from promptlens.domain.models.ai import StructuredAIResponse
from promptlens.infrastructure.ai.openai.gpt_client import GptClient

OPENAI_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")

# Fixture to provide a mock OpenAI client instance
@pytest.fixture
def mock_openai_client():
    mock_client = MagicMock(spec=OpenAI)
    mock_usage = MagicMock()
    mock_usage.prompt_tokens = 10
    mock_usage.completion_tokens = 20
    mock_usage.total_tokens = 30

    mock_choice = MagicMock()
    mock_choice.message.content = '{"Evaluation": {}}'
    mock_choice.finish_reason = "stop"
    mock_completion = MagicMock()
    mock_completion.choices = [mock_choice]
    mock_completion.usage = mock_usage
    mock_completion.model = "gpt-4o"

    mock_client.chat = MagicMock()
    mock_client.chat.completions.create.return_value = mock_completion
    return mock_client

@patch('promptlens.infrastructure.ai.openai.gpt_client.OpenAI')
def test_gpt_client_init_disables_sdk_retries(mock_openai_constructor):
    client = GptClient(api_key="sk-test", timeout=30.0)
    mock_openai_constructor.assert_called_once_with(api_key="sk-test", timeout=30.0, max_retries=0)
    assert client.model == GptClient.DEFAULT_MODEL

@patch('promptlens.infrastructure.ai.openai.gpt_client.OpenAI')
def test_gpt_client_init_no_key(mock_openai_constructor):
    with pytest.raises(ValueError, match="OpenAI API key not provided"):
        GptClient(api_key=None)
    mock_openai_constructor.assert_not_called()

@pytest.mark.asyncio
async def test_send_messages_success(mock_openai_client):
    client = GptClient(api_key="sk-test", model="gpt-4o-mini", client=mock_openai_client)
    messages = [
        {'role': 'system', 'content': 'Return JSON.'},
        {'role': 'user', 'content': 'Analyze this'},
    ]

    response = await client.send_messages(
        messages, temperature=0.4, max_tokens=9820, response_format={"type": "json_object"}
    )

    assert isinstance(response, StructuredAIResponse)
    assert response.content == '{"Evaluation": {}}'
    assert response.token_usage['total_tokens'] == 30
    assert response.finish_reason == "stop"
    assert response.latency_ms is not None

    call_args = mock_openai_client.chat.completions.create.call_args
    assert call_args.kwargs == {
        "model": "gpt-4o-mini",
        "messages": messages,
        "temperature": 0.4,
        "max_tokens": 9820,
        "response_format": {"type": "json_object"},
    }

@pytest.mark.asyncio
async def test_send_messages_omits_unset_parameters(mock_openai_client):
    client = GptClient(api_key="sk-test", client=mock_openai_client)
    await client.send_messages([{'role': 'user', 'content': 'hi'}])
    kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
    assert set(kwargs) == {"model", "messages"}

@pytest.mark.asyncio
async def test_provider_error_message_and_status_are_surfaced(mock_openai_client):
    error = APIStatusError(
        "Error code: 429",
        response=httpx.Response(429, request=OPENAI_REQUEST),
        body={"error": {"message": "You exceeded your current quota"}},
    )
    mock_openai_client.chat.completions.create.side_effect = error
    client = GptClient(api_key="sk-test", client=mock_openai_client)

    with pytest.raises(UpstreamError) as excinfo:
        await client.send_messages([{'role': 'user', 'content': 'hi'}])

    assert excinfo.value.status == 429
    assert str(excinfo.value) == "API Error: 429 - You exceeded your current quota"

@pytest.mark.parametrize("error", [
    APITimeoutError(request=OPENAI_REQUEST),
    APIConnectionError(request=OPENAI_REQUEST),
])
@pytest.mark.asyncio
async def test_transport_errors_become_upstream_errors(mock_openai_client, error):
    mock_openai_client.chat.completions.create.side_effect = error
    client = GptClient(api_key="sk-test", client=mock_openai_client)

    with pytest.raises(UpstreamError) as excinfo:
        await client.send_messages([{'role': 'user', 'content': 'hi'}])
    assert excinfo.value.status is None

@pytest.mark.asyncio
async def test_malformed_completion_raises_upstream_error(mock_openai_client):
    mock_openai_client.chat.completions.create.return_value = MagicMock(choices=[])
    client = GptClient(api_key="sk-test", client=mock_openai_client)

    with pytest.raises(UpstreamError, match="Invalid response structure"):
        await client.send_messages([{'role': 'user', 'content': 'hi'}])
