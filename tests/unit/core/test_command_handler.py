import pytest
from unittest.mock import AsyncMock, MagicMock

from promptlens.core.command_handler import CLI_CALLER, CommandHandler
from promptlens.domain.models.analysis import AggregateResult, AnalysisErrorEnvelope, NoOptimizationResult

# --- Fixtures ---

@pytest.fixture
def mock_message_handler():
    return MagicMock(run=AsyncMock())

@pytest.fixture
def mock_ui():
    return MagicMock()

@pytest.fixture
def command_handler(mock_message_handler, mock_ui):
    return CommandHandler(message_handler=mock_message_handler, ui=mock_ui)

def aggregate() -> AggregateResult:
    return AggregateResult(accuracy=75.0, suggestions=("A",), reword="R", was_chunked=False, token_count=3000)

# --- Tests ---

@pytest.mark.asyncio
async def test_handle_analyze_displays_result(command_handler, mock_message_handler, mock_ui):
    result = aggregate()
    mock_message_handler.run.return_value = result

    exit_code = await command_handler.handle_analyze("Write a haiku")

    assert exit_code == 0
    mock_message_handler.run.assert_awaited_once_with("Write a haiku", sender_id=CLI_CALLER)
    mock_ui.display_result.assert_called_once_with(result)
    mock_ui.display_error.assert_not_called()

@pytest.mark.asyncio
async def test_handle_analyze_no_optimization(command_handler, mock_message_handler, mock_ui):
    outcome = NoOptimizationResult(token_count=4820)
    mock_message_handler.run.return_value = outcome

    assert await command_handler.handle_analyze("prompt") == 0
    mock_ui.display_no_optimization.assert_called_once_with(outcome)

@pytest.mark.asyncio
async def test_handle_analyze_error_sets_exit_code(command_handler, mock_message_handler, mock_ui):
    mock_message_handler.run.return_value = AnalysisErrorEnvelope(error="Invalid API key format")

    assert await command_handler.handle_analyze("prompt") == 1
    mock_ui.display_error.assert_called_once_with("Invalid API key format")

@pytest.mark.asyncio
async def test_handle_analyze_json_output(command_handler, mock_message_handler, mock_ui):
    mock_message_handler.run.return_value = aggregate()

    assert await command_handler.handle_analyze("prompt", as_json=True) == 0
    mock_ui.display_json.assert_called_once_with(aggregate().to_payload())
    mock_ui.display_result.assert_not_called()

@pytest.mark.asyncio
async def test_handle_analyze_json_error_still_fails(command_handler, mock_message_handler, mock_ui):
    envelope = AnalysisErrorEnvelope(error="boom", token_count=12, duration_ms=3)
    mock_message_handler.run.return_value = envelope

    assert await command_handler.handle_analyze("prompt", as_json=True) == 1
    mock_ui.display_json.assert_called_once_with(envelope.to_payload())
