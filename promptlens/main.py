"""Main entry point for the PromptLens application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from typing_extensions import Annotated

# --- Core Layer ---
from promptlens.core.command_handler import CommandHandler
from promptlens.core.message_handler import MessageHandler
from promptlens.core.services.analysis_service import PromptAnalysisService
from promptlens.core.services.response_validator import ResponseValidator
from promptlens.core.services.result_aggregator import ResultAggregator

# --- Domain Layer ---
from promptlens.domain.interfaces.ai_model import AIModel
from promptlens.domain.interfaces.user_interface import UserInterface

# --- Infrastructure Layer ---
# Config
from promptlens.infrastructure.config.settings import AnalysisSettings, get_config, load_analysis_settings
# AI Clients
from promptlens.infrastructure.ai.analysis_client import AnalysisClient
from promptlens.infrastructure.ai.openai.gpt_client import GptClient
# UI
from promptlens.infrastructure.cli.display import ConsoleDisplay
# Monitoring
from promptlens.infrastructure.monitoring.logger_setup import resolve_log_level, setup_logging
# Optimization
from promptlens.infrastructure.optimization.chunk_planner import ChunkPlanner
from promptlens.infrastructure.optimization.prompt_composer import PromptComposer
from promptlens.infrastructure.optimization.token_estimator import EncoderPool
# Resilience
from promptlens.infrastructure.resilience.rate_limiter import CallerRateLimiter

logger = logging.getLogger(__name__)

# --- Dependency Injection Container (Manual) ---

def create_dependencies(
    settings: Optional[AnalysisSettings] = None,
    ai_model: Optional[AIModel] = None,
    ui: Optional[UserInterface] = None,
) -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root. `ai_model` and `ui` may be supplied to
    replace the OpenAI client and the rich console (tests, embedding).

    Raises:
        ValueError: If no AI model is supplied and no OpenAI API key is configured.
    """
    logger.info("Initializing application dependencies...")
    dependencies: Dict[str, Any] = {}

    # 1. Configuration
    settings = settings or load_analysis_settings()
    dependencies['settings'] = settings

    # 2. AI model client
    if ai_model is None:
        if not settings.openai_api_key:
            logger.error("OpenAI API key not found; cannot create the analysis client.")
            raise ValueError("OpenAI API key not configured (set OPENAI_API_KEY).")
        ai_model = GptClient(
            api_key=settings.openai_api_key,
            model=settings.model,
            timeout=settings.request_timeout_seconds,
        )
    dependencies['ai_model'] = ai_model

    # 3. Infrastructure adapters & services
    dependencies['ui'] = ui or ConsoleDisplay()
    dependencies['encoder_pool'] = EncoderPool(model=settings.model, encoding_name=settings.tokenizer_encoding)
    dependencies['rate_limiter'] = CallerRateLimiter(
        time_window=settings.rate_limit_window_seconds,
        max_callers=settings.rate_limit_max_callers,
    )
    dependencies['planner'] = ChunkPlanner(
        optimal_token_len=settings.optimal_token_len,
        max_optimal_token_len=settings.max_optimal_token_len,
        max_total_tokens=settings.max_total_tokens,
    )
    dependencies['composer'] = PromptComposer(
        optimal_token_len=settings.optimal_token_len,
        max_optimal_token_len=settings.max_optimal_token_len,
    )
    dependencies['analysis_client'] = AnalysisClient(
        ai_model=ai_model,
        composer=dependencies['composer'],
        temperature=settings.temperature,
        max_tokens=settings.max_optimal_token_len,
        timeout_seconds=settings.request_timeout_seconds,
    )

    # 4. Core services
    dependencies['analysis_service'] = PromptAnalysisService(
        encoder_pool=dependencies['encoder_pool'],
        planner=dependencies['planner'],
        composer=dependencies['composer'],
        analysis_client=dependencies['analysis_client'],
        validator=ResponseValidator(),
        aggregator=ResultAggregator(weight_by_token_share=settings.weight_by_token_share),
        rate_limiter=dependencies['rate_limiter'],
    )
    dependencies['message_handler'] = MessageHandler(
        analysis_service=dependencies['analysis_service'],
        api_key=settings.openai_api_key,
    )
    dependencies['command_handler'] = CommandHandler(
        message_handler=dependencies['message_handler'],
        ui=dependencies['ui'],
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies

_dependencies: Optional[Dict[str, Any]] = None

def get_dependencies() -> Dict[str, Any]:
    """Returns the process-wide dependency dict, creating it on first use."""
    global _dependencies
    if _dependencies is None:
        _dependencies = create_dependencies()
    return _dependencies

# --- Typer App Definition ---
app = typer.Typer(
    name="promptlens",
    help="PromptLens: evaluate and reword prompts with token-budgeted chunking.",
    add_completion=False,
)

@app.callback()
def main_callback(
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", "-l", help="Logging level (DEBUG, INFO, WARNING, ...).")
    ] = None,
):
    """Configures logging before any command runs."""
    level = resolve_log_level(log_level or get_config('logging.level', 'WARNING'))
    setup_logging(
        log_level=level,
        log_format=get_config('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
        log_file=get_config('logging.file'),
        stream=sys.stderr,
    )

@app.command()
def analyze(
    prompt: Annotated[Optional[str], typer.Argument(help="The prompt to analyze.")] = None,
    file: Annotated[
        Optional[Path],
        typer.Option("--file", "-f", exists=True, file_okay=True, dir_okay=False,
                     readable=True, resolve_path=True, help="Read the prompt from a file.")
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the raw JSON payload.")] = False,
):
    """Evaluate a prompt and print an improved rewording."""
    if (prompt is None) == (file is None):
        raise typer.BadParameter("Provide either a PROMPT argument or --file, not both.")
    text = file.read_text(encoding="utf-8") if file else prompt

    try:
        dependencies = get_dependencies()
    except ValueError as e:
        ConsoleDisplay().display_error(str(e))
        raise typer.Exit(code=1)

    handler: CommandHandler = dependencies['command_handler']
    try:
        exit_code = asyncio.run(handler.handle_analyze(text, as_json=as_json))
    finally:
        dependencies['encoder_pool'].shutdown()
    raise typer.Exit(code=exit_code)

@app.command()
def serve(
    host: Annotated[str, typer.Option(help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Port to listen on.")] = 8000,
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    logger.info(f"Starting PromptLens HTTP API on {host}:{port}")
    uvicorn.run(
        "promptlens.infrastructure.web.app:create_default_app",
        factory=True,
        host=host,
        port=port,
        log_level=logging.getLevelName(logging.getLogger().level).lower(),
    )

# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()

if __name__ == "__main__":
    cli_entry_point()
