"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), delegates the work to
the MessageHandler and renders the outcome through the UserInterface.
"""

import logging

from promptlens.core.message_handler import MessageHandler
from promptlens.domain.interfaces.user_interface import UserInterface
from promptlens.domain.models.analysis import AggregateResult, AnalysisErrorEnvelope, NoOptimizationResult

logger = logging.getLogger(__name__)

CLI_CALLER = "cli"

class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(self, message_handler: MessageHandler, ui: UserInterface):
        self.message_handler = message_handler
        self.ui = ui

    async def handle_analyze(self, prompt: str, as_json: bool = False) -> int:
        """Handles the 'analyze' command. Returns the process exit code."""
        logger.info(f"Handling 'analyze' command ({len(prompt)} characters)")
        outcome = await self.message_handler.run(prompt, sender_id=CLI_CALLER)

        if as_json:
            self.ui.display_json(outcome.to_payload())
        elif isinstance(outcome, AnalysisErrorEnvelope):
            self.ui.display_error(outcome.error)
        elif isinstance(outcome, NoOptimizationResult):
            self.ui.display_no_optimization(outcome)
        elif isinstance(outcome, AggregateResult):
            self.ui.display_result(outcome)

        return 1 if isinstance(outcome, AnalysisErrorEnvelope) else 0
