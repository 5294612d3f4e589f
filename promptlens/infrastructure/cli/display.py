import logging
from typing import Any, Dict

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from promptlens.domain.interfaces.user_interface import UserInterface
from promptlens.domain.models.analysis import AggregateResult, NoOptimizationResult

logger = logging.getLogger(__name__)

def accuracy_style(accuracy: float) -> str:
    if accuracy >= 75:
        return "bold green"
    if accuracy >= 50:
        return "bold yellow"
    return "bold red"

class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Console = None):
        """Initializes the rich Console."""
        self._console = console or Console()

    @property
    def console(self):
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_result(self, result: AggregateResult, **kwargs: Any) -> None:
        """Renders score, suggestions and the reworded prompt.

        Args:
            result: The aggregate analysis to render.
        """
        summary = Table(box=SIMPLE, show_header=False, padding=(0, 1))
        summary.add_column("Field", style="dim")
        summary.add_column("Value")
        summary.add_row("Accuracy", Text(f"{result.accuracy:g}/100", style=accuracy_style(result.accuracy)))
        summary.add_row("Tokens", str(result.token_count))
        summary.add_row("Chunks", str(result.chunk_count) if result.was_chunked else "1 (single pass)")
        if result.degraded_chunks:
            summary.add_row("Degraded", Text(str(result.degraded_chunks), style="bold yellow"))
        self.console.print(Panel(summary, title="[bold white]Prompt Analysis[/bold white]", border_style="blue", box=ROUNDED))

        if result.suggestions:
            suggestions = Table(box=SIMPLE, show_header=True, header_style="bold cyan")
            suggestions.add_column("#", justify="right", style="dim")
            suggestions.add_column("Suggestion")
            for number, suggestion in enumerate(result.suggestions, start=1):
                suggestions.add_row(str(number), suggestion)
            self.console.print(suggestions)
        else:
            self.display_info("The model returned no suggestions.")

        if result.reword:
            self.console.print(Panel(
                Markdown(result.reword),
                title="[bold white]Reworded Prompt[/bold white]",
                title_align="left",
                border_style="green",
                box=ROUNDED,
                padding=(0, 1),
            ))
        if result.degraded_chunks:
            self.display_warning(
                f"{result.degraded_chunks} chunk(s) returned malformed output; their scores and rewording may be incomplete."
            )

    def display_no_optimization(self, result: NoOptimizationResult, **kwargs: Any) -> None:
        self.display_info(f"{result.message} ({result.token_count} tokens).")

    def display_json(self, payload: Dict[str, Any], **kwargs: Any) -> None:
        self.console.print_json(data=payload)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
        """
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)
