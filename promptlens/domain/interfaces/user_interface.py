"""Interface for presenting analysis results to the user.

Defines the contract for displaying results, errors, warnings and
informational messages, allowing different UI implementations.
"""

import abc
from typing import Any, Dict

from promptlens.domain.models.analysis import AggregateResult, NoOptimizationResult


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_result(self, result: AggregateResult, **kwargs: Any) -> None:
        """Displays a finished prompt analysis.

        Args:
            result: The aggregate analysis to render.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_no_optimization(self, result: NoOptimizationResult, **kwargs: Any) -> None:
        """Tells the user the prompt is already within the optimal range."""
        pass

    @abc.abstractmethod
    def display_json(self, payload: Dict[str, Any], **kwargs: Any) -> None:
        """Displays a raw JSON payload (machine-readable output)."""
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user.

        Args:
            error_message: The error message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass
