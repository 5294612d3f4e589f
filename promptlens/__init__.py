"""PromptLens: token-budgeted prompt evaluation and rewording."""

__version__ = "1.0.0"
