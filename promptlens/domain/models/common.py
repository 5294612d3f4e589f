"""Defines common Value Objects used across different domain contexts.

These objects represent simple values or concepts like prompts, token counts,
caller identities, etc., ensuring consistency and type safety.
"""

from typing import NewType, TypedDict

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
PromptText = NewType("PromptText", str)        # User's text prompt
AIResponse = NewType("AIResponse", str)        # Raw textual response from AI model
Instructions = NewType("Instructions", str)    # Composed instruction text sent with a chunk
ChunkText = NewType("ChunkText", str)          # Decoded text of one token span

# === Admission Control ===
CallerId = NewType("CallerId", str)            # Origin / sender identity used for rate limiting

# === Token Management ===
TokenCount = NewType("TokenCount", int)        # Number of tokens

# --- Structured Data ---
class TokenUsage(TypedDict):
    """Represents token usage information from an AI call."""
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
