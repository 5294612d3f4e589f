"""Builds the instruction text sent to the LLM for one chunk.

Every variant asks for the same JSON contract; only the positional framing
and the target word count change with the chunk's position.
Bounded Context: Prompt Optimization
"""

import logging
from typing import List

from promptlens.domain.exceptions import InputError
from promptlens.domain.models.ai import ChatMessage
from promptlens.domain.models.analysis import ChunkPosition
from promptlens.domain.models.common import Instructions

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a prompt analysis engine. Return ONLY valid JSON."

# Tokens -> words for the rewording target
WORDS_PER_TOKEN_FACTOR = 4 / 3

EVALUATION_RUBRIC = """**1. Evaluation (JSON):**
- Accuracy contribution (0-100%) based on this {subject}'s Clarity (40%), Specificity (30%), Relevance (30%)
- 3 NEW suggestions for improvement (don't repeat previous ones)"""

RESPONSE_CONTRACT = """Return EXACTLY:
{
    "Evaluation": {
        "Accuracy": X,
        "Suggestions": ["...", "...", "..."]
    },
    "Optimization": {
        "Reword": "..."
    }
}"""

POSITION_GUIDANCE = {
    ChunkPosition.FIRST: (
        "assume this is the first chunk in the batch and other chunks will follow this one. "
        "Do not conclude."
    ),
    ChunkPosition.MIDDLE: (
        "assume this chunk is building off the previous chunk and will have content following afterwards."
    ),
    ChunkPosition.LAST: (
        "assume this is the last chunk needed. So end it strong."
    ),
}


def position_from_flags(
    is_chunked: bool, is_begin: bool, is_end: bool, chunk_index: int = 0, total_chunks: int = 1
) -> ChunkPosition:
    """Converts the legacy ``isChunked/isBegin/isEnd`` flags into a ChunkPosition.

    Raises:
        InputError: For combinations that cannot describe a real chunk.
    """
    if not is_chunked:
        if is_begin or is_end or total_chunks != 1 or chunk_index != 0:
            raise InputError("Unchunked content cannot carry chunk position flags")
        return ChunkPosition.SINGLE
    if total_chunks < 1 or not 0 <= chunk_index < total_chunks:
        raise InputError(f"Chunk index {chunk_index} is out of range for {total_chunks} chunks")
    if is_begin and is_end and total_chunks > 1:
        raise InputError("A chunk cannot be both first and last when there is more than one chunk")
    if is_begin != (chunk_index == 0):
        raise InputError(f"isBegin does not match chunk index {chunk_index}")
    if is_end and chunk_index != total_chunks - 1:
        raise InputError(f"isEnd does not match chunk index {chunk_index} of {total_chunks}")
    if is_begin:
        return ChunkPosition.FIRST
    if is_end:
        return ChunkPosition.LAST
    if chunk_index == total_chunks - 1:
        raise InputError("The final chunk must set isEnd")
    return ChunkPosition.MIDDLE


class PromptComposer:
    """Composes position-aware analysis instructions."""

    def __init__(self, optimal_token_len: int, max_optimal_token_len: int):
        self.optimal_token_len = optimal_token_len
        self.max_optimal_token_len = max_optimal_token_len

    def target_word_count(self, position: ChunkPosition, total_chunks: int = 1) -> int:
        if position is ChunkPosition.SINGLE:
            return round(self.optimal_token_len * WORDS_PER_TOKEN_FACTOR)
        return round((self.max_optimal_token_len / max(total_chunks, 1)) * WORDS_PER_TOKEN_FACTOR)

    def compose(self, position: ChunkPosition, chunk_index: int = 0, total_chunks: int = 1) -> Instructions:
        words = self.target_word_count(position, total_chunks)
        if position is ChunkPosition.SINGLE:
            text = "\n\n".join([
                "Analyze and optimize this prompt by doing the following:",
                EVALUATION_RUBRIC.format(subject="prompt"),
                f"**2. Optimization (JSON):**\n- A reworded version of this in ({words}) words",
                RESPONSE_CONTRACT,
            ])
        else:
            guidance = POSITION_GUIDANCE[position]
            if total_chunks == 1:
                # A lone chunk has nothing following it
                guidance = POSITION_GUIDANCE[ChunkPosition.LAST]
            text = "\n\n".join([
                f"Analyze and optimize this prompt chunk ({chunk_index + 1}/{total_chunks}) in ({words}) words "
                "by adding to (NOT replacing) the cumulative analysis:",
                EVALUATION_RUBRIC.format(subject="chunk"),
                f"**2. Optimization (JSON):**\n- A reworded version of JUST THIS CHUNK, {guidance}",
                RESPONSE_CONTRACT,
            ])
        logger.debug(f"Composed {position.value} instructions ({chunk_index + 1}/{total_chunks}, {words} words)")
        return Instructions(text)

    def build_messages(self, instructions: str, content: str, position: ChunkPosition) -> List[ChatMessage]:
        label = "Chunk Content" if position.is_chunked else "Prompt"
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": f"{instructions}\n\n{label}: {content}"},
        ]
