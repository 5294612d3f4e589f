"""Service for counting tokens and mapping token spans back to text.

Uses `tiktoken` with the same encoding as the target model so that counts are
a faithful proxy for context-window consumption. The encoder is expensive to
build, so it lives in an ``EncoderPool`` shared by concurrent requests; each
request takes a ``TokenCounter`` handle through ``EncoderPool.acquire()`` and
the pool drops the encoder once the last holder has released it.

If the encoder cannot be constructed the handle falls back to an
APPROXIMATION of four characters per token. Approximate handles say so via
``TokenCounter.is_approximate`` and every fallback is logged.
"""

import logging
import math
import threading
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Sequence

import tiktoken

from promptlens.domain.models.common import TokenCount

logger = logging.getLogger(__name__)

DEFAULT_TOKENIZER_MODEL = "cl100k_base" # Used when the model name is unknown to tiktoken
APPROX_CHARS_PER_TOKEN = 4 # Fallback approximation


def load_encoding(model: Optional[str], encoding_name: Optional[str] = None) -> "tiktoken.Encoding":
    """Resolves the tiktoken encoding for a model (or an explicit encoding name)."""
    if encoding_name:
        return tiktoken.get_encoding(encoding_name)
    if model:
        try:
            return tiktoken.encoding_for_model(model)
        except KeyError:
            logger.warning(f"tiktoken has no encoding mapped for model '{model}'. Using {DEFAULT_TOKENIZER_MODEL}.")
    return tiktoken.get_encoding(DEFAULT_TOKENIZER_MODEL)


class TokenCounter:
    """Per-request handle for encoding, decoding and counting tokens.

    With an encoder, tokens are tiktoken ids. Without one, tokens are
    4-character slices of the text so that spans still decode back to text.
    """

    def __init__(self, encoder: Optional[Any], name: str):
        self._encoder = encoder
        self.name = name

    @property
    def is_approximate(self) -> bool:
        return self._encoder is None

    def encode(self, text: str) -> List[Any]:
        if self._encoder is not None:
            return self._encoder.encode(text)
        step = APPROX_CHARS_PER_TOKEN
        return [text[i:i + step] for i in range(0, len(text), step)]

    def decode(self, tokens: Sequence[Any]) -> str:
        if self._encoder is not None:
            return self._encoder.decode(list(tokens))
        return "".join(tokens)

    def count(self, text: str) -> TokenCount:
        """Counts tokens in `text`.

        Approximate handles return ``ceil(len(text) / 4)``.
        """
        if not text:
            return TokenCount(0)
        if self._encoder is None:
            approx_count = math.ceil(len(text) / APPROX_CHARS_PER_TOKEN)
            logger.debug(f"Estimated tokens for text (len {len(text)}): {approx_count} (using approximation)")
            return TokenCount(approx_count)
        count = len(self._encoder.encode(text))
        logger.debug(f"Counted tokens for text (len {len(text)}): {count} (using {self.name})")
        return TokenCount(count)


class EncoderPool:
    """Owns the shared encoder and hands out reference-counted handles."""

    def __init__(self, model: Optional[str] = None, encoding_name: Optional[str] = None):
        self.model = model
        self.encoding_name = encoding_name
        self._encoder: Optional[Any] = None
        self._encoder_name = DEFAULT_TOKENIZER_MODEL
        self._users = 0
        self._lock = threading.Lock()
        logger.info(f"EncoderPool initialized (model={model}, encoding={encoding_name or 'auto'})")

    @property
    def active_users(self) -> int:
        return self._users

    @property
    def is_loaded(self) -> bool:
        return self._encoder is not None

    def _load(self) -> None:
        try:
            encoding = load_encoding(self.model, self.encoding_name)
            self._encoder = encoding
            self._encoder_name = encoding.name
            logger.info(f"Loaded tiktoken encoding '{encoding.name}'")
        except Exception as e:
            # Availability over precision: counts become approximate
            logger.error(f"Failed to load tiktoken encoding for model '{self.model}': {e}. Falling back to approximation.")
            self._encoder = None
            self._encoder_name = "approximate"

    @contextmanager
    def acquire(self) -> Iterator[TokenCounter]:
        """Yields a TokenCounter; releases it on exit whether or not the body raised."""
        with self._lock:
            if self._users == 0 and self._encoder is None:
                self._load()
            self._users += 1
            handle = TokenCounter(self._encoder, self._encoder_name)
        try:
            yield handle
        finally:
            self._release()

    def _release(self) -> None:
        with self._lock:
            self._users = max(0, self._users - 1)
            if self._users == 0 and self._encoder is not None:
                logger.debug("Last encoder user released; dropping encoder.")
                self._encoder = None

    def shutdown(self) -> None:
        """Drops the encoder regardless of holders (host teardown)."""
        with self._lock:
            self._encoder = None
            self._users = 0
        logger.debug("EncoderPool shut down.")
