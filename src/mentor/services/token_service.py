"""
Token accounting for conversation messages.

Counts are advisory: they drive the summarization threshold, so any
tokenizer problem degrades to a character-based estimate instead of
failing the request.
"""

import logging
import math
from functools import lru_cache

import tiktoken

logger = logging.getLogger(__name__)

# Rough characters-per-token ratio for English text
CHARS_PER_TOKEN = 4


@lru_cache(maxsize=32)
def _encoding_for(model: str) -> tiktoken.Encoding:
    return tiktoken.encoding_for_model(model)


def estimate_tokens(text: str) -> int:
    """Character-based estimate: ``ceil(len(text) / 4)``."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def count_tokens(model: str, text: str) -> int:
    """
    Count tokens in text using the tokenizer of the given model.

    Falls back to ``estimate_tokens`` when the model is unknown to
    tiktoken or encoding fails. Never raises.

    Args:
        model: Model name whose tokenizer to use (e.g. "gpt-4o-mini")
        text: Text to count

    Returns:
        Non-negative token count
    """
    if not text:
        return 0

    try:
        encoding = _encoding_for(model)
        return len(encoding.encode(text))
    except Exception as e:
        logger.warning(f"Token count fallback for model {model!r}: {e}")
        return estimate_tokens(text)
