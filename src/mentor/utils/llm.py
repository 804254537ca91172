"""
Helpers for reading chat model output.
"""

import json
import re
from typing import Any

from langchain_core.messages import BaseMessage

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def content_text(message: BaseMessage) -> str:
    """
    Flatten message content to plain text.

    Anthropic models may return a list of content blocks; only text
    blocks are kept.
    """
    content = message.content
    if isinstance(content, str):
        return content

    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def parse_json_object(text: str) -> dict[str, Any]:
    """
    Parse a JSON object from model output, tolerating a code fence.

    Raises:
        ValueError: If no JSON object can be parsed
    """
    stripped = text.strip()
    match = _FENCE.match(stripped)
    if match:
        stripped = match.group(1)

    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        # Models sometimes wrap the object in prose
        start, end = stripped.find("{"), stripped.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("No JSON object in model output") from None
        try:
            data = json.loads(stripped[start : end + 1])
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in model output: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Model output is not a JSON object")
    return data
