"""JSON extraction from model output."""

import json
from typing import Any

from maker.errors import SchemaParseFailure


def parse_json_response(response: str) -> Any:
    """Parse JSON from LLM response, handling potential markdown fencing.

    Args:
        response: Raw LLM response text

    Returns:
        Parsed JSON value

    Raises:
        SchemaParseFailure: If JSON parsing fails
    """
    text = (response or "").strip()

    # Handle markdown code fencing if present
    if text.startswith("```"):
        lines = text.split("\n")
        # Remove first line (```json or ```)
        lines = lines[1:]
        # Remove last line (```)
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaParseFailure(f"Failed to parse response as JSON: {e}") from e
