"""Response Normalizer: helpers shared by the endpoint adapters.

  - Coerces the many shapes of "assistant message" into plain text
  - Pulls a human-readable message out of provider error bodies
  - Reads token counters that some vendors send as strings
"""

from __future__ import annotations

import json
from typing import Any


def coerce_message_text(message: Any) -> str:
    """Extract the generated text from a chat-style message object.

    Handles plain string content, lists of content parts and, for reasoning
    models that leave ``content`` empty, the ``reasoning`` field.
    """
    if not message:
        return ""
    if isinstance(message, str):
        return message
    if not isinstance(message, dict):
        return ""

    content = message.get("content")
    if isinstance(content, str) and content.strip():
        return content

    if isinstance(content, list):
        parts = []
        for entry in content:
            if isinstance(entry, str):
                parts.append(entry)
            elif isinstance(entry, dict) and isinstance(entry.get("text"), str):
                parts.append(entry["text"])
        flattened = "\n".join(p for p in parts if p).strip()
        if flattened:
            return flattened

    reasoning = message.get("reasoning")
    if isinstance(reasoning, str) and reasoning.strip():
        return reasoning.strip()
    if isinstance(reasoning, dict):
        output_text = reasoning.get("output_text")
        if isinstance(output_text, str) and output_text.strip():
            return output_text.strip()
        steps = reasoning.get("steps")
        if isinstance(steps, list):
            joined = "\n".join(s["text"] for s in steps if isinstance(s, dict) and isinstance(s.get("text"), str))
            if joined.strip():
                return joined.strip()

    return content if isinstance(content, str) else ""


def extract_error_message(body: Any) -> str:
    """Best human-readable message from a provider error body."""
    data = body
    if isinstance(body, (bytes, str)):
        try:
            data = json.loads(body)
        except (ValueError, UnicodeDecodeError):
            text = body.decode("utf-8", "replace") if isinstance(body, bytes) else body
            return text.strip() or "Unknown error"

    if isinstance(data, dict):
        error = data.get("error")
        candidates = [
            error.get("message") if isinstance(error, dict) else None,
            error,
            data.get("message"),
            data.get("detail"),
        ]
        for candidate in candidates:
            if isinstance(candidate, str) and candidate.strip():
                return candidate.strip()

    if data is None:
        return "Unknown error"
    try:
        return json.dumps(data, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(data)


def to_int(value: Any) -> int:
    """Token counters arrive as ints, numeric strings or not at all."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
