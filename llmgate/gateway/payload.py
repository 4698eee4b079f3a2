"""Outbound payload hygiene.

Callers hand the gateway loosely shaped payloads. Before an adapter turns one
into a wire body we drop anything the provider should never see: internal
control flags, tool-calling fields, tool metadata on messages, empty
``response_format`` objects.
"""

from __future__ import annotations

import re
from typing import Any

INTERNAL_KEY_PREFIX = "__lucidcoder"

_TOOL_FIELDS = ("tools", "tool_choice", "functions", "function_call", "parallel_tool_calls")

_UNSUPPORTED_PARAM_RE = re.compile(r"unsupported parameter", re.IGNORECASE)

# parameter name as it may appear in a provider error -> payload keys to drop
_STRIPPABLE_PARAMS: dict[str, tuple[str, ...]] = {
    "temperature": ("temperature",),
    "top_p": ("top_p",),
    "topp": ("top_p",),
    "max_output_tokens": ("max_output_tokens",),
    "max_tokens": ("max_tokens", "max_output_tokens"),
}

# each correction removes at least one field
MAX_PARAM_CORRECTIONS = len(_STRIPPABLE_PARAMS)


def sanitize_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``payload`` that is safe to send to a provider."""
    sanitized = {k: v for k, v in payload.items() if not k.startswith(INTERNAL_KEY_PREFIX)}

    for key in _TOOL_FIELDS:
        sanitized.pop(key, None)

    messages = sanitized.get("messages")
    if isinstance(messages, list):
        cleaned = []
        for msg in messages:
            if not isinstance(msg, dict):
                continue
            entry = {"role": msg.get("role"), "content": msg.get("content")}
            name = msg.get("name")
            if isinstance(name, str) and name.strip():
                entry["name"] = name
            cleaned.append(entry)
        sanitized["messages"] = cleaned

    response_format = sanitized.get("response_format")
    if isinstance(response_format, dict) and not response_format:
        del sanitized["response_format"]

    return sanitized


def strip_unsupported_params(payload: Any, error_message: str | None) -> Any:
    """Drop the parameters a provider error reports as unsupported.

    Returns ``payload`` itself (same object) when there is nothing to strip,
    so callers can detect "no change" with an identity check.
    """
    if not isinstance(payload, dict) or not error_message:
        return payload
    if not _UNSUPPORTED_PARAM_RE.search(error_message):
        return payload

    text = error_message.lower()
    to_drop: set[str] = set()
    for name, keys in _STRIPPABLE_PARAMS.items():
        # whole-word match: "max_tokens" must not hit inside "max_output_tokens"
        if re.search(rf"(?<![a-z_]){re.escape(name)}(?![a-z_])", text):
            to_drop.update(keys)

    to_drop &= payload.keys()
    if not to_drop:
        return payload
    return {k: v for k, v in payload.items() if k not in to_drop}
