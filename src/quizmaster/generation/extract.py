"""Pull the question array out of a chat-completion response body."""

from __future__ import annotations

import json
import re
from typing import Any

from ..errors import ExtractionError

__all__ = ["extract_questions_payload", "strip_code_fences"]

_FENCE_OPEN = re.compile(r"^\s*```[A-Za-z0-9_-]*[ \t]*\r?\n?")
_FENCE_CLOSE = re.compile(r"\r?\n?[ \t]*```\s*$")


def extract_questions_payload(body: str | None) -> str:
    """Return the best-effort JSON array text embedded in ``body``.

    A body that already is a bare JSON array is returned re-serialized. A
    JSON object body is read as an envelope (``choices[0].message.content``)
    and a body that is not JSON at all is taken as the generated text
    itself. Generated text is cleaned of Markdown fences and surrounding
    prose; text without a usable ``[...]`` span is returned trimmed and left
    for the JSON decoder to reject.
    """

    if body is None or not body.strip():
        raise ExtractionError("API response is empty", field="body")

    try:
        root = json.loads(body)
    except json.JSONDecodeError:
        # Raw model text without an envelope around it.
        return _clean_content(body)

    if isinstance(root, list):
        return json.dumps(root, ensure_ascii=False)

    content = _envelope_content(root)
    return _clean_content(content)


def _envelope_content(root: Any) -> str:
    choices = root.get("choices") if isinstance(root, dict) else None
    if not isinstance(choices, list):
        raise ExtractionError(
            "Invalid API response structure: missing 'choices' array",
            field="choices",
        )
    if not choices:
        raise ExtractionError(
            "Invalid API response structure: empty choices array",
            field="choices",
        )
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    if not isinstance(message, dict):
        raise ExtractionError(
            "Invalid API response structure: missing 'message' in choice",
            field="message",
        )
    content = message.get("content")
    if not isinstance(content, str):
        raise ExtractionError(
            "Invalid API response structure: missing 'content' in message",
            field="content",
        )
    if not content.strip():
        raise ExtractionError("API response content is empty", field="content")
    return content


def strip_code_fences(text: str) -> str:
    """Drop a leading and trailing Markdown fence if present."""

    text = _FENCE_OPEN.sub("", text, count=1)
    return _FENCE_CLOSE.sub("", text, count=1)


def _clean_content(content: str) -> str:
    text = strip_code_fences(content)
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end == -1 or start >= end:
        return text.strip()
    return text[start : end + 1].strip()
