"""Outbound request construction and the chat-completions transport."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Protocol

import httpx
import openai

from ..core.ai import load_client
from ..core.config import ProviderConfig
from ..errors import TransportError

__all__ = [
    "Transport",
    "OpenAITransport",
    "build_prompt",
    "build_request_payload",
]


class Transport(Protocol):
    """Anything that can post a request payload and return the raw body."""

    def send(self, payload: Mapping[str, Any]) -> str:
        """Return the response body text or raise TransportError."""

    def close(self) -> None:
        """Release pooled connections."""


def build_prompt(topic: str, count: int) -> str:
    return (
        f"Generate exactly {count} multiple-choice quiz questions about "
        f"'{topic}'. Return ONLY a valid JSON array. Each question: "
        '{"question": "text", "options": ["A", "B", "C", "D"], '
        '"correct_answer": "correct option", '
        '"explanation": "brief explanation"}. '
        "Make questions factual with exactly 4 options each."
    )


def build_request_payload(
    topic: str, count: int, provider: ProviderConfig
) -> Dict[str, Any]:
    """Return the chat-completions body for ``count`` questions on ``topic``.

    The payload is a plain mapping; quotes, backslashes and control
    characters in the prompt are escaped when it is serialized to JSON.
    """
    return {
        "messages": [{"role": "user", "content": build_prompt(topic, count)}],
        "model": provider.model,
        "temperature": provider.temperature,
        "max_tokens": provider.max_tokens,
        "top_p": provider.top_p,
    }


class OpenAITransport:
    """Post payloads through an OpenAI-compatible client.

    The client owns an httpx connection pool that is reused across calls
    until :meth:`close`. Retries are disabled on the client; one ``send`` is
    one HTTP request.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def from_config(
        cls, api_key: str, provider: ProviderConfig
    ) -> "OpenAITransport":
        return cls(load_client(api_key, provider))

    def send(self, payload: Mapping[str, Any]) -> str:
        completions = self._client.chat.completions
        try:
            raw = completions.with_raw_response.create(**dict(payload))
        except openai.APITimeoutError as exc:
            raise TransportError(
                "Request to the generation service timed out"
            ) from exc
        except openai.APIConnectionError as exc:
            raise TransportError(
                f"Network error occurred while calling the generation "
                f"service: {exc}"
            ) from exc
        except openai.APIStatusError as exc:
            body = _response_text(exc.response)
            raise TransportError(
                f"API request failed with status {exc.status_code}: "
                f"{body or 'Unknown error'}",
                status_code=exc.status_code,
                body=body,
            ) from exc

        status = getattr(raw, "status_code", 200)
        text = raw.text
        if not 200 <= status < 300:
            raise TransportError(
                f"API request failed with status {status}: {text}",
                status_code=status,
                body=text,
            )
        return text

    def close(self) -> None:
        self._client.close()


def _response_text(response: Any) -> str | None:
    if response is None:
        return None
    try:
        return response.text
    except httpx.ResponseNotRead:  # pragma: no cover - streamed body
        return None
