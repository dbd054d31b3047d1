"""Credential resolution and OpenAI-compatible client construction."""

from __future__ import annotations

import os
from typing import Mapping, Optional

import httpx
from dotenv import load_dotenv
from openai import OpenAI

from .config import ProviderConfig

__all__ = ["API_KEY_ENV", "resolve_api_key", "build_timeout", "load_client"]

API_KEY_ENV = "GROQ_API_KEY"


def resolve_api_key(
    *,
    override: Optional[str] = None,
    config_key: Optional[str] = None,
    env: Mapping[str, str] | None = None,
) -> Optional[str]:
    """Return the first non-blank credential, or ``None``.

    Order: ``GROQ_API_KEY`` (a local ``.env`` is loaded first when reading
    the real environment), the runtime ``override``, then the key from the
    config file.
    """

    if env is None:
        load_dotenv()
        env = os.environ
    for candidate in (env.get(API_KEY_ENV), override, config_key):
        if candidate and candidate.strip():
            return candidate.strip()
    return None


def build_timeout(provider: ProviderConfig) -> httpx.Timeout:
    return httpx.Timeout(
        provider.read_timeout_seconds,
        connect=provider.connect_timeout_seconds,
        read=provider.read_timeout_seconds,
        write=provider.write_timeout_seconds,
    )


def load_client(api_key: str, provider: ProviderConfig) -> OpenAI:
    """Create a client bound to ``provider`` with retries disabled."""

    if not api_key or not api_key.strip():
        raise ValueError("API key cannot be empty")
    return OpenAI(
        api_key=api_key.strip(),
        base_url=provider.api_base,
        timeout=build_timeout(provider),
        max_retries=0,
    )
