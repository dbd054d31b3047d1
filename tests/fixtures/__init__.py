"""Shared testing fixtures and fakes for the quizmaster test suite."""

from .clients import FakeOpenAIClient, RawResponse  # noqa: F401
from .pipeline import (  # noqa: F401
    FakeClock,
    StubTransport,
    envelope,
    make_record,
)

__all__ = [
    "FakeClock",
    "FakeOpenAIClient",
    "RawResponse",
    "StubTransport",
    "envelope",
    "make_record",
]
