"""Language model access for tutoring answers and quiz generation."""

from server.services.llm.provider import (
    FakeProvider,
    LLMError,
    LLMProvider,
    get_provider,
    reset_provider,
)

__all__ = [
    "FakeProvider",
    "LLMError",
    "LLMProvider",
    "get_provider",
    "reset_provider",
]
