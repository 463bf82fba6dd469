"""LLM provider interface. OpenAI chat completions or a local Ollama server."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger("learnbuddy.llm")


@dataclass
class LLMError(Exception):
    """Structured error from a model provider. Never expose raw tracebacks."""
    kind: str  # timeout | unavailable | invalid_json | invalid_schema | provider_error
    message: str
    details: Optional[Dict[str, Any]] = None


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        if lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    return text


def parse_json_text(text: str) -> Any:
    """Parse model output as JSON, tolerating a markdown code fence."""
    if not text:
        raise LLMError(kind="invalid_json", message="Empty response from model")
    try:
        return json.loads(_strip_fences(text))
    except json.JSONDecodeError as e:
        raise LLMError(kind="invalid_json", message="Model output is not valid JSON", details={"error": str(e)})


class LLMProvider(ABC):
    """Abstract chat-style text generator."""

    name: str = "base"

    @abstractmethod
    async def generate_text(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        *,
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> str:
        """Return the model's reply or raise LLMError."""
        ...

    async def generate_json(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        *,
        max_tokens: int = 1500,
        temperature: float = 0.8,
    ) -> Any:
        """Generate and parse a JSON reply. Raises LLMError(kind=invalid_json) on garbage."""
        text = await self.generate_text(
            system_prompt,
            user_prompt,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        return parse_json_text(text)


async def _post(url: str, payload: Dict[str, Any], timeout_s: int, headers: Optional[Dict[str, str]] = None, label: str = "model") -> Dict[str, Any]:
    try:
        async with httpx.AsyncClient(timeout=timeout_s) as client:
            resp = await client.post(url, json=payload, headers=headers)
    except httpx.TimeoutException as e:
        raise LLMError(kind="timeout", message="Model request timed out", details={"error": str(e)})
    except httpx.ConnectError as e:
        raise LLMError(kind="unavailable", message=f"Cannot connect to {label}", details={"error": str(e)})
    except httpx.HTTPError as e:
        logger.exception("%s request failed", label)
        raise LLMError(kind="provider_error", message="Model request failed", details={"error": str(e)})
    if resp.status_code != 200:
        raise LLMError(
            kind="provider_error",
            message=f"{label} returned {resp.status_code}",
            details={"status": resp.status_code, "body": resp.text[:200]},
        )
    try:
        return resp.json()
    except json.JSONDecodeError as e:
        raise LLMError(kind="invalid_json", message="Invalid response from model", details={"error": str(e)})


def _messages(system_prompt: Optional[str], user_prompt: str) -> List[Dict[str, str]]:
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": user_prompt})
    return messages


class OpenAIProvider(LLMProvider):
    """OpenAI-compatible /chat/completions endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        timeout_s: int = 30,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_s = timeout_s
        self.name = "openai"

    async def generate_text(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        *,
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> str:
        payload = {
            "model": self.model,
            "messages": _messages(system_prompt, user_prompt),
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        data = await _post(
            f"{self.base_url}/chat/completions",
            payload,
            self.timeout_s,
            headers={"Authorization": f"Bearer {self.api_key}"},
            label="OpenAI",
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise LLMError(kind="invalid_schema", message="Unexpected response shape from OpenAI")
        if not content:
            raise LLMError(kind="invalid_schema", message="Empty response from model")
        return content


class OllamaProvider(LLMProvider):
    """Ollama /api/chat endpoint."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "qwen2.5:7b-instruct",
        timeout_s: int = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_s = timeout_s
        self.name = "ollama"

    async def generate_text(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        *,
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> str:
        payload = {
            "model": self.model,
            "messages": _messages(system_prompt, user_prompt),
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }
        data = await _post(f"{self.base_url}/api/chat", payload, self.timeout_s, label="Ollama")
        content = (data.get("message") or {}).get("content", "")
        if not content:
            raise LLMError(kind="invalid_schema", message="Empty response from model")
        return content


class FakeProvider(LLMProvider):
    """Test double: returns canned text (or JSON-encodes canned objects)."""

    def __init__(self, canned: Any = None, error: Optional[LLMError] = None):
        self.canned = canned
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.name = "fake"

    async def generate_text(
        self,
        system_prompt: Optional[str],
        user_prompt: str,
        **kwargs,
    ) -> str:
        self.calls.append({"system": system_prompt, "user": user_prompt, **kwargs})
        if self.error:
            raise self.error
        if self.canned is None:
            return ""
        if isinstance(self.canned, str):
            return self.canned
        return json.dumps(self.canned)


_provider: Optional[LLMProvider] = None


def get_provider(settings) -> Optional[LLMProvider]:
    """Get the configured provider. Returns None if disabled."""
    if not getattr(settings, "llm_enabled", False):
        return None
    global _provider
    if _provider is None:
        if settings.llm_provider == "openai":
            if not settings.llm_api_key:
                logger.warning("LLM provider 'openai' selected without an API key; LLM disabled")
                return None
            _provider = OpenAIProvider(
                api_key=settings.llm_api_key,
                base_url=settings.llm_base_url,
                model=settings.llm_model,
                timeout_s=settings.llm_timeout_s,
            )
        else:
            _provider = OllamaProvider(
                base_url=settings.llm_base_url,
                model=settings.llm_model,
                timeout_s=settings.llm_timeout_s,
            )
        logger.info("Using LLM provider %s (%s)", _provider.name, settings.llm_model)
    return _provider


def reset_provider() -> None:
    """Reset cached provider (for tests)."""
    global _provider
    _provider = None
