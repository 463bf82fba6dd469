"""Configuration for the LearnBuddy API server."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass
class Settings:
    """
    Server settings.

    Defaults resolve relative to the project root or come from the environment.
    Every field is overridable at construction for testing.
    """
    database_url: Optional[str] = None
    content_dir: Optional[Path] = None
    cors_origins: List[str] = field(default_factory=list)

    # Usage limits and analysis windows
    free_daily_questions: Optional[int] = None
    analysis_window_days: int = 30
    review_batch_limit: int = 10
    quiz_cache_size: int = 200

    # Language model used for Q&A and quiz generation
    llm_enabled: Optional[bool] = None
    llm_provider: Optional[str] = None  # "ollama" | "openai"
    llm_model: Optional[str] = None
    llm_base_url: Optional[str] = None
    llm_api_key: Optional[str] = None
    llm_timeout_s: int = 30
    llm_max_tokens: int = 1000
    llm_temperature: float = 0.7

    def __post_init__(self):
        project_root = Path(__file__).resolve().parent.parent

        if self.database_url is None:
            self.database_url = os.environ.get("DATABASE_URL", "sqlite:///./learnbuddy.db")

        if self.content_dir is None:
            env_content = os.environ.get("CONTENT_DIR")
            self.content_dir = Path(env_content) if env_content else project_root / "content"
        self.content_dir = Path(self.content_dir)

        if not self.cors_origins:
            raw = os.environ.get("CORS_ORIGINS", "http://localhost:5173")
            self.cors_origins = [o.strip() for o in raw.split(",") if o.strip()]

        if self.free_daily_questions is None:
            self.free_daily_questions = _env_int("FREE_DAILY_QUESTIONS", 5)
        self.analysis_window_days = _env_int("ANALYSIS_WINDOW_DAYS", self.analysis_window_days)

        # LLM: enabled explicitly, or implicitly when an API key is present
        if self.llm_api_key is None:
            self.llm_api_key = os.environ.get("OPENAI_API_KEY")
        if self.llm_enabled is None:
            flag = os.environ.get("LLM_ENABLED", "").lower()
            self.llm_enabled = flag in ("1", "true", "yes") or bool(self.llm_api_key)
        if self.llm_provider is None:
            default_provider = "openai" if self.llm_api_key else "ollama"
            self.llm_provider = os.environ.get("LLM_PROVIDER", default_provider)
        if self.llm_model is None:
            default_model = "gpt-4o-mini" if self.llm_provider == "openai" else "qwen2.5:7b-instruct"
            self.llm_model = os.environ.get("LLM_MODEL", default_model)
        if self.llm_base_url is None:
            default_url = "https://api.openai.com/v1" if self.llm_provider == "openai" else "http://localhost:11434"
            self.llm_base_url = os.environ.get("LLM_BASE_URL", default_url)
        self.llm_timeout_s = _env_int("LLM_TIMEOUT_S", self.llm_timeout_s)
        self.llm_max_tokens = _env_int("LLM_MAX_TOKENS", self.llm_max_tokens)
        self.llm_temperature = _env_float("LLM_TEMPERATURE", self.llm_temperature)
