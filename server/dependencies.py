"""FastAPI dependency factories."""

import sys
from functools import lru_cache
from pathlib import Path
from typing import Optional

_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from fastapi import Depends

from server.config import Settings
from server.db.session import get_session_factory
from server.services.llm import LLMProvider, get_provider


@lru_cache()
def get_settings() -> Settings:
    """Singleton Settings -- override via app.dependency_overrides in tests."""
    return Settings()


def get_db_session(settings: Settings = Depends(get_settings)):
    """Request-scoped session: commit on success, roll back on error."""
    factory = get_session_factory(settings)
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_llm_provider(settings: Settings = Depends(get_settings)) -> Optional[LLMProvider]:
    """Configured model provider, or None when the LLM is disabled."""
    return get_provider(settings)
