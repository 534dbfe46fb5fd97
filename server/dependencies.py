"""FastAPI dependency factories."""

import sys
from functools import lru_cache
from pathlib import Path

_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from fastapi import Depends

from server.config import Settings
from server.db.review_store import SqlReviewStore
from server.db.session import get_session_factory
from study.storage import ReviewStore


@lru_cache()
def get_settings() -> Settings:
    """Singleton Settings -- override via app.dependency_overrides in tests."""
    return Settings()


def get_review_store(settings: Settings = Depends(get_settings)) -> ReviewStore:
    """SQL-backed review store over the process-wide session factory."""
    return SqlReviewStore(get_session_factory(settings))
