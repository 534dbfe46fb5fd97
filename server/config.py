"""Configuration for the studydeck API server."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class Settings:
    """
    Paths and knobs the server needs.

    Defaults come from the environment, then resolve relative to the data dir.
    Every field is overridable at construction for testing.
    """
    data_dir: Optional[Path] = None
    review_db_path: Optional[Path] = None
    session_log_path: Optional[Path] = None
    database_url: Optional[str] = None
    due_queue_limit: int = 50
    log_level: str = "INFO"

    def __post_init__(self):
        project_root = Path(__file__).resolve().parent.parent

        if self.data_dir is None:
            env_dir = os.environ.get("STUDYDECK_DATA_DIR")
            self.data_dir = Path(env_dir) if env_dir else project_root / "data"
        self.data_dir = Path(self.data_dir)

        if self.review_db_path is None:
            env_db = os.environ.get("REVIEW_DB_PATH")
            self.review_db_path = Path(env_db) if env_db else self.data_dir / 'reviews.jsonl'
        self.review_db_path = Path(self.review_db_path)

        if self.session_log_path is None:
            env_log = os.environ.get("SESSION_LOG_PATH")
            self.session_log_path = Path(env_log) if env_log else self.data_dir / 'session_log.jsonl'
        self.session_log_path = Path(self.session_log_path)

        if self.database_url is None:
            self.database_url = os.environ.get("DATABASE_URL", "sqlite:///./studydeck.db")

        env_limit = os.environ.get("DUE_QUEUE_LIMIT")
        if env_limit is not None:
            try:
                self.due_queue_limit = int(env_limit)
            except ValueError:
                pass

        if os.environ.get("LOG_LEVEL"):
            self.log_level = os.environ["LOG_LEVEL"].upper()
