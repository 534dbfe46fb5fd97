"""Engine and session-factory cache for the review database."""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import Dict

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session as DBSession, sessionmaker
from sqlalchemy.pool import StaticPool

from server.config import Settings
from server.db.models import Base

logger = logging.getLogger("studydeck.storage")

# Keyed by database URL so a test that swaps DATABASE_URL gets its own engine.
_engines: Dict[str, Engine] = {}
_factories: Dict[str, sessionmaker] = {}


def _build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url == "sqlite://":
            # one shared connection, otherwise every session sees an empty db
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


def get_engine(settings: Settings) -> Engine:
    url = settings.database_url
    engine = _engines.get(url)
    if engine is None:
        engine = _build_engine(url)
        _engines[url] = engine
        logger.debug("Created engine for %s", engine.url.render_as_string(hide_password=True))
    return engine


def get_session_factory(settings: Settings) -> sessionmaker:
    url = settings.database_url
    factory = _factories.get(url)
    if factory is None:
        factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine(settings))
        _factories[url] = factory
    return factory


@contextmanager
def get_db(settings: Settings) -> Generator[DBSession, None, None]:
    """Yield a database session, committing on success."""
    session = get_session_factory(settings)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def reset_engine() -> None:
    """Dispose every cached engine. Use between tests for isolation."""
    for engine in _engines.values():
        engine.dispose()
    _engines.clear()
    _factories.clear()


def init_db(settings: Settings) -> None:
    """Create the flashcard_reviews table if it does not exist."""
    Base.metadata.create_all(bind=get_engine(settings))
