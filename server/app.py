"""FastAPI application -- review routes for the studydeck scheduler."""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from fastapi import Depends, FastAPI, HTTPException, Query

from server.__version__ import __version__
from server.config import Settings
from server.dependencies import get_review_store, get_settings
from server.schemas import (
    DueCardsResponse,
    PreviewResponse,
    ReviewRequest,
    ReviewResponse,
    StatusResponse,
)
from server.services import study_service
from study.scheduler import InvalidArgument
from study.storage import PersistenceFailure, ReviewStore

logger = logging.getLogger("studydeck.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan: configure logging and create tables."""
    from server.db.session import init_db
    settings = Settings()
    logging.basicConfig(level=settings.log_level,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    init_db(settings)
    ts = datetime.utcnow().isoformat() + "Z"
    logger.info("[%s] Startup: database ready", ts)
    yield
    ts_end = datetime.utcnow().isoformat() + "Z"
    logger.info("[%s] Shutdown: complete", ts_end)


app = FastAPI(title="studydeck", version=__version__, lifespan=lifespan)


# ---- Health ----

@app.get("/health", response_model=StatusResponse)
def health():
    return {"status": "ok"}


# ---- Due Cards ----

@app.get("/study/due", response_model=DueCardsResponse)
def due_cards(
    user_id: str = Query(..., min_length=1, max_length=64),
    settings: Settings = Depends(get_settings),
    store: ReviewStore = Depends(get_review_store),
):
    try:
        return study_service.get_due_cards(store, user_id, limit=settings.due_queue_limit)
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))


# ---- Preview ----

@app.get("/study/preview", response_model=PreviewResponse)
def preview(
    user_id: str = Query(..., min_length=1, max_length=64),
    card_id: str = Query(..., min_length=1, max_length=64),
    store: ReviewStore = Depends(get_review_store),
):
    try:
        return study_service.preview_card(store, user_id, card_id)
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))


# ---- Review ----

@app.post("/study/review", response_model=ReviewResponse)
def review(body: ReviewRequest, store: ReviewStore = Depends(get_review_store)):
    try:
        return study_service.review_card(
            store, body.user_id, body.card_id,
            quality=body.quality, button=body.button,
        )
    except InvalidArgument as e:
        raise HTTPException(status_code=422, detail=str(e))
    except PersistenceFailure as e:
        logger.warning("Review for %s/%s not saved: %s", body.user_id, body.card_id, e)
        raise HTTPException(status_code=503, detail="Review could not be saved; retry")
