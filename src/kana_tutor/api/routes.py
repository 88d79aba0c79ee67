"""REST API routes consumed by the UI layer."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from kana_tutor.core import LearningCore
from kana_tutor.models.progress import Category
from kana_tutor.storage.guard import format_bytes
from kana_tutor.storage.progress_store import NoActiveSessionError

logger = structlog.get_logger()
router = APIRouter(prefix="/api")


def get_core(request: Request) -> LearningCore:
    return request.app.state.core


CoreDep = Annotated[LearningCore, Depends(get_core)]


def validate_category(category: str) -> Category:
    try:
        return Category(category)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown category: {category}")


class PracticeEvent(BaseModel):
    category: str
    key: str
    correct: bool
    time_spent_seconds: int = Field(default=0, ge=0)
    difficulty: int | None = Field(default=None, ge=1, le=5)
    mastered: bool | None = None


class SessionStart(BaseModel):
    category: str


class SessionAnswer(BaseModel):
    key: str
    correct: bool
    time_spent_seconds: int = Field(default=0, ge=0)
    difficulty: int | None = Field(default=None, ge=1, le=5)


class PerformanceEvent(BaseModel):
    accuracy: float = Field(ge=0.0, le=100.0)
    speed: float = Field(ge=0.0, le=100.0)


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.post("/practice")
async def record_practice(event: PracticeEvent, core: CoreDep) -> dict:
    """Record a single practice attempt outside a session."""
    category = validate_category(event.category)
    item = core.store.upsert_item(
        category,
        event.key,
        event.correct,
        time_spent_seconds=event.time_spent_seconds,
        difficulty=event.difficulty,
        mastered=event.mastered,
    )
    return item.model_dump(mode="json")


@router.post("/sessions/start")
async def start_session(body: SessionStart, core: CoreDep) -> dict:
    category = validate_category(body.category)
    return core.store.start_session(category).model_dump(mode="json")


@router.post("/sessions/answer")
async def session_answer(body: SessionAnswer, core: CoreDep) -> dict:
    try:
        item = core.store.record_answer(
            body.key,
            body.correct,
            time_spent_seconds=body.time_spent_seconds,
            difficulty=body.difficulty,
        )
    except NoActiveSessionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return item.model_dump(mode="json")


@router.post("/sessions/end")
async def end_session(core: CoreDep) -> dict:
    try:
        session = core.store.end_session()
    except NoActiveSessionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return session.model_dump(mode="json")


@router.post("/behavior")
async def record_behavior(increments: dict[str, int], core: CoreDep) -> dict:
    """Add to behavioral counters, e.g. ``{"visual_interactions": 1}``."""
    try:
        counters = core.store.record_behavior(**increments)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return counters.model_dump()


@router.post("/performance")
async def record_performance(event: PerformanceEvent, core: CoreDep) -> dict:
    core.store.record_performance(event.accuracy, event.speed)
    return {"samples": len(core.store.recent_performance)}


@router.post("/analysis")
async def run_analysis(core: CoreDep) -> dict:
    """Run an analysis pass now."""
    result = core.recommender.analyze()
    return result.model_dump(mode="json")


@router.get("/recommendations")
async def get_recommendations(core: CoreDep) -> list[dict]:
    return [r.model_dump(mode="json") for r in core.recommender.current]


@router.get("/profile")
async def get_profile(core: CoreDep) -> dict:
    return core.store.learner_profile.model_dump(mode="json")


@router.get("/progress/daily")
async def get_daily_stats(core: CoreDep) -> list[dict]:
    return [d.model_dump(mode="json") for d in core.store.daily_stats()]


@router.get("/progress/{category}")
async def get_progress(category: str, core: CoreDep) -> list[dict]:
    items = core.store.get_all(validate_category(category))
    return [item.model_dump(mode="json") for item in items]


@router.get("/storage")
async def get_storage_info(core: CoreDep) -> dict:
    info = core.guard.storage_info()
    return {**info.model_dump(), "formatted": format_bytes(info.size)}


@router.get("/events")
async def drain_events(core: CoreDep) -> list[dict]:
    """Pending core events, oldest first. Draining clears them."""
    return [e.model_dump(mode="json") for e in core.events.drain()]


@router.get("/export", response_class=PlainTextResponse)
async def export_progress(core: CoreDep) -> str:
    return core.store.export()


@router.post("/import")
async def import_progress(request: Request, core: CoreDep) -> dict:
    """Replace all progress with an exported document (raw UTF-8 JSON body)."""
    document = await request.body()
    if not core.store.import_state(document):
        raise HTTPException(status_code=400, detail="Import failed: invalid document")
    return {"status": "imported"}
