"""
api/routes/v1/lessons.py -- Lesson catalogue routes.

Routes:
  GET    /lessons                      -- list lessons, newest first, with is_completed (auth)
  GET    /lessons/{lesson_id}          -- lesson detail (public)
  POST   /lessons                      -- create lesson (auth)
  PUT    /lessons/{lesson_id}          -- partial update (auth)
  DELETE /lessons/{lesson_id}          -- delete (auth)
  POST   /lessons/{lesson_id}/complete -- record completion for the caller (auth)

The only coupling with the auth core is the identity id supplied by the token
gate. Completion is stored on the identity (IdentityStore.add_completed_item)
as an opaque string reference to the lesson id.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.limiter import limiter
from api.models import (
    ExerciseModel,
    LessonCompleteResponse,
    LessonCreate,
    LessonListResponse,
    LessonResponse,
    LessonUpdate,
)
from auth.dependencies import get_current_identity_id
from auth.errors import IdentityNotFound
from auth.store import IdentityStore
from core.config import get_settings
from lessons.models import Exercise, Lesson
from lessons.store import LessonStore, utc_iso

_settings = get_settings()

router = APIRouter()


def _lesson_not_found() -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "not_found", "message": "Lesson not found."})


def _to_exercises(models: list[ExerciseModel]) -> list[Exercise]:
    return [Exercise(type=m.type.value, instruction=m.instruction, order=m.order, data=m.data) for m in models]


def _to_response(lesson: Lesson, is_completed: bool | None = None) -> LessonResponse:
    return LessonResponse(
        id=lesson.id,
        title=lesson.title,
        exercises=[
            ExerciseModel(type=e.type, instruction=e.instruction, order=e.order, data=e.data) for e in lesson.exercises
        ],
        created_at=lesson.created_at,
        updated_at=lesson.updated_at,
        is_completed=is_completed,
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@limiter.limit(_settings.api_rate_limit)
@router.get("/lessons", response_model=LessonListResponse)
def list_lessons(request: Request, identity_id: str = Depends(get_current_identity_id)) -> LessonListResponse:
    """Return every lesson with the caller's completion flag."""
    lesson_store: LessonStore = request.app.state.lesson_store
    identity_store: IdentityStore = request.app.state.identity_store
    completed = set(identity_store.list_completed_items(identity_id))
    rows = [_to_response(lesson, str(lesson.id) in completed) for lesson in lesson_store.list_lessons()]
    return LessonListResponse(data=rows, count=len(rows))


@limiter.limit(_settings.api_rate_limit)
@router.get("/lessons/{lesson_id}", response_model=LessonResponse)
def get_lesson(request: Request, lesson_id: int) -> LessonResponse:
    lesson_store: LessonStore = request.app.state.lesson_store
    lesson = lesson_store.get_lesson(lesson_id)
    if lesson is None:
        raise _lesson_not_found()
    return _to_response(lesson)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


@limiter.limit(_settings.api_rate_limit)
@router.post("/lessons", response_model=LessonResponse, status_code=201)
def create_lesson(
    request: Request,
    body: LessonCreate,
    identity_id: str = Depends(get_current_identity_id),
) -> LessonResponse:
    lesson_store: LessonStore = request.app.state.lesson_store
    lesson = Lesson(
        title=body.title,
        exercises=_to_exercises(body.exercises),
        created_at=utc_iso(body.created_at) if body.created_at else "",
    )
    lesson_id = lesson_store.create_lesson(lesson)
    return _to_response(lesson_store.get_lesson(lesson_id))


@limiter.limit(_settings.api_rate_limit)
@router.put("/lessons/{lesson_id}", response_model=LessonResponse)
def update_lesson(
    request: Request,
    lesson_id: int,
    body: LessonUpdate,
    identity_id: str = Depends(get_current_identity_id),
) -> LessonResponse:
    lesson_store: LessonStore = request.app.state.lesson_store
    updated = lesson_store.update_lesson(
        lesson_id,
        title=body.title,
        exercises=_to_exercises(body.exercises) if body.exercises is not None else None,
        created_at=utc_iso(body.created_at) if body.created_at else None,
    )
    if not updated:
        raise _lesson_not_found()
    return _to_response(lesson_store.get_lesson(lesson_id))


@limiter.limit(_settings.api_rate_limit)
@router.delete("/lessons/{lesson_id}", status_code=204)
def delete_lesson(
    request: Request,
    lesson_id: int,
    identity_id: str = Depends(get_current_identity_id),
) -> Response:
    lesson_store: LessonStore = request.app.state.lesson_store
    if not lesson_store.delete_lesson(lesson_id):
        raise _lesson_not_found()
    return Response(status_code=204)


@limiter.limit(_settings.api_rate_limit)
@router.post("/lessons/{lesson_id}/complete", response_model=LessonCompleteResponse)
def complete_lesson(
    request: Request,
    lesson_id: int,
    identity_id: str = Depends(get_current_identity_id),
) -> LessonCompleteResponse:
    """Record that the caller completed a lesson. Idempotent."""
    lesson_store: LessonStore = request.app.state.lesson_store
    identity_store: IdentityStore = request.app.state.identity_store
    if lesson_store.get_lesson(lesson_id) is None:
        raise _lesson_not_found()
    if identity_store.get_by_id(identity_id) is None:
        raise IdentityNotFound()

    added = identity_store.add_completed_item(identity_id, str(lesson_id))
    message = "Lesson marked as completed." if added else "Lesson was already completed."
    return LessonCompleteResponse(
        message=message,
        completed_lessons=identity_store.list_completed_items(identity_id),
    )
