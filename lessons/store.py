"""
lessons/store.py -- SQLAlchemy-backed persistence for the lesson catalogue.

Uses SQLAlchemy Core so the dataclasses in lessons/models.py stay the domain
representation. Exercises are serialized as a JSON array in a Text column;
they are always read and written together with their lesson.

Pattern: Repository + Data Mapper, like auth/store.py.

Usage:
    store = LessonStore("sqlite:///otpauth.db")
    lesson_id = store.create_lesson(Lesson(title="Greetings", exercises=[...]))
    lessons = store.list_lessons()
    store.close()
"""

import json
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine
from sqlalchemy.engine import Engine

from lessons.models import Exercise, Lesson

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_lessons = Table(
    "lessons",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False, index=True),
    Column("exercises", Text, nullable=False),  # JSON array
    Column("created_at", String(32), nullable=False, index=True),
    Column("updated_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def utc_iso(value: datetime) -> str:
    """Render a client timestamp as aware-UTC ISO 8601. Naive values are taken as UTC.

    created_at is sorted as text, so every stored value must share one offset.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _dump_exercises(exercises: list[Exercise]) -> str:
    return json.dumps([asdict(e) for e in exercises])


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class LessonStore:
    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        metadata.create_all(self.engine)

    def create_lesson(self, lesson: Lesson) -> int:
        """Insert a lesson and return its ID. A caller-supplied created_at is kept."""
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _lessons.insert().values(
                    title=lesson.title,
                    exercises=_dump_exercises(lesson.exercises),
                    created_at=lesson.created_at or now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_lesson(self, lesson_id: int) -> Optional[Lesson]:
        with self.engine.connect() as conn:
            row = conn.execute(_lessons.select().where(_lessons.c.id == lesson_id)).fetchone()
        return _row_to_lesson(row) if row is not None else None

    def list_lessons(self) -> list[Lesson]:
        """Return all lessons, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _lessons.select().order_by(_lessons.c.created_at.desc(), _lessons.c.id.desc())
            ).fetchall()
        return [_row_to_lesson(r) for r in rows]

    def update_lesson(
        self,
        lesson_id: int,
        title: Optional[str] = None,
        exercises: Optional[list[Exercise]] = None,
        created_at: Optional[str] = None,
    ) -> bool:
        """Update the given fields. Returns False if the lesson does not exist."""
        values: dict = {"updated_at": _now_iso()}
        if title is not None:
            values["title"] = title
        if exercises is not None:
            values["exercises"] = _dump_exercises(exercises)
        if created_at is not None:
            values["created_at"] = created_at
        with self.engine.connect() as conn:
            result = conn.execute(_lessons.update().where(_lessons.c.id == lesson_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete_lesson(self, lesson_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_lessons.delete().where(_lessons.c.id == lesson_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_lesson(row) -> Lesson:
    return Lesson(
        id=row.id,
        title=row.title,
        exercises=[Exercise(**e) for e in json.loads(row.exercises or "[]")],
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
