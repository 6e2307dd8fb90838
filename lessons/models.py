"""
lessons/models.py -- Domain dataclasses for the lesson catalogue.

Pure data containers. LessonStore does the persistence; the API routes map
between these and the Pydantic transport models.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Exercise:
    """One step of a lesson.

    type is one of "matchWords" | "chooseTranslation" | "typingQuiz" | "wordOrder".
    data is free-form and depends on type.
    """

    type: str
    instruction: str
    order: int
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class Lesson:
    """A catalogue entry. id is None before the record is written to the database."""

    title: str
    exercises: list[Exercise] = field(default_factory=list)
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert unless supplied
    updated_at: str = ""
