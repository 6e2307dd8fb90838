"""
API request and response models for the authentication service REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
lessons/models.py, which own the internal domain representation. Route
handlers map between the two.

Auth request fields are Optional on purpose: presence, email format and
password strength are checked by AuthService so every shape violation comes
back with its own error code. Pydantic only rejects wrong JSON types and
oversized values here.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Request body for POST /auth/register and POST /auth/login."""

    email: Optional[str] = Field(default=None, max_length=320)
    password: Optional[str] = Field(default=None, max_length=255)


class VerifyOtpRequest(BaseModel):
    """Request body for POST /auth/verify-otp."""

    email: Optional[str] = Field(default=None, max_length=320)
    otp: Optional[str] = Field(default=None, max_length=10)


class ChangePasswordRequest(BaseModel):
    """Request body for POST /auth/change-password (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)

    current_password: Optional[str] = Field(default=None, alias="currentPassword", max_length=255)
    new_password: Optional[str] = Field(default=None, alias="newPassword", max_length=255)


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    code: Optional[str] = None


class TokenResponse(BaseModel):
    """Response for a successful POST /auth/verify-otp."""

    model_config = ConfigDict(frozen=True)

    message: str
    token: str
    token_type: str = "bearer"
    expires_in: int


class ProfileResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Lessons -- enums
# ---------------------------------------------------------------------------


class ExerciseTypeEnum(str, Enum):
    match_words = "matchWords"
    choose_translation = "chooseTranslation"
    typing_quiz = "typingQuiz"
    word_order = "wordOrder"


# ---------------------------------------------------------------------------
# Lessons -- request/response models
# ---------------------------------------------------------------------------


class ExerciseModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    type: ExerciseTypeEnum
    instruction: str = Field(min_length=1, max_length=1000)
    order: int
    data: dict[str, Any]


class LessonCreate(BaseModel):
    """Request body for POST /api/v1/lessons."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    title: str = Field(min_length=1, max_length=255)
    exercises: list[ExerciseModel] = Field(max_length=200)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class LessonUpdate(BaseModel):
    """Request body for PUT /api/v1/lessons/{lesson_id}. Omitted fields are left as-is."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    exercises: Optional[list[ExerciseModel]] = Field(default=None, max_length=200)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class LessonResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    exercises: list[ExerciseModel]
    created_at: str
    updated_at: str
    is_completed: Optional[bool] = None


class LessonListResponse(BaseModel):
    """Response for GET /api/v1/lessons."""

    model_config = ConfigDict(frozen=True)

    data: list[LessonResponse]
    count: int


class LessonCompleteResponse(BaseModel):
    """Response for POST /api/v1/lessons/{lesson_id}/complete."""

    model_config = ConfigDict(frozen=True)

    message: str
    completed_lessons: list[str]
