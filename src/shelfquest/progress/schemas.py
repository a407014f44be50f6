"""Pydantic request/response models for reading-progress endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# --- Requests ---


class StartReadingRequest(BaseModel):
    book_id: int


class StartSessionRequest(BaseModel):
    chapter_id: int | None = None


class EndSessionRequest(BaseModel):
    words_read: int = Field(0, ge=0)


class StatusUpdateRequest(BaseModel):
    status: str


class BookmarkRequest(BaseModel):
    chapter_id: int
    position: int = Field(0, ge=0)
    note: str | None = Field(None, max_length=500)


class NoteRequest(BaseModel):
    chapter_id: int
    content: str = Field(..., min_length=1, max_length=1000)
    position: int = Field(0, ge=0)
    is_private: bool = True


class QuizAnswer(BaseModel):
    question_index: int = Field(..., ge=0)
    selected_option: int = Field(..., ge=0)
    is_correct: bool
    time_spent: int = Field(0, ge=0)


class QuizResultRequest(BaseModel):
    chapter_id: int
    score: int = Field(..., ge=0, le=100)
    total_questions: int = Field(..., ge=1)
    correct_answers: int = Field(..., ge=0)
    answers: list[QuizAnswer] = []


# --- Responses ---


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    start_time: datetime
    end_time: datetime | None = None
    duration: int | None = None
    chapter_id: int | None = None
    words_read: int = 0


class BookmarkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    chapter_id: int
    position: int
    note: str | None = None
    created_at: datetime


class NoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    chapter_id: int
    content: str
    position: int
    is_private: bool
    created_at: datetime
    updated_at: datetime


class QuizResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    chapter_id: int
    score: int
    total_questions: int
    correct_answers: int
    answers: list[dict[str, Any]] = []
    completed_at: datetime


class ProgressStatistics(BaseModel):
    total_sessions: int
    longest_session: int
    average_session_time: int
    average_reading_speed: int


class ProgressResponse(BaseModel):
    id: int
    book_id: int
    book_title: str | None = None
    status: str
    progress_percentage: int
    current_chapter_id: int | None = None
    chapters_read: list[int]
    chapters_completed: list[int]
    total_reading_time: int
    statistics: ProgressStatistics
    started_at: datetime | None = None
    last_read_at: datetime | None = None
    completed_at: datetime | None = None


class ProgressDetailResponse(ProgressResponse):
    sessions: list[SessionResponse] = []
    bookmarks: list[BookmarkResponse] = []
    notes: list[NoteResponse] = []
    quiz_results: list[QuizResultResponse] = []


class ProgressActionResponse(BaseModel):
    progress: ProgressResponse
    experience_delta: int = 0


class EndSessionResponse(BaseModel):
    duration_minutes: int | None = None
    experience_delta: int


class ChapterReadResponse(BaseModel):
    chapters_read: list[int]
    experience_delta: int


class ChapterCompleteResponse(BaseModel):
    progress_percentage: int
    book_completed: bool
    experience_delta: int


class ProgressSummaryResponse(BaseModel):
    total_books: int
    by_status: dict[str, int]
    chapters_completed: int
    total_reading_time: int
    total_sessions: int
    average_session_time: int
    average_progress: int
