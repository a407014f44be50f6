"""Pydantic request/response models for catalog endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class BookCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    author: str = Field(..., min_length=1, max_length=100)
    genre: str | None = Field(None, max_length=32)
    difficulty: str = "beginner"
    description: str | None = Field(None, max_length=1000)


class ChapterCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    chapter_number: int | None = Field(None, ge=1)
    word_count: int = Field(0, ge=0)


class BookResponse(BaseModel):
    id: int
    title: str
    author: str
    genre: str | None = None
    difficulty: str
    total_chapters: int


class ChapterResponse(BaseModel):
    id: int
    book_id: int
    chapter_number: int
    title: str
    word_count: int
