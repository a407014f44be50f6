"""Reading-progress API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shelfquest.auth.dependencies import get_current_user
from shelfquest.database import get_session
from shelfquest.db.models import ReadingProgress, User
from shelfquest.progress import service as progress_service
from shelfquest.progress.schemas import (
    BookmarkRequest,
    BookmarkResponse,
    ChapterCompleteResponse,
    ChapterReadResponse,
    EndSessionRequest,
    EndSessionResponse,
    NoteRequest,
    NoteResponse,
    ProgressActionResponse,
    ProgressDetailResponse,
    ProgressResponse,
    ProgressStatistics,
    ProgressSummaryResponse,
    QuizResultRequest,
    QuizResultResponse,
    SessionResponse,
    StartReadingRequest,
    StartSessionRequest,
    StatusUpdateRequest,
)
from shelfquest.redis_client import get_optional_redis

router = APIRouter(prefix="/api/v1/progress", tags=["Progress"])


def _progress_response(progress: ReadingProgress) -> ProgressResponse:
    return ProgressResponse(
        id=progress.id,
        book_id=progress.book_id,
        book_title=progress.book.title if progress.book is not None else None,
        status=progress.status,
        progress_percentage=progress.progress_percentage,
        current_chapter_id=progress.current_chapter_id,
        chapters_read=list(progress.chapters_read),
        chapters_completed=list(progress.chapters_completed),
        total_reading_time=progress.total_reading_time,
        statistics=ProgressStatistics(
            total_sessions=progress.total_sessions,
            longest_session=progress.longest_session,
            average_session_time=progress.average_session_time,
            average_reading_speed=progress.average_reading_speed,
        ),
        started_at=progress.started_at,
        last_read_at=progress.last_read_at,
        completed_at=progress.completed_at,
    )


def _progress_detail(progress: ReadingProgress) -> ProgressDetailResponse:
    return ProgressDetailResponse(
        **_progress_response(progress).model_dump(),
        sessions=[SessionResponse.model_validate(s) for s in progress.sessions],
        bookmarks=[BookmarkResponse.model_validate(b) for b in progress.bookmarks],
        notes=[NoteResponse.model_validate(n) for n in progress.notes],
        quiz_results=[QuizResultResponse.model_validate(q) for q in progress.quiz_results],
    )


# ── Collection endpoints ──


@router.get("", response_model=list[ProgressResponse])
async def list_progress(
    status: str | None = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """All of the current user's reading records, most recently read first."""
    records = await progress_service.list_progress(db, user, status)
    return [_progress_response(p) for p in records]


@router.get("/stats/summary", response_model=ProgressSummaryResponse)
async def get_summary(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return ProgressSummaryResponse(**await progress_service.stats_summary(db, user))


@router.get("/book/{book_id}", response_model=ProgressDetailResponse)
async def get_progress_for_book(
    book_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    progress = await progress_service.get_progress_for_book(db, user, book_id)
    return _progress_detail(progress)


@router.post("/start", response_model=ProgressActionResponse, status_code=201)
async def start_reading(
    payload: StartReadingRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_optional_redis),
):
    progress, xp = await progress_service.start_reading(db, redis, user, payload.book_id)
    return ProgressActionResponse(progress=_progress_response(progress), experience_delta=xp)


# ── Single record endpoints ──


@router.get("/{progress_id}", response_model=ProgressDetailResponse)
async def get_progress(
    progress_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    progress = await progress_service.get_progress(db, user, progress_id)
    return _progress_detail(progress)


@router.put("/{progress_id}/session/start", response_model=SessionResponse)
async def start_session(
    progress_id: int,
    payload: StartSessionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_optional_redis),
):
    session = await progress_service.start_session(db, redis, user, progress_id, payload.chapter_id)
    return SessionResponse.model_validate(session)


@router.put("/{progress_id}/session/end", response_model=EndSessionResponse)
async def end_session(
    progress_id: int,
    payload: EndSessionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_optional_redis),
):
    result = await progress_service.end_session(db, redis, user, progress_id, payload.words_read)
    return EndSessionResponse(**result)


@router.put("/{progress_id}/chapter/{chapter_id}/read", response_model=ChapterReadResponse)
async def read_chapter(
    progress_id: int,
    chapter_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_optional_redis),
):
    result = await progress_service.read_chapter(db, redis, user, progress_id, chapter_id)
    return ChapterReadResponse(**result)


@router.put("/{progress_id}/chapter/{chapter_id}/complete", response_model=ChapterCompleteResponse)
async def complete_chapter(
    progress_id: int,
    chapter_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_optional_redis),
):
    result = await progress_service.complete_chapter(db, redis, user, progress_id, chapter_id)
    return ChapterCompleteResponse(**result)


@router.put("/{progress_id}/status", response_model=ProgressActionResponse)
async def update_status(
    progress_id: int,
    payload: StatusUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_optional_redis),
):
    progress, xp = await progress_service.set_status(db, redis, user, progress_id, payload.status)
    return ProgressActionResponse(progress=_progress_response(progress), experience_delta=xp)


# ── Annotations ──


@router.post("/{progress_id}/bookmarks", response_model=BookmarkResponse, status_code=201)
async def add_bookmark(
    progress_id: int,
    payload: BookmarkRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    bookmark = await progress_service.add_bookmark(
        db, user, progress_id, payload.chapter_id, payload.position, payload.note
    )
    return BookmarkResponse.model_validate(bookmark)


@router.post("/{progress_id}/notes", response_model=NoteResponse, status_code=201)
async def add_note(
    progress_id: int,
    payload: NoteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    note = await progress_service.add_note(
        db, user, progress_id, payload.chapter_id, payload.content, payload.position, payload.is_private
    )
    return NoteResponse.model_validate(note)


@router.get("/{progress_id}/notes", response_model=list[NoteResponse])
async def list_notes(
    progress_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    notes = await progress_service.list_notes(db, user, progress_id)
    return [NoteResponse.model_validate(n) for n in notes]


@router.delete("/{progress_id}/notes/{note_id}", status_code=204)
async def delete_note(
    progress_id: int,
    note_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await progress_service.delete_note(db, user, progress_id, note_id)
    return Response(status_code=204)


@router.post("/{progress_id}/quiz-results", response_model=QuizResultResponse, status_code=201)
async def add_quiz_result(
    progress_id: int,
    payload: QuizResultRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    result = await progress_service.add_quiz_result(
        db,
        user,
        progress_id,
        payload.chapter_id,
        payload.score,
        payload.total_questions,
        payload.correct_answers,
        [a.model_dump() for a in payload.answers],
    )
    return QuizResultResponse.model_validate(result)
