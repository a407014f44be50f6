"""ORM models for users, the book catalog and reading progress.

Schema is created by the Alembic baseline migration (alembic/versions).
Python-side defaults only apply on INSERT, so code that builds records in
memory goes through the factories in auth.service and progress.state_machine.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shelfquest.db.base import Base


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Account plus denormalized gamification state."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="user", server_default="user")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # --- Gamification ---
    experience: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    streak_current: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    streak_longest: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    streak_last_read_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # --- Maintenance markers ---
    gamification_reset_applied: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    gamification_reset_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    achievements: Mapped[list[UserAchievement]] = relationship(
        "UserAchievement",
        back_populates="user",
        foreign_keys="UserAchievement.user_id",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="UserAchievement.id",
    )
    badges: Mapped[list[UserBadge]] = relationship(
        "UserBadge",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="UserBadge.id",
    )

    __mapper_args__ = {"version_id_col": version_id}  # noqa: RUF012

    @property
    def is_librarian(self) -> bool:
        return self.role == "librarian"


class UserAchievement(Base):
    """An unlocked achievement (rule id + unlock timestamp)."""

    __tablename__ = "user_achievements"
    __table_args__ = (UniqueConstraint("user_id", "achievement_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    achievement_id: Mapped[str] = mapped_column(String(64), nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Set only for manual awards by a librarian
    awarded_by_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reason: Mapped[str | None] = mapped_column(String(256), nullable=True)

    user: Mapped[User] = relationship("User", back_populates="achievements", foreign_keys=[user_id])


class UserBadge(Base):
    """An earned badge (rule id + earn timestamp)."""

    __tablename__ = "user_badges"
    __table_args__ = (UniqueConstraint("user_id", "badge_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    badge_id: Mapped[str] = mapped_column(String(64), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    user: Mapped[User] = relationship("User", back_populates="badges")


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class Book(Base):
    """Catalog entry. Only total_chapters feeds the progress computations."""

    __tablename__ = "books"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    author: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    genre: Mapped[str | None] = mapped_column(String(32), nullable=True)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False, default="beginner", server_default="beginner")
    total_chapters: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    is_approved: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    created_by_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Chapter(Base):
    """Ordered content unit of a book."""

    __tablename__ = "chapters"
    __table_args__ = (UniqueConstraint("book_id", "chapter_number"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    book_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    chapter_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# ---------------------------------------------------------------------------
# Reading progress
# ---------------------------------------------------------------------------


class ReadingProgress(Base):
    """One record per (user, book) pair."""

    __tablename__ = "reading_progress"
    __table_args__ = (UniqueConstraint("user_id", "book_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    book_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="not-started")
    progress_percentage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_chapter_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("chapters.id", ondelete="SET NULL"), nullable=True
    )
    chapters_read: Mapped[list[int]] = mapped_column(MutableList.as_mutable(JSONB), nullable=False, default=list)
    chapters_completed: Mapped[list[int]] = mapped_column(
        MutableList.as_mutable(JSONB), nullable=False, default=list
    )
    total_reading_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # --- Statistics (recomputed when a session closes) ---
    total_sessions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_session: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_session_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_reading_speed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), server_default=func.now())

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    book: Mapped[Book] = relationship("Book", lazy="joined")
    sessions: Mapped[list[ReadingSession]] = relationship(
        "ReadingSession",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReadingSession.id",
    )
    bookmarks: Mapped[list[Bookmark]] = relationship(
        "Bookmark", cascade="all, delete-orphan", lazy="selectin", order_by="Bookmark.id"
    )
    notes: Mapped[list[Note]] = relationship(
        "Note", cascade="all, delete-orphan", lazy="selectin", order_by="Note.id"
    )
    quiz_results: Mapped[list[QuizResult]] = relationship(
        "QuizResult", cascade="all, delete-orphan", lazy="selectin", order_by="QuizResult.id"
    )

    __mapper_args__ = {"version_id_col": version_id}  # noqa: RUF012


class ReadingSession(Base):
    """One contiguous reading interval. end_time is NULL while open."""

    __tablename__ = "reading_sessions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    progress_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("reading_progress.id", ondelete="CASCADE"), nullable=False
    )
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes
    chapter_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("chapters.id", ondelete="SET NULL"), nullable=True
    )
    words_read: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Bookmark(Base):
    __tablename__ = "bookmarks"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    progress_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("reading_progress.id", ondelete="CASCADE"), nullable=False
    )
    chapter_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Note(Base):
    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    progress_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("reading_progress.id", ondelete="CASCADE"), nullable=False
    )
    chapter_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)
    content: Mapped[str] = mapped_column(String(1000), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class QuizResult(Base):
    __tablename__ = "quiz_results"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    progress_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("reading_progress.id", ondelete="CASCADE"), nullable=False
    )
    chapter_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("chapters.id", ondelete="CASCADE"), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False)
    # [{question_index, selected_option, is_correct, time_spent}]
    answers: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, default=list)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
