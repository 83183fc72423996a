"""SQLAlchemy models for the Daily Tracker backend."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from .database import Base


class Profile(Base):
    __tablename__ = "profiles"

    id: str = Column(String(64), primary_key=True)
    email: Optional[str] = Column(String(255))
    key_truth: Optional[str] = Column(Text)
    ai_voice: Optional[str] = Column(Text)
    current_gold_streak: int = Column(Integer, default=0, nullable=False)
    best_gold_streak: int = Column(Integer, default=0, nullable=False)
    points: int = Column(Integer, default=0, nullable=False)
    created_at: datetime = Column(
        DateTime(timezone=True), server_default=func.current_timestamp()
    )


class Goal(Base):
    __tablename__ = "goals"

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: str = Column(String(64), index=True, nullable=False)
    title: str = Column(Text, nullable=False)
    horizon: Optional[str] = Column(String(8))
    created_at: datetime = Column(
        DateTime(timezone=True), server_default=func.current_timestamp()
    )


class Routine(Base):
    __tablename__ = "routines"

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: str = Column(String(64), index=True, nullable=False)
    title: str = Column(String(255), nullable=False)
    schedule_type: str = Column(String(16), default="daily", nullable=False)
    x_per_week: Optional[int] = Column(Integer)
    start_date: date = Column(Date, nullable=False)
    end_date: Optional[date] = Column(Date)
    order_index: int = Column(Integer, default=0)
    created_at: datetime = Column(
        DateTime(timezone=True), server_default=func.current_timestamp()
    )


class RoutineLog(Base):
    __tablename__ = "routine_logs"
    __table_args__ = (UniqueConstraint("routine_id", "date"),)

    id: int = Column(Integer, primary_key=True, index=True)
    routine_id: int = Column(
        Integer, ForeignKey("routines.id", ondelete="CASCADE"), nullable=False
    )
    date: date = Column(Date, nullable=False, index=True)
    completed: bool = Column(Boolean, default=False, nullable=False)
    notes: Optional[str] = Column(Text)
    updated_at: datetime = Column(
        DateTime(timezone=True),
        server_default=func.current_timestamp(),
        onupdate=func.current_timestamp(),
    )


class Celebration(Base):
    __tablename__ = "celebrations"

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: str = Column(String(64), index=True, nullable=False)
    type: str = Column(String(32), nullable=False)
    streak_days: int = Column(Integer, nullable=False)
    habit_id: Optional[int] = Column(Integer)
    content: str = Column(Text, nullable=False)
    is_used: bool = Column(Boolean, default=False, nullable=False)
    created_at: datetime = Column(
        DateTime(timezone=True), server_default=func.current_timestamp()
    )


class DailyIntention(Base):
    __tablename__ = "daily_intentions"
    __table_args__ = (UniqueConstraint("user_id", "date"),)

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: str = Column(String(64), index=True, nullable=False)
    date: date = Column(Date, nullable=False)
    content: str = Column(Text, nullable=False)
    vote: Optional[str] = Column(String(8))
    created_at: datetime = Column(
        DateTime(timezone=True), server_default=func.current_timestamp()
    )


class Badge(Base):
    __tablename__ = "badges"

    id: int = Column(Integer, primary_key=True, index=True)
    slug: str = Column(String(64), unique=True, nullable=False)
    name: str = Column(String(255), nullable=False)
    threshold: int = Column(Integer, nullable=False)
    category: str = Column(String(32), nullable=False)


class UserBadge(Base):
    __tablename__ = "user_badges"
    __table_args__ = (UniqueConstraint("user_id", "badge_id"),)

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: str = Column(String(64), index=True, nullable=False)
    badge_id: int = Column(Integer, ForeignKey("badges.id"), nullable=False)
    unlocked_at: datetime = Column(
        DateTime(timezone=True), server_default=func.current_timestamp()
    )


class PointsEntry(Base):
    __tablename__ = "points_history"

    id: int = Column(Integer, primary_key=True, index=True)
    user_id: str = Column(String(64), index=True, nullable=False)
    amount: int = Column(Integer, nullable=False)
    reason: str = Column(String(64), nullable=False)
    reference_id: Optional[str] = Column(String(64))
    created_at: datetime = Column(
        DateTime(timezone=True), server_default=func.current_timestamp()
    )
