"""Pydantic schemas used by the FastAPI application."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CelebrationType(str, Enum):
    GOLD_STREAK = "gold_streak"
    HABIT_STREAK = "habit_streak"


class ScheduleType(str, Enum):
    DAILY = "daily"
    WEEKDAYS = "weekdays"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    X_PER_WEEK = "xPerWeek"


class Vote(str, Enum):
    UP = "up"
    DOWN = "down"


class GoalHorizon(str, Enum):
    THREE_YEARS = "3y"
    ONE_YEAR = "1y"
    SIX_MONTHS = "6m"
    ONE_MONTH = "1m"


class CelebrationRequest(BaseModel):
    type: CelebrationType
    streak_days: int = Field(..., ge=0)
    habit_id: Optional[int] = None
    habit_title: Optional[str] = None


class CelebrationResponse(BaseModel):
    message: str


class IntentionVote(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: date = Field(..., alias="date")
    vote: Optional[Vote] = Field(
        default=None, description="Thumbs up/down; null clears a previous vote"
    )


class HabitStreakInput(BaseModel):
    id: int
    title: str
    streak: int = Field(..., ge=0)


class PrecomputeRequest(BaseModel):
    gold_streak: int = Field(default=0, ge=0)
    habit_streaks: List[HabitStreakInput] = Field(default_factory=list)
    check_celebrations: bool = True


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    context_mode: Optional[str] = Field(default=None, alias="contextMode")
    profile: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Client-side profile snapshot; stored profile fields win when absent here",
    )
    goals: Optional[List[Any]] = Field(
        default=None, description="Goal titles or goal objects with a title"
    )


class ChatResponse(BaseModel):
    reply: str


class OnboardingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    priorities: str = ""
    life_summary: str = Field(default="", alias="lifeSummary")
    ideology: str = ""


class ProfileUpdate(BaseModel):
    key_truth: Optional[str] = None
    ai_voice: Optional[str] = None


class GoalCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1)
    horizon: Optional[GoalHorizon] = None


class RoutineCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1)
    schedule_type: ScheduleType = ScheduleType.DAILY
    x_per_week: Optional[int] = Field(default=None, ge=0, le=7)
    start_date: Optional[date] = Field(
        default=None, description="Defaults to today when omitted"
    )


class RoutineUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1)
    order_index: Optional[int] = None
    end_date: Optional[date] = Field(
        default=None, description="Deactivation date; the routine is inactive from this day on"
    )


class LogUpdate(BaseModel):
    completed: bool
    notes: Optional[str] = None
