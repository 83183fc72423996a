"""Streak evaluation for individual routines and the aggregate gold streak.

Streaks are counted by walking backward from an evaluation date one calendar
day at a time.  Completion state is supplied through a lookup callable so the
same walk works against database rows, in-memory fixtures or an optimistic
client-side state.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy.orm import Session

from .config import STREAK_LOOKBACK_DAYS
from .models import Routine, RoutineLog
from .time_utils import days_back

CompletionLookup = Callable[[int, date], bool]


@dataclass(frozen=True)
class StreakResult:
    days: int
    # True when the lookback window ran out before the streak broke, so the
    # real streak is at least ``days``.
    window_exhausted: bool = False


def matches_schedule(schedule_type: str, day: date, x_per_week: Optional[int]) -> bool:
    """Return whether a routine with this schedule is expected on ``day``.

    Weekly, monthly and x-per-week routines leave the choice of day to the
    user, so every day counts as eligible for them.
    """
    if schedule_type == "weekdays":
        return day.weekday() < 5
    if schedule_type == "xPerWeek":
        return (x_per_week if x_per_week is not None else 1) > 0
    return True


def is_active_on(routine: Routine, day: date) -> bool:
    """A routine is active from its start date up to, not including, its end date."""
    if day < routine.start_date:
        return False
    if routine.end_date is not None and day >= routine.end_date:
        return False
    return True


def _scheduled_on(routines: Sequence[Routine], day: date) -> List[Routine]:
    return [
        routine
        for routine in routines
        if is_active_on(routine, day)
        and matches_schedule(routine.schedule_type, day, routine.x_per_week)
    ]


def routine_streak(
    routine: Routine,
    is_completed: CompletionLookup,
    on: date,
    *,
    lookback: int = STREAK_LOOKBACK_DAYS,
) -> StreakResult:
    """Count consecutive completed days for one routine ending at ``on``."""

    streak = 0
    for day in days_back(on, lookback):
        if not is_active_on(routine, day):
            return StreakResult(streak)
        if not matches_schedule(routine.schedule_type, day, routine.x_per_week):
            continue
        if not is_completed(routine.id, day):
            return StreakResult(streak)
        streak += 1

    beyond = on - timedelta(days=lookback)
    continues = is_active_on(routine, beyond) and (
        not matches_schedule(routine.schedule_type, beyond, routine.x_per_week)
        or is_completed(routine.id, beyond)
    )
    return StreakResult(streak, window_exhausted=continues)


def gold_streak(
    routines: Sequence[Routine],
    is_completed: CompletionLookup,
    on: date,
    *,
    lookback: int = STREAK_LOOKBACK_DAYS,
) -> StreakResult:
    """Count consecutive days on which every routine active that day was done."""

    if not routines:
        return StreakResult(0)

    earliest_start = min(routine.start_date for routine in routines)
    streak = 0
    for day in days_back(on, lookback):
        if day < earliest_start:
            return StreakResult(streak)

        active = _scheduled_on(routines, day)
        if not active:
            continue

        if all(is_completed(routine.id, day) for routine in active):
            streak += 1
        else:
            return StreakResult(streak)

    beyond = on - timedelta(days=lookback)
    continues = beyond >= earliest_start and all(
        is_completed(routine.id, beyond) for routine in _scheduled_on(routines, beyond)
    )
    return StreakResult(streak, window_exhausted=continues)


def completed_days(
    session: Session,
    routine_ids: Iterable[int],
    until: date,
    *,
    lookback: int = STREAK_LOOKBACK_DAYS,
) -> Set[Tuple[int, date]]:
    """Load completed (routine id, date) pairs inside the lookback window."""

    ids: List[int] = list(routine_ids)
    if not ids:
        return set()

    since = until - timedelta(days=lookback)
    rows = (
        session.query(RoutineLog.routine_id, RoutineLog.date)
        .filter(
            RoutineLog.routine_id.in_(ids),
            RoutineLog.completed.is_(True),
            RoutineLog.date >= since,
            RoutineLog.date <= until,
        )
        .all()
    )
    return {(routine_id, day) for routine_id, day in rows}


def lookup_from(completed: Set[Tuple[int, date]]) -> CompletionLookup:
    """Wrap a set of completed pairs as a completion lookup."""

    return lambda routine_id, day: (routine_id, day) in completed
