"""Cached AI content: celebrations, daily intentions and the daily question.

Celebrations are single-use rows keyed by (user, type, streak length,
optional habit).  They are either generated on demand and stored as already
used, or precomputed ahead of a milestone and consumed later.  Daily
intentions are one row per user per date.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Awaitable, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import ai, prompts
from .config import ALT_MODEL_NAME, INTENTION_HORIZON_DAYS
from .milestones import GOLD_MILESTONES, HABIT_MILESTONES, upcoming
from .models import Celebration, DailyIntention
from .profiles import prompt_context
from .time_utils import days_ahead, local_today

logger = logging.getLogger(__name__)

VOTES = ("up", "down")


def _celebration_query(
    session: Session,
    user_id: str,
    content_type: str,
    streak_days: int,
    habit_id: Optional[int],
):
    query = session.query(Celebration).filter(
        Celebration.user_id == user_id,
        Celebration.type == content_type,
        Celebration.streak_days == streak_days,
    )
    if habit_id is None:
        return query.filter(Celebration.habit_id.is_(None))
    return query.filter(Celebration.habit_id == habit_id)


def consume_cached_celebration(
    session: Session,
    user_id: str,
    content_type: str,
    streak_days: int,
    habit_id: Optional[int] = None,
) -> Optional[str]:
    """Claim an unused cached celebration and return its text.

    The claim is a conditional update that only succeeds while the row is
    still unused, so two concurrent callers can never both receive it.
    """
    candidates = (
        _celebration_query(session, user_id, content_type, streak_days, habit_id)
        .filter(Celebration.is_used.is_(False))
        .order_by(Celebration.created_at.asc(), Celebration.id.asc())
        .all()
    )
    for candidate in candidates:
        claimed = (
            session.query(Celebration)
            .filter(Celebration.id == candidate.id, Celebration.is_used.is_(False))
            .update({Celebration.is_used: True}, synchronize_session=False)
        )
        if claimed == 1:
            content = candidate.content
            session.expire(candidate)
            return content
    return None


async def _generate_celebration(
    session: Session,
    user_id: str,
    content_type: str,
    streak_days: int,
    habit_title: Optional[str],
) -> str:
    goals, key_truth = prompt_context(session, user_id)
    prompt = prompts.celebration_prompt(
        content_type,
        streak_days,
        goal_titles=goals,
        key_truth=key_truth,
        habit_title=habit_title,
    )
    text = await ai.generate_text(
        prompt, system=prompts.COACH_PERSONA, context="celebration"
    )
    return text or prompts.fallback(content_type)


async def get_celebration(
    session: Session,
    user_id: str,
    content_type: str,
    streak_days: int,
    *,
    habit_id: Optional[int] = None,
    habit_title: Optional[str] = None,
) -> str:
    """Return a celebration message, from the cache when one is waiting.

    On a miss the message is generated and stored as already used.  A failed
    generation call propagates as ``ai.GenerationError``.
    """
    cached = consume_cached_celebration(
        session, user_id, content_type, streak_days, habit_id
    )
    if cached is not None:
        return cached

    content = await _generate_celebration(
        session, user_id, content_type, streak_days, habit_title
    )
    session.add(
        Celebration(
            user_id=user_id,
            type=content_type,
            streak_days=streak_days,
            habit_id=habit_id,
            content=content,
            is_used=True,
        )
    )
    session.flush()
    return content


async def precompute_celebration(
    session: Session,
    user_id: str,
    content_type: str,
    streak_days: int,
    *,
    habit_id: Optional[int] = None,
    habit_title: Optional[str] = None,
) -> bool:
    """Store an unused celebration for a future milestone.

    Returns False when any row for the key already exists, used or not.
    """
    exists = _celebration_query(
        session, user_id, content_type, streak_days, habit_id
    ).first()
    if exists is not None:
        return False

    content = await _generate_celebration(
        session, user_id, content_type, streak_days, habit_title
    )
    session.add(
        Celebration(
            user_id=user_id,
            type=content_type,
            streak_days=streak_days,
            habit_id=habit_id,
            content=content,
            is_used=False,
        )
    )
    session.flush()
    return True


def prune_consumed_celebrations(session: Session, older_than: datetime) -> int:
    """Delete consumed celebrations created before ``older_than``."""

    deleted = (
        session.query(Celebration)
        .filter(Celebration.is_used.is_(True), Celebration.created_at < older_than)
        .delete(synchronize_session=False)
    )
    if deleted:
        logger.info("Pruned %d consumed celebrations", deleted)
    return deleted


# -- Daily intentions -------------------------------------------------------


def serialize_intention(intention: DailyIntention) -> Dict[str, Any]:
    return {
        "id": intention.id,
        "user_id": intention.user_id,
        "date": intention.date.isoformat(),
        "content": intention.content,
        "vote": intention.vote,
        "created_at": intention.created_at.isoformat()
        if intention.created_at
        else None,
    }


def get_intention(session: Session, user_id: str, day: date) -> Optional[DailyIntention]:
    return (
        session.query(DailyIntention)
        .filter(DailyIntention.user_id == user_id, DailyIntention.date == day)
        .one_or_none()
    )


async def generate_intention_text(session: Session, user_id: str, day: date) -> str:
    """Generate intention text, falling back to a fixed line on any failure."""

    goals, key_truth = prompt_context(session, user_id)
    prompt = prompts.intention_prompt(day, goal_titles=goals, key_truth=key_truth)
    try:
        text = await ai.generate_text(
            prompt, system=prompts.COACH_PERSONA, context="intention"
        )
    except ai.GenerationError:
        logger.warning("Intention generation failed for %s on %s", user_id, day)
        text = ""
    return text or prompts.fallback("intention")


async def get_or_create_intention(
    session: Session, user_id: str, day: date, *, force: bool = False
) -> DailyIntention:
    """Return the user's intention for ``day``, generating it when missing.

    ``force`` regenerates the content of an existing intention and clears its
    vote.  Persistence errors propagate.
    """
    existing = get_intention(session, user_id, day)
    if existing is not None and not force:
        return existing

    content = await generate_intention_text(session, user_id, day)

    if existing is not None:
        existing.content = content
        existing.vote = None
        session.flush()
        return existing

    try:
        with session.begin_nested():
            intention = DailyIntention(user_id=user_id, date=day, content=content)
            session.add(intention)
    except IntegrityError:
        # Another request stored the same (user, date) first; keep theirs.
        winner = get_intention(session, user_id, day)
        if winner is None:
            raise
        return winner
    return intention


def vote_intention(
    session: Session, user_id: str, day: date, vote: Optional[str]
) -> Optional[DailyIntention]:
    if vote is not None and vote not in VOTES:
        raise ValueError(f"Unsupported vote: {vote}")
    intention = get_intention(session, user_id, day)
    if intention is None:
        return None
    intention.vote = vote
    session.flush()
    return intention


# -- Daily question ---------------------------------------------------------


async def daily_question() -> str:
    """Generate today's reflective question; never raises on model failure."""

    try:
        question = await ai.generate_text(
            "Generate today's question.",
            system=prompts.DAILY_QUESTION_SYSTEM_PROMPT,
            model=ALT_MODEL_NAME,
            temperature=1.0,
            context="daily question",
        )
    except ai.GenerationError:
        question = ""
    return question.strip().strip('"') or prompts.fallback("daily_question")


# -- Precompute -------------------------------------------------------------


@dataclass
class HabitStreak:
    id: int
    title: str
    streak: int


@dataclass
class PrecomputeReport:
    intentions: List[date] = field(default_factory=list)
    celebrations: List[Dict[str, Any]] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)


async def _precompute_item(
    session: Session, label: str, report: PrecomputeReport, coro: Awaitable[bool]
) -> bool:
    """Run one precompute step in its own commit; log and skip on failure."""

    try:
        created = await coro
        session.commit()
        return bool(created)
    except (ai.GenerationError, SQLAlchemyError) as exc:
        session.rollback()
        logger.warning("Precompute of %s failed: %s", label, exc)
        report.failures.append(label)
        return False


async def _precompute_intention(session: Session, user_id: str, day: date) -> bool:
    if get_intention(session, user_id, day) is not None:
        return False
    await get_or_create_intention(session, user_id, day)
    return True


async def precompute(
    session: Session,
    user_id: str,
    gold_streak: int,
    habit_streaks: Iterable[HabitStreak] = (),
    *,
    check_celebrations: bool = True,
    today: Optional[date] = None,
    horizon: int = INTENTION_HORIZON_DAYS,
) -> PrecomputeReport:
    """Prepare upcoming intentions and milestone celebrations ahead of time."""

    report = PrecomputeReport()
    start = today or local_today()

    for day in days_ahead(start, horizon):
        if await _precompute_item(
            session,
            f"intention {day.isoformat()}",
            report,
            _precompute_intention(session, user_id, day),
        ):
            report.intentions.append(day)

    if not check_celebrations:
        return report

    next_gold = upcoming(GOLD_MILESTONES, gold_streak)
    if next_gold is not None:
        if await _precompute_item(
            session,
            f"gold_streak {next_gold}",
            report,
            precompute_celebration(session, user_id, "gold_streak", next_gold),
        ):
            report.celebrations.append({"type": "gold_streak", "streak_days": next_gold})

    for habit in habit_streaks:
        next_habit = upcoming(HABIT_MILESTONES, habit.streak)
        if next_habit is None:
            continue
        if await _precompute_item(
            session,
            f"habit_streak {habit.id}:{next_habit}",
            report,
            precompute_celebration(
                session,
                user_id,
                "habit_streak",
                next_habit,
                habit_id=habit.id,
                habit_title=habit.title,
            ),
        ):
            report.celebrations.append(
                {"type": "habit_streak", "streak_days": next_habit, "habit_id": habit.id}
            )

    return report
