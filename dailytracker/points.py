"""Points awarded for completions, streak bonuses and reflections."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import PointsEntry, Profile

logger = logging.getLogger(__name__)

POINTS = {
    "HABIT_COMPLETION": 10,
    "STREAK_BONUS_7": 50,
    "STREAK_BONUS_30": 200,
    "REFLECTION": 20,
}

STREAK_BONUSES = {7: "STREAK_BONUS_7", 30: "STREAK_BONUS_30"}


def award_points(
    session: Session,
    user_id: str,
    amount: int,
    reason: str,
    reference_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Add points to the profile total and log the award."""

    try:
        updated = (
            session.query(Profile)
            .filter(Profile.id == user_id)
            .update(
                {Profile.points: Profile.points + amount},
                synchronize_session=False,
            )
        )
        if not updated:
            return {"success": False, "points": 0}
        session.add(
            PointsEntry(
                user_id=user_id,
                amount=amount,
                reason=reason,
                reference_id=reference_id,
            )
        )
        session.flush()
    except SQLAlchemyError as exc:
        logger.error("Error awarding points to %s: %s", user_id, exc)
        return {"success": False, "points": 0}

    profile = session.get(Profile, user_id)
    if profile is not None:
        session.refresh(profile, ["points"])
    return {"success": True, "points": amount}


def already_awarded(
    session: Session, user_id: str, reason: str, reference_id: str
) -> bool:
    return (
        session.query(PointsEntry.id)
        .filter(
            PointsEntry.user_id == user_id,
            PointsEntry.reason == reason,
            PointsEntry.reference_id == reference_id,
        )
        .first()
        is not None
    )


def completion_awards(routine_streak: int) -> List[str]:
    """Point reasons earned by completing a routine at the given streak."""

    reasons = ["HABIT_COMPLETION"]
    bonus = STREAK_BONUSES.get(routine_streak)
    if bonus:
        reasons.append(bonus)
    return reasons


def points_summary(session: Session, user_id: str, limit: int = 20) -> Dict[str, Any]:
    profile = session.get(Profile, user_id)
    history = (
        session.query(PointsEntry)
        .filter(PointsEntry.user_id == user_id)
        .order_by(PointsEntry.created_at.desc(), PointsEntry.id.desc())
        .limit(limit)
        .all()
    )
    return {
        "total": profile.points if profile else 0,
        "history": [
            {
                "amount": entry.amount,
                "reason": entry.reason,
                "reference_id": entry.reference_id,
                "created_at": entry.created_at.isoformat()
                if entry.created_at
                else None,
            }
            for entry in history
        ],
    }
