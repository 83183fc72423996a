"""Per-user profile helpers."""

from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from .models import Goal, Profile


def get_or_create_profile(
    session: Session, user_id: str, email: Optional[str] = None
) -> Profile:
    profile = session.get(Profile, user_id)
    if profile is None:
        profile = Profile(
            id=user_id,
            email=email,
            current_gold_streak=0,
            best_gold_streak=0,
            points=0,
        )
        session.add(profile)
        session.flush()
    elif email and profile.email != email:
        profile.email = email
    return profile


def goal_titles(session: Session, user_id: str) -> List[str]:
    rows = (
        session.query(Goal.title)
        .filter(Goal.user_id == user_id)
        .order_by(Goal.id.asc())
        .all()
    )
    return [title for (title,) in rows]


def prompt_context(session: Session, user_id: str) -> Tuple[List[str], Optional[str]]:
    """Goal titles and key truth used to personalise generated content."""

    profile = session.get(Profile, user_id)
    return goal_titles(session, user_id), profile.key_truth if profile else None


def record_gold_streak(profile: Profile, current: int) -> None:
    """Store the current gold streak; the best streak never decreases."""

    current = max(0, int(current))
    profile.current_gold_streak = current
    profile.best_gold_streak = max(profile.best_gold_streak or 0, current)
