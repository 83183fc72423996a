"""Badge catalog and awarding."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .milestones import qualifying
from .models import Badge, Profile, UserBadge

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BadgeDefinition:
    slug: str
    name: str
    threshold: int
    category: str = "gold_streak"


BADGE_CATALOG: List[BadgeDefinition] = [
    BadgeDefinition("gold_streak_1", "First Gold Day", 1),
    BadgeDefinition("gold_streak_7", "Golden Week", 7),
    BadgeDefinition("gold_streak_30", "Golden Month", 30),
    BadgeDefinition("gold_streak_100", "Century of Gold", 100),
    BadgeDefinition("gold_streak_365", "Golden Year", 365),
    BadgeDefinition("gold_streak_1000", "Gold Legend", 1000),
]


def seed_badge_catalog(session: Session) -> int:
    """Insert catalog badges that are missing from the database."""

    existing = {slug for (slug,) in session.query(Badge.slug).all()}
    added = 0
    for definition in BADGE_CATALOG:
        if definition.slug in existing:
            continue
        session.add(
            Badge(
                slug=definition.slug,
                name=definition.name,
                threshold=definition.threshold,
                category=definition.category,
            )
        )
        added += 1
    session.flush()
    return added


def serialize_badge(badge: Badge) -> Dict[str, Any]:
    return {
        "id": badge.id,
        "slug": badge.slug,
        "name": badge.name,
        "threshold": badge.threshold,
        "category": badge.category,
    }


def owned_slugs(session: Session, user_id: str) -> Set[str]:
    rows = (
        session.query(Badge.slug)
        .join(UserBadge, UserBadge.badge_id == Badge.id)
        .filter(UserBadge.user_id == user_id)
        .all()
    )
    return {slug for (slug,) in rows}


def effective_streak(profile: Profile) -> int:
    """Lifetime milestones count the better of the current and best streak."""

    return max(profile.current_gold_streak or 0, profile.best_gold_streak or 0)


def award_badges(session: Session, profile: Profile) -> List[Badge]:
    """Award every unowned catalog badge the profile's streak qualifies for.

    Ownership is append-only.  Each award is inserted in its own savepoint;
    one rejected by the (user, badge) unique constraint was already stored by
    a concurrent request and is skipped.
    """
    streak = effective_streak(profile)
    owned = owned_slugs(session, profile.id)
    catalog = (
        session.query(Badge)
        .filter(Badge.category == "gold_streak")
        .order_by(Badge.threshold.asc())
        .all()
    )
    unlocked = set(qualifying([badge.threshold for badge in catalog], streak))

    awarded: List[Badge] = []
    for badge in catalog:
        if badge.slug in owned or badge.threshold not in unlocked:
            continue
        try:
            with session.begin_nested():
                session.add(UserBadge(user_id=profile.id, badge_id=badge.id))
        except IntegrityError:
            logger.info("Badge %s already owned by %s", badge.slug, profile.id)
            continue
        awarded.append(badge)

    if awarded:
        logger.info(
            "Awarded %s to %s",
            ", ".join(badge.slug for badge in awarded),
            profile.id,
        )
    return awarded
