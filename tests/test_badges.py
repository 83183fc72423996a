from __future__ import annotations

from dailytracker import badges, models
from dailytracker.badges import (
    BADGE_CATALOG,
    award_badges,
    effective_streak,
    owned_slugs,
    seed_badge_catalog,
)
from dailytracker.milestones import (
    GOLD_MILESTONES,
    HABIT_MILESTONES,
    qualifying,
    reached,
    upcoming,
)

BADGE_THRESHOLDS = [1, 7, 30, 100, 365, 1000]


def _profile(db_session, current: int = 0, best: int = 0) -> models.Profile:
    profile = models.Profile(
        id="user-1", current_gold_streak=current, best_gold_streak=best, points=0
    )
    db_session.add(profile)
    db_session.flush()
    return profile


def test_qualifying_thresholds() -> None:
    assert qualifying(BADGE_THRESHOLDS, 7) == [1, 7]
    assert qualifying(BADGE_THRESHOLDS, 0) == []
    assert qualifying(BADGE_THRESHOLDS, 2000) == BADGE_THRESHOLDS


def test_reached_and_upcoming() -> None:
    assert reached(HABIT_MILESTONES, 30) == [30]
    assert reached(HABIT_MILESTONES, 31) == []
    assert upcoming(GOLD_MILESTONES, 6) == 7
    assert upcoming(GOLD_MILESTONES, 7) is None


def test_catalog_matches_badge_thresholds() -> None:
    assert [badge.threshold for badge in BADGE_CATALOG] == BADGE_THRESHOLDS


def test_seed_is_idempotent(db_session) -> None:
    assert seed_badge_catalog(db_session) == 0
    assert db_session.query(models.Badge).count() == len(BADGE_CATALOG)


def test_effective_streak_uses_the_better_counter(db_session) -> None:
    assert effective_streak(_profile(db_session, current=3, best=12)) == 12


def test_awards_only_badges_not_already_owned(db_session) -> None:
    profile = _profile(db_session, current=7, best=7)
    first = db_session.query(models.Badge).filter_by(slug="gold_streak_1").one()
    db_session.add(models.UserBadge(user_id=profile.id, badge_id=first.id))
    db_session.flush()

    awarded = award_badges(db_session, profile)

    assert [badge.slug for badge in awarded] == ["gold_streak_7"]
    assert owned_slugs(db_session, profile.id) == {"gold_streak_1", "gold_streak_7"}


def test_second_check_awards_nothing(db_session) -> None:
    profile = _profile(db_session, current=0, best=30)

    assert [badge.threshold for badge in award_badges(db_session, profile)] == [1, 7, 30]
    assert award_badges(db_session, profile) == []


def test_no_streak_no_badges(db_session) -> None:
    assert award_badges(db_session, _profile(db_session)) == []


def test_badge_stored_concurrently_is_skipped(db_session, monkeypatch) -> None:
    profile = _profile(db_session, current=7, best=7)
    first = db_session.query(models.Badge).filter_by(slug="gold_streak_1").one()
    db_session.add(models.UserBadge(user_id=profile.id, badge_id=first.id))
    db_session.commit()
    # Ownership read before the other request's insert landed
    monkeypatch.setattr(badges, "owned_slugs", lambda session, user_id: set())

    awarded = award_badges(db_session, profile)
    db_session.commit()

    assert [badge.slug for badge in awarded] == ["gold_streak_7"]
    assert db_session.query(models.UserBadge).count() == 2
