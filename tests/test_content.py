from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import SQLAlchemyError

from dailytracker import ai, content, models, prompts

USER = "user-1"
TODAY = date(2025, 6, 1)


def _cached(db_session, streak_days: int = 7, **kwargs) -> models.Celebration:
    row = models.Celebration(
        user_id=USER,
        type=kwargs.pop("type", "gold_streak"),
        streak_days=streak_days,
        content=kwargs.pop("content", "Seven days of gold."),
        is_used=kwargs.pop("is_used", False),
        **kwargs,
    )
    db_session.add(row)
    db_session.commit()
    return row


def test_lookup_consumes_cached_celebration_once(db_session) -> None:
    _cached(db_session)

    first = content.consume_cached_celebration(db_session, USER, "gold_streak", 7)
    second = content.consume_cached_celebration(db_session, USER, "gold_streak", 7)

    assert first == "Seven days of gold."
    assert second is None
    assert db_session.query(models.Celebration).filter_by(is_used=False).count() == 0


def test_lookup_respects_habit_key(db_session) -> None:
    _cached(db_session, type="habit_streak", habit_id=4, content="Four")

    assert content.consume_cached_celebration(db_session, USER, "habit_streak", 7, 5) is None
    assert content.consume_cached_celebration(db_session, USER, "habit_streak", 7) is None
    assert content.consume_cached_celebration(db_session, USER, "habit_streak", 7, 4) == "Four"


def test_cache_hit_skips_generation(db_session, generator) -> None:
    _cached(db_session)

    message = asyncio.run(content.get_celebration(db_session, USER, "gold_streak", 7))

    assert message == "Seven days of gold."
    assert generator.prompts == []


def test_cache_miss_generates_and_stores_used_row(db_session, generator) -> None:
    _cached(db_session)
    content.consume_cached_celebration(db_session, USER, "gold_streak", 7)
    generator.queue("Fresh gold.")

    message = asyncio.run(content.get_celebration(db_session, USER, "gold_streak", 7))

    assert message == "Fresh gold."
    stored = db_session.query(models.Celebration).filter_by(content="Fresh gold.").one()
    assert stored.is_used is True
    assert "Gold Streak reaching 7 days" in generator.prompts[0]


def test_empty_generation_uses_fallback(db_session, generator) -> None:
    generator.queue("")

    message = asyncio.run(
        content.get_celebration(
            db_session, USER, "habit_streak", 30, habit_id=2, habit_title="Run"
        )
    )

    assert message == prompts.fallback("habit_streak")
    assert db_session.query(models.Celebration).count() == 1


def test_failed_generation_propagates_for_celebrations(db_session, generator) -> None:
    generator.queue(ai.GenerationError("boom"))

    with pytest.raises(ai.GenerationError):
        asyncio.run(content.get_celebration(db_session, USER, "gold_streak", 7))


def test_prompt_includes_goals_and_key_truth(db_session, generator) -> None:
    db_session.add(models.Profile(id=USER, key_truth="Show up daily.", points=0))
    db_session.add(models.Goal(user_id=USER, title="Run a marathon"))
    db_session.commit()

    asyncio.run(content.get_celebration(db_session, USER, "gold_streak", 30))

    assert "Run a marathon" in generator.prompts[0]
    assert "Show up daily." in generator.prompts[0]


def test_precompute_creates_one_celebration_and_is_idempotent(db_session, generator) -> None:
    asyncio.run(content.precompute(db_session, USER, 6, today=TODAY, horizon=0))
    asyncio.run(content.precompute(db_session, USER, 6, today=TODAY, horizon=0))

    rows = db_session.query(models.Celebration).all()
    assert len(rows) == 1
    assert (rows[0].type, rows[0].streak_days, rows[0].is_used) == ("gold_streak", 7, False)


def test_precompute_skips_non_milestones(db_session, generator) -> None:
    habits = [content.HabitStreak(id=1, title="Read", streak=5)]

    report = asyncio.run(
        content.precompute(db_session, USER, 7, habits, today=TODAY, horizon=0)
    )

    assert report.celebrations == []
    assert db_session.query(models.Celebration).count() == 0


def test_precompute_habit_milestone(db_session, generator) -> None:
    habits = [
        content.HabitStreak(id=1, title="Read", streak=29),
        content.HabitStreak(id=2, title="Stretch", streak=3),
    ]

    report = asyncio.run(
        content.precompute(db_session, USER, 0, habits, today=TODAY, horizon=0)
    )

    assert report.celebrations == [
        {"type": "habit_streak", "streak_days": 30, "habit_id": 1}
    ]
    assert "Read" in generator.prompts[0]


def test_precompute_then_lookup_consumes_precomputed_row(db_session, generator) -> None:
    generator.queue("Ready for day seven.")
    asyncio.run(content.precompute(db_session, USER, 6, today=TODAY, horizon=0))

    message = asyncio.run(content.get_celebration(db_session, USER, "gold_streak", 7))

    assert message == "Ready for day seven."
    assert len(generator.prompts) == 1


def test_precompute_continues_after_a_failed_item(db_session, generator) -> None:
    habits = [
        content.HabitStreak(id=1, title="Read", streak=6),
        content.HabitStreak(id=2, title="Run", streak=29),
    ]
    # Intentions for three days (day two uses the fallback), then gold, then habits
    generator.queue(
        "Day one.",
        ai.GenerationError("down"),
        "Day three.",
        ai.GenerationError("down"),
        "Read a week.",
        "Run a month.",
    )

    report = asyncio.run(
        content.precompute(db_session, USER, 2, habits, today=TODAY, horizon=3)
    )

    assert report.intentions == [TODAY + timedelta(days=n) for n in (1, 2, 3)]
    assert report.failures == ["gold_streak 3"]
    assert len(report.celebrations) == 2
    day_two = content.get_intention(db_session, USER, TODAY + timedelta(days=2))
    assert day_two.content == prompts.fallback("intention")


def test_precompute_without_celebrations(db_session, generator) -> None:
    report = asyncio.run(
        content.precompute(
            db_session, USER, 6, check_celebrations=False, today=TODAY, horizon=1
        )
    )

    assert report.intentions == [TODAY + timedelta(days=1)]
    assert db_session.query(models.Celebration).count() == 0


def test_intention_is_reused_unless_forced(db_session, generator) -> None:
    generator.queue("First intention.", "Second intention.")

    first = asyncio.run(content.get_or_create_intention(db_session, USER, TODAY))
    content.vote_intention(db_session, USER, TODAY, "up")
    again = asyncio.run(content.get_or_create_intention(db_session, USER, TODAY))
    assert again.content == "First intention."
    assert again.vote == "up"

    forced = asyncio.run(
        content.get_or_create_intention(db_session, USER, TODAY, force=True)
    )
    assert forced.id == first.id
    assert forced.content == "Second intention."
    assert forced.vote is None


def test_intention_generation_failure_falls_back(db_session, generator) -> None:
    generator.queue(ai.GenerationError("offline"))

    intention = asyncio.run(content.get_or_create_intention(db_session, USER, TODAY))

    assert intention.content == prompts.fallback("intention")
    assert intention.id is not None


def test_intention_save_failure_propagates(db_session, generator, monkeypatch) -> None:
    def _fail_flush(*args, **kwargs):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db_session, "flush", _fail_flush)

    with pytest.raises(SQLAlchemyError):
        asyncio.run(content.get_or_create_intention(db_session, USER, TODAY))


def test_vote_rejects_unknown_values(db_session) -> None:
    with pytest.raises(ValueError):
        content.vote_intention(db_session, USER, TODAY, "sideways")


def test_daily_question_falls_back_on_failure(generator) -> None:
    generator.queue(ai.GenerationError("quota"))

    question = asyncio.run(content.daily_question())

    assert question in prompts.FALLBACKS["daily_question"]


def test_daily_question_falls_back_on_empty_reply(generator) -> None:
    generator.queue("   ")

    assert asyncio.run(content.daily_question()) in prompts.FALLBACKS["daily_question"]


def test_daily_question_uses_generated_text(generator) -> None:
    generator.queue('"What would make today count?"')

    assert asyncio.run(content.daily_question()) == "What would make today count?"


def test_prune_removes_only_old_consumed_rows(db_session) -> None:
    _cached(db_session, is_used=True, content="old used")
    _cached(db_session, streak_days=30, is_used=False, content="waiting")
    cutoff = datetime.now(timezone.utc) + timedelta(days=1)

    deleted = content.prune_consumed_celebrations(db_session, cutoff)
    db_session.commit()

    assert deleted == 1
    assert [row.content for row in db_session.query(models.Celebration).all()] == ["waiting"]
