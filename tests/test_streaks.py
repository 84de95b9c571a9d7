from __future__ import annotations

import datetime as dt
import logging

from hanzi_srs.config import Settings
from hanzi_srs.db.models import Achievement, UserProgress, UserStreak
from hanzi_srs.skills.progress_service import ReviewEvent
from hanzi_srs.skills.scheduler import Difficulty
from hanzi_srs.skills.streaks import AchievementChecker, StreakTracker


def _streak(current: int, longest: int, last: dt.date | None) -> UserStreak:
    return UserStreak(
        user_id=1,
        current_streak=current,
        longest_streak=longest,
        last_activity_date=last,
    )


def _achievement(id_: int, condition_type: str, condition_value: int) -> Achievement:
    return Achievement(
        id=id_,
        name=f"Achievement {id_}",
        description=None,
        condition_type=condition_type,
        condition_value=condition_value,
    )


def _progress(vocabulary_id: int, mastered: bool, user_id: int = 1) -> UserProgress:
    return UserProgress(
        user_id=user_id,
        vocabulary_id=vocabulary_id,
        mastered=mastered,
        review_count=1,
        ease_factor=2.5,
    )


def test_first_activity_starts_streak():
    tracker = StreakTracker()

    streak, changed = tracker.record_activity(None, user_id=1, today=dt.date(2025, 1, 10))

    assert changed is True
    assert streak.user_id == 1
    assert streak.current_streak == 1
    assert streak.longest_streak == 1
    assert streak.last_activity_date == dt.date(2025, 1, 10)


def test_consecutive_day_extends_streak():
    tracker = StreakTracker()
    streak = _streak(4, 4, dt.date(2025, 1, 9))

    streak, changed = tracker.record_activity(streak, user_id=1, today=dt.date(2025, 1, 10))

    assert changed is True
    assert streak.current_streak == 5
    assert streak.longest_streak == 5


def test_same_day_activity_is_noop():
    tracker = StreakTracker()
    streak = _streak(3, 7, dt.date(2025, 1, 10))

    streak, changed = tracker.record_activity(streak, user_id=1, today=dt.date(2025, 1, 10))

    assert changed is False
    assert streak.current_streak == 3
    assert streak.longest_streak == 7


def test_gap_resets_streak_but_keeps_longest():
    tracker = StreakTracker()
    streak = _streak(6, 6, dt.date(2025, 1, 7))

    streak, changed = tracker.record_activity(streak, user_id=1, today=dt.date(2025, 1, 10))

    assert changed is True
    assert streak.current_streak == 1
    assert streak.longest_streak == 6
    assert streak.last_activity_date == dt.date(2025, 1, 10)


def test_on_review_uses_configured_timezone_for_day():
    # 02:00 UTC on Jan 10 is still Jan 9 in New York.
    event = ReviewEvent(
        user_id=1,
        vocabulary_id=3,
        difficulty=Difficulty.MEDIUM,
        reviewed_at=dt.datetime(2025, 1, 10, 2, 0, tzinfo=dt.timezone.utc),
        interval=3,
    )
    streak = _streak(2, 2, dt.date(2025, 1, 9))

    utc_streak, utc_changed = StreakTracker(Settings()).on_review(
        event, _streak(2, 2, dt.date(2025, 1, 9))
    )
    ny_streak, ny_changed = StreakTracker(Settings(timezone="America/New_York")).on_review(
        event, streak
    )

    assert utc_changed is True
    assert utc_streak.current_streak == 3
    assert ny_changed is False
    assert ny_streak.current_streak == 2


def test_achievement_checker_awards_met_conditions():
    checker = AchievementChecker()
    now = dt.datetime(2025, 1, 10, tzinfo=dt.timezone.utc)
    achievements = [
        _achievement(1, "words_mastered", 2),
        _achievement(2, "words_mastered", 5),
        _achievement(3, "streak", 3),
        _achievement(4, "reviews_count", 3),
        _achievement(5, "reviews_count", 1),
    ]
    progress_rows = [
        _progress(1, mastered=True),
        _progress(2, mastered=True),
        _progress(3, mastered=False),
        _progress(4, mastered=True, user_id=2),
    ]

    awarded = checker.check(
        user_id=1,
        achievements=achievements,
        earned_ids={5},
        progress_rows=progress_rows,
        streak=_streak(3, 3, dt.date(2025, 1, 10)),
        now=now,
    )

    assert [a.achievement_id for a in awarded] == [1, 3, 4]
    assert all(a.user_id == 1 and a.earned_at == now for a in awarded)


def test_achievement_checker_without_streak_row():
    checker = AchievementChecker()

    awarded = checker.check(
        user_id=1,
        achievements=[_achievement(1, "streak", 1)],
        earned_ids=set(),
        progress_rows=[],
        streak=None,
    )

    assert awarded == []


def test_achievement_checker_skips_unknown_condition(caplog):
    checker = AchievementChecker()

    with caplog.at_level(logging.WARNING, logger="hanzi_srs.skills.streaks"):
        awarded = checker.check(
            user_id=1,
            achievements=[_achievement(9, "perfect_quiz", 1)],
            earned_ids=set(),
            progress_rows=[_progress(1, mastered=True)],
            streak=None,
        )

    assert awarded == []
    assert "unknown condition type" in caplog.text
