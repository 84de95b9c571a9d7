from __future__ import annotations

import datetime as dt
import logging
from typing import Collection, Iterable, List, Optional, Tuple

from hanzi_srs.config import Settings, load_settings
from hanzi_srs.db.models import Achievement, UserAchievement, UserProgress, UserStreak
from hanzi_srs.skills.progress_service import ReviewEvent

logger = logging.getLogger(__name__)

WORDS_MASTERED = "words_mastered"
STREAK = "streak"
REVIEWS_COUNT = "reviews_count"


class StreakTracker:
    """
    Daily study streak bookkeeping.

    A streak counts consecutive calendar days with at least one review.
    Days are taken in the configured timezone.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or load_settings()

    def record_activity(
        self,
        streak: Optional[UserStreak],
        *,
        user_id: int,
        today: dt.date,
    ) -> Tuple[UserStreak, bool]:
        """
        Register study activity on `today`.

        Returns the streak row (created if needed) and whether it changed.
        Activity on the same day as the last one is a no-op.
        """
        if streak is None:
            streak = UserStreak(
                user_id=user_id,
                current_streak=0,
                longest_streak=0,
                last_activity_date=None,
            )

        new_streak = 1
        last = streak.last_activity_date
        if last is not None:
            gap = (today - last).days
            if gap == 0:
                return streak, False
            if gap == 1:
                new_streak = (streak.current_streak or 0) + 1

        streak.current_streak = new_streak
        streak.longest_streak = max(new_streak, streak.longest_streak or 0)
        streak.last_activity_date = today
        return streak, True

    def on_review(
        self,
        event: ReviewEvent,
        streak: Optional[UserStreak],
        today: Optional[dt.date] = None,
    ) -> Tuple[UserStreak, bool]:
        if today is None:
            reviewed_at = event.reviewed_at
            if reviewed_at.tzinfo is not None:
                reviewed_at = reviewed_at.astimezone(self.settings.tzinfo)
            today = reviewed_at.date()
        return self.record_activity(streak, user_id=event.user_id, today=today)


class AchievementChecker:
    """Awards achievements whose condition the user now meets."""

    def check(
        self,
        *,
        user_id: int,
        achievements: Iterable[Achievement],
        earned_ids: Collection[int],
        progress_rows: Iterable[UserProgress],
        streak: Optional[UserStreak],
        now: Optional[dt.datetime] = None,
    ) -> List[UserAchievement]:
        """
        Return unsaved `UserAchievement` rows for newly earned achievements.

        Conditions:
        - words_mastered: number of mastered words
        - streak: current streak length
        - reviews_count: number of words with any progress
        """
        now = now or dt.datetime.now(dt.timezone.utc)

        rows = [p for p in progress_rows if p.user_id == user_id]
        metrics = {
            WORDS_MASTERED: sum(1 for p in rows if p.mastered),
            STREAK: (streak.current_streak or 0) if streak is not None else 0,
            REVIEWS_COUNT: len(rows),
        }

        awarded: List[UserAchievement] = []
        for achievement in achievements:
            if achievement.id in earned_ids:
                continue
            value = metrics.get(achievement.condition_type)
            if value is None:
                logger.warning(
                    "Skipping achievement %s with unknown condition type %r",
                    achievement.id,
                    achievement.condition_type,
                )
                continue
            if value >= achievement.condition_value:
                logger.info("User %s unlocked achievement %s", user_id, achievement.name)
                awarded.append(
                    UserAchievement(
                        user_id=user_id,
                        achievement_id=achievement.id,
                        earned_at=now,
                    )
                )

        return awarded
