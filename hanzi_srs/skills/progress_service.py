from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from hanzi_srs.config import Settings, load_settings
from hanzi_srs.db.models import UserProgress, Vocabulary
from hanzi_srs.skills.scheduler import (
    Difficulty,
    ReviewScheduler,
    ReviewSummary,
    is_due,
    summarize_reviews,
)
from hanzi_srs.skills.schemas import (
    LevelProgress,
    MasteryStatsResponse,
    ReviewRequest,
    ReviewResponse,
    ReviewStatsResponse,
)

logger = logging.getLogger(__name__)


@dataclass
class ProgressConfig:
    """Flashcard deck size used when the caller asks for no particular limit."""

    default_limit: int = 20


@dataclass(frozen=True)
class ReviewEvent:
    """Emitted once per recorded review; consumed by the streak tracker."""

    user_id: int
    vocabulary_id: int
    difficulty: Difficulty
    reviewed_at: dt.datetime
    interval: int


@dataclass
class MasteryStats:
    total: int = 0
    mastered: int = 0
    learning: int = 0
    # hsk_level -> (mastered, learning)
    by_level: Dict[int, Tuple[int, int]] = field(default_factory=dict)


class ProgressService:
    """
    A learner's word-by-word study record.

    Review buttons, the mastered toggle, the flashcard deck and the
    dashboard counters all go through here. Rows come in from the item
    store and go back out changed or freshly built; saving them is the
    caller's job.
    """

    def __init__(
        self,
        config: Optional[ProgressConfig] = None,
        scheduler: Optional[ReviewScheduler] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.config = config or ProgressConfig()
        self.settings = settings or load_settings()
        self.scheduler = scheduler or ReviewScheduler.from_settings(self.settings)

    def _new_progress(self, *, user_id: int, vocabulary_id: int) -> UserProgress:
        return UserProgress(
            user_id=user_id,
            vocabulary_id=vocabulary_id,
            mastered=False,
            difficulty=None,
            last_reviewed=None,
            next_review=None,
            review_count=0,
            ease_factor=self.scheduler.config.initial_ease_factor,
        )

    def record_review(
        self,
        *,
        user_id: int,
        vocabulary_id: int,
        progress: Optional[UserProgress],
        difficulty: Union[Difficulty, str],
        mastered: Optional[bool] = None,
        now: Optional[dt.datetime] = None,
    ) -> tuple[UserProgress, ReviewEvent]:
        """
        Apply one review to a word's progress row.

        The schedule is computed from the ease factor and review count as
        they were before this review; the count is then incremented once.
        `mastered` overrides the stored flag only when given.
        """
        difficulty = Difficulty(difficulty)
        now = now or dt.datetime.now(dt.timezone.utc)

        if progress is None:
            progress = self._new_progress(user_id=user_id, vocabulary_id=vocabulary_id)

        current_count = progress.review_count or 0
        scheduled = self.scheduler.compute_next_review(
            difficulty,
            ease_factor=progress.ease_factor,
            review_count=current_count,
            now=now,
        )

        progress.difficulty = difficulty.value
        progress.last_reviewed = now
        progress.next_review = scheduled.next_review_date
        progress.ease_factor = scheduled.new_ease_factor
        progress.review_count = current_count + 1
        if mastered is not None:
            progress.mastered = mastered
        elif progress.mastered is None:
            progress.mastered = False

        logger.debug(
            "User %s reviewed vocabulary %s as %s; next review in %s days",
            user_id,
            vocabulary_id,
            difficulty.value,
            scheduled.interval,
        )

        event = ReviewEvent(
            user_id=user_id,
            vocabulary_id=vocabulary_id,
            difficulty=difficulty,
            reviewed_at=now,
            interval=scheduled.interval,
        )
        return progress, event

    def submit_review(
        self,
        request: ReviewRequest,
        *,
        user_id: int,
        progress: Optional[UserProgress],
        now: Optional[dt.datetime] = None,
    ) -> tuple[UserProgress, ReviewEvent, ReviewResponse]:
        """Record a validated review request and build the response body."""
        updated, event = self.record_review(
            user_id=user_id,
            vocabulary_id=request.vocabulary_id,
            progress=progress,
            difficulty=request.difficulty,
            mastered=request.mastered,
            now=now,
        )
        response = ReviewResponse(
            vocabulary_id=request.vocabulary_id,
            next_review=updated.next_review,
            ease_factor=updated.ease_factor,
            interval=event.interval,
            review_count=updated.review_count,
            mastered=updated.mastered,
        )
        return updated, event, response

    def toggle_mastered(
        self,
        *,
        user_id: int,
        vocabulary_id: int,
        progress: Optional[UserProgress],
        mastered: bool,
    ) -> UserProgress:
        """Set the mastered flag without touching the review schedule."""
        if progress is None:
            progress = self._new_progress(user_id=user_id, vocabulary_id=vocabulary_id)
        progress.mastered = mastered
        return progress

    def get_due_vocabulary(
        self,
        *,
        user_id: int,
        vocabulary: Sequence[Vocabulary],
        progress_rows: Iterable[UserProgress],
        limit: Optional[int] = None,
        now: Optional[dt.datetime] = None,
    ) -> List[Vocabulary]:
        """
        Select the next words for a flashcard session.

        Strategy:
        - Words whose progress is due (next_review <= now), earliest first.
        - Then words with a progress row but no schedule (e.g. only marked
          mastered), then words the user has never reviewed.
        """
        if limit is None or limit <= 0:
            limit = self.config.default_limit

        now = now or dt.datetime.now(dt.timezone.utc)

        user_progress = {
            p.vocabulary_id: p
            for p in progress_rows
            if p.user_id == user_id
        }

        due_entries = []
        unscheduled: List[Vocabulary] = []
        new_words: List[Vocabulary] = []
        for word in vocabulary:
            if word.user_id != user_id:
                continue
            progress = user_progress.get(word.id)
            if progress is None:
                new_words.append(word)
            elif progress.next_review is None:
                unscheduled.append(word)
            elif is_due(progress.next_review, now):
                due_entries.append((progress.next_review, word))

        selected = [word for _, word in sorted(due_entries, key=lambda x: x[0])]
        selected.extend(unscheduled)
        selected.extend(new_words)
        return selected[:limit]

    def get_review_stats(
        self,
        *,
        user_id: int,
        progress_rows: Iterable[UserProgress],
        now: Optional[dt.datetime] = None,
        tz: Optional[dt.tzinfo] = None,
    ) -> ReviewSummary:
        rows = [p for p in progress_rows if p.user_id == user_id]
        return summarize_reviews(rows, now, tz=tz or self.settings.tzinfo)

    def get_mastery_stats(
        self,
        *,
        user_id: int,
        vocabulary: Sequence[Vocabulary],
        progress_rows: Iterable[UserProgress],
    ) -> MasteryStats:
        """
        Count mastered versus still-learning words, overall and per HSK level.

        Words without a progress row count as learning.
        """
        mastered_ids = {
            p.vocabulary_id
            for p in progress_rows
            if p.user_id == user_id and p.mastered
        }

        stats = MasteryStats()
        levels: Dict[int, List[int]] = {}
        for word in vocabulary:
            if word.user_id != user_id:
                continue
            counts = levels.setdefault(word.hsk_level, [0, 0])
            stats.total += 1
            if word.id in mastered_ids:
                stats.mastered += 1
                counts[0] += 1
            else:
                stats.learning += 1
                counts[1] += 1

        stats.by_level = {
            level: (counts[0], counts[1])
            for level, counts in sorted(levels.items())
        }
        return stats


def review_stats_response(summary: ReviewSummary) -> ReviewStatsResponse:
    return ReviewStatsResponse(
        due_today=summary.due_today,
        reviewed_today=summary.reviewed_today,
        total_reviews=summary.total_reviews,
    )


def mastery_stats_response(stats: MasteryStats) -> MasteryStatsResponse:
    return MasteryStatsResponse(
        total=stats.total,
        mastered=stats.mastered,
        learning=stats.learning,
        by_level={
            level: LevelProgress(mastered=mastered, learning=learning)
            for level, (mastered, learning) in stats.by_level.items()
        },
    )
