from __future__ import annotations

import datetime as dt
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Protocol, Union, runtime_checkable

from hanzi_srs.config import Settings

logger = logging.getLogger(__name__)


class Difficulty(str, Enum):
    """Self-reported recall difficulty for a single review."""

    AGAIN = "again"
    HARD = "hard"
    MEDIUM = "medium"
    EASY = "easy"


@runtime_checkable
class SupportsReviewState(Protocol):
    """
    The four review fields the item store keeps for each word.

    `UserProgress` rows fit this shape; so does any object carrying the
    same attributes, which is all `summarize_reviews` reads.
    """

    ease_factor: Optional[float]
    review_count: Optional[int]
    last_reviewed: Optional[dt.datetime]
    next_review: Optional[dt.datetime]


@dataclass
class SchedulerConfig:
    """Config values for the review scheduler."""

    initial_ease_factor: float = 2.5
    min_ease_factor: float = 1.3
    # None leaves ease growth on "easy" unbounded.
    max_ease_factor: Optional[float] = None
    again_penalty: float = 0.2
    hard_penalty: float = 0.15
    easy_bonus: float = 0.1
    hard_interval_multiplier: float = 1.2
    easy_interval_multiplier: float = 1.3
    medium_second_interval: int = 3
    easy_first_interval: int = 3


@dataclass(frozen=True)
class ScheduledReview:
    next_review_date: dt.datetime
    new_ease_factor: float
    interval: int


@dataclass(frozen=True)
class ReviewSummary:
    """
    Review counters over a collection of items.

    `due_today` counts everything due *now*, including items overdue from
    earlier days, not only those falling due on today's date.
    """

    due_today: int = 0
    reviewed_today: int = 0
    total_reviews: int = 0


class ReviewScheduler:
    """
    SuperMemo-2 derived scheduler driven by four difficulty buttons.

        - again: ease drops by 0.2, review tomorrow
        - hard:  ease drops by 0.15, interval grows by 1.2x the review count
        - medium: ease unchanged, 1 then 3 days, then review count x ease
        - easy:  ease grows by 0.1, 3 days first, then count x ease x 1.3

    The ease factor never drops below `min_ease_factor`. Only the two
    decreasing branches need the floor.
    """

    def __init__(self, config: Optional[SchedulerConfig] = None) -> None:
        self.config = config or SchedulerConfig()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReviewScheduler":
        return cls(SchedulerConfig(max_ease_factor=settings.max_ease_factor))

    def compute_next_review(
        self,
        difficulty: Union[Difficulty, str],
        ease_factor: Optional[float] = None,
        review_count: Optional[int] = None,
        *,
        now: Optional[dt.datetime] = None,
    ) -> ScheduledReview:
        """
        Compute the new ease factor and next review date for one review.

        `review_count` is the number of reviews completed *before* this one.
        Missing ease factor and review count fall back to the defaults of a
        never-reviewed item.
        """
        difficulty = Difficulty(difficulty)
        cfg = self.config

        ef = cfg.initial_ease_factor if ease_factor is None else float(ease_factor)
        if review_count is None:
            count = 0
        elif review_count != int(review_count):
            raise ValueError("review_count must be a whole number")
        else:
            count = int(review_count)
        if count < 0:
            raise ValueError("review_count must be non-negative")
        if ef < cfg.min_ease_factor:
            raise ValueError(f"ease_factor must be at least {cfg.min_ease_factor}")

        now = now or dt.datetime.now(dt.timezone.utc)

        if difficulty is Difficulty.AGAIN:
            new_ef = max(cfg.min_ease_factor, ef - cfg.again_penalty)
            interval = 1
        elif difficulty is Difficulty.HARD:
            new_ef = max(cfg.min_ease_factor, ef - cfg.hard_penalty)
            interval = 1 if count == 0 else math.ceil(count * cfg.hard_interval_multiplier)
        elif difficulty is Difficulty.MEDIUM:
            new_ef = ef
            if count == 0:
                interval = 1
            elif count == 1:
                interval = cfg.medium_second_interval
            else:
                interval = math.ceil(count * new_ef)
        else:
            new_ef = ef + cfg.easy_bonus
            if cfg.max_ease_factor is not None and new_ef > cfg.max_ease_factor:
                new_ef = max(ef, cfg.max_ease_factor)
            if count == 0:
                interval = cfg.easy_first_interval
            else:
                interval = math.ceil(count * new_ef * cfg.easy_interval_multiplier)

        logger.debug(
            "Scheduled %s review: ease %.2f -> %.2f, count %s, interval %s days",
            difficulty.value,
            ef,
            new_ef,
            count,
            interval,
        )

        return ScheduledReview(
            next_review_date=now + dt.timedelta(days=interval),
            new_ease_factor=new_ef,
            interval=interval,
        )


_default_scheduler = ReviewScheduler()


def compute_next_review(
    difficulty: Union[Difficulty, str],
    ease_factor: Optional[float] = None,
    review_count: Optional[int] = None,
    *,
    now: Optional[dt.datetime] = None,
) -> ScheduledReview:
    """Schedule one review with the default configuration."""
    return _default_scheduler.compute_next_review(
        difficulty,
        ease_factor,
        review_count,
        now=now,
    )


def is_due(next_review: Optional[dt.datetime], now: Optional[dt.datetime] = None) -> bool:
    """An item is due when it was never scheduled or its time has come."""
    if next_review is None:
        return True
    now = now or dt.datetime.now(dt.timezone.utc)
    return now >= next_review


def _local_date(value: dt.datetime, tz: Optional[dt.tzinfo]) -> dt.date:
    if tz is not None and value.tzinfo is not None:
        return value.astimezone(tz).date()
    return value.date()


def summarize_reviews(
    items: Iterable[SupportsReviewState],
    now: Optional[dt.datetime] = None,
    *,
    tz: Optional[dt.tzinfo] = None,
) -> ReviewSummary:
    """
    Count due items, items reviewed on `now`'s calendar day, and total reviews.

    Items only need whichever of `next_review`, `last_reviewed` and
    `review_count` they have; missing attributes count as absent. Calendar
    days are compared in `tz`, defaulting to the zone of `now`.
    """
    now = now or dt.datetime.now(dt.timezone.utc)
    tz = tz or now.tzinfo
    today = _local_date(now, tz)

    due_today = 0
    reviewed_today = 0
    total_reviews = 0

    for item in items:
        if is_due(getattr(item, "next_review", None), now):
            due_today += 1

        last_reviewed = getattr(item, "last_reviewed", None)
        if last_reviewed is not None and _local_date(last_reviewed, tz) == today:
            reviewed_today += 1

        total_reviews += getattr(item, "review_count", None) or 0

    return ReviewSummary(
        due_today=due_today,
        reviewed_today=reviewed_today,
        total_reviews=total_reviews,
    )
