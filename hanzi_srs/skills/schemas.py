from __future__ import annotations

import datetime as dt
from typing import Dict, Optional

from pydantic import BaseModel, Field

from hanzi_srs.skills.scheduler import Difficulty


class ReviewRequest(BaseModel):
    """Request body for recording a flashcard or quiz review."""

    vocabulary_id: int
    difficulty: Difficulty = Field(
        ...,
        description="How hard the word was to recall: again, hard, medium or easy",
    )
    mastered: Optional[bool] = Field(
        default=None,
        description="Optional override of the word's mastered flag",
    )


class ReviewResponse(BaseModel):
    """Updated schedule for a reviewed word."""

    vocabulary_id: int
    next_review: dt.datetime
    ease_factor: float = Field(..., ge=1.3)
    interval: int = Field(..., ge=1, description="Days until the next review")
    review_count: int = Field(..., ge=1)
    mastered: bool


class ReviewStatsResponse(BaseModel):
    due_today: int = Field(
        default=0,
        ge=0,
        description="Words due now, including overdue ones",
    )
    reviewed_today: int = Field(default=0, ge=0)
    total_reviews: int = Field(default=0, ge=0)


class LevelProgress(BaseModel):
    mastered: int = 0
    learning: int = 0


class MasteryStatsResponse(BaseModel):
    total: int = 0
    mastered: int = 0
    learning: int = 0
    by_level: Dict[int, LevelProgress] = Field(default_factory=dict)
