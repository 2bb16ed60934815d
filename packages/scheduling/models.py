"""Card, review log and daily statistics models."""

import json
import sqlite3
from datetime import date, datetime
from enum import IntEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from packages.common.clock import parse_iso


class CardState(IntEnum):
    """Lifecycle stage of a card."""

    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3


class Rating(IntEnum):
    """Answer grade given during a review."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


CardType = Literal["basic", "cloze"]


class MemoryState(BaseModel):
    """Scheduling fields of a card, as read and produced by the memory model."""

    model_config = ConfigDict(frozen=True)

    state: CardState = CardState.NEW
    stability: float = 0.0
    difficulty: float = 0.0
    due: datetime | None = None
    last_review: datetime | None = None
    reps: int = 0
    lapses: int = 0
    elapsed_days: float = 0.0
    scheduled_days: float = 0.0

    @classmethod
    def new(cls) -> "MemoryState":
        """State of a card that has never been reviewed."""
        return cls()


class Card(BaseModel):
    """A flashcard with its content and memory state."""

    id: int
    topic_id: str | None = None
    front: str
    back: str
    card_type: CardType = "basic"
    image_url: str | None = None
    created_at: datetime | None = None

    # Memory state
    stability: float = 0.0
    difficulty: float = 0.0
    due: datetime | None = None
    last_review: datetime | None = None
    reps: int = 0
    lapses: int = 0
    state: CardState = CardState.NEW
    elapsed_days: float = 0.0
    scheduled_days: float = 0.0

    @property
    def memory(self) -> MemoryState:
        return MemoryState(
            state=self.state,
            stability=self.stability,
            difficulty=self.difficulty,
            due=self.due,
            last_review=self.last_review,
            reps=self.reps,
            lapses=self.lapses,
            elapsed_days=self.elapsed_days,
            scheduled_days=self.scheduled_days,
        )

    def with_memory(self, memory: MemoryState) -> "Card":
        """Copy of this card carrying another memory state."""
        return self.model_copy(update=memory.model_dump())

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Card":
        card_type = row["card_type"] if row["card_type"] in ("basic", "cloze") else "basic"
        return cls(
            id=row["id"],
            topic_id=row["topic_id"],
            front=row["front"],
            back=row["back"],
            card_type=card_type,
            image_url=row["image_url"] or None,
            created_at=parse_iso(row["created_at"]),
            stability=row["stability"] or 0.0,
            difficulty=row["difficulty"] or 0.0,
            due=parse_iso(row["due"]),
            last_review=parse_iso(row["last_review"]),
            reps=row["reps"] or 0,
            lapses=row["lapses"] or 0,
            state=CardState(row["state"] or 0),
            elapsed_days=row["elapsed_days"] or 0.0,
            scheduled_days=row["scheduled_days"] or 0.0,
        )


class ReviewLog(BaseModel):
    """One applied rating.

    ``state`` is the card's state *before* the review. ``previous`` holds the
    full memory state before the review; it is None for rows recorded before
    snapshots were stored.
    """

    id: int
    card_id: int
    rating: Rating
    review_at: datetime
    elapsed_days: float = 0.0
    scheduled_days: float = 0.0
    state: CardState
    duration_ms: int = 0
    previous: MemoryState | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ReviewLog":
        review_at = parse_iso(row["review_at"])
        if review_at is None:
            raise ValueError(f"review log {row['id']} has no review_at")

        state = CardState(row["state"] or 0)
        previous = None
        if row["prev_reps"] is not None:
            previous = MemoryState(
                state=state,
                stability=row["prev_stability"] or 0.0,
                difficulty=row["prev_difficulty"] or 0.0,
                due=parse_iso(row["prev_due"]),
                last_review=parse_iso(row["prev_last_review"]),
                reps=row["prev_reps"],
                lapses=row["prev_lapses"] or 0,
                elapsed_days=row["prev_elapsed_days"] or 0.0,
                scheduled_days=row["prev_scheduled_days"] or 0.0,
            )

        return cls(
            id=row["id"],
            card_id=row["card_id"],
            rating=Rating(row["rating"]),
            review_at=review_at,
            elapsed_days=row["elapsed_days"] or 0.0,
            scheduled_days=row["scheduled_days"] or 0.0,
            state=state,
            duration_ms=row["duration_ms"] or 0,
            previous=previous,
        )


class DailyStats(BaseModel):
    """Review counters for one calendar day."""

    date: date
    cards_reviewed: int = 0
    cards_new: int = 0
    time_spent_ms: int = 0
    domains_touched: list[str] = Field(default_factory=list)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "DailyStats":
        return cls(
            date=date.fromisoformat(row["date"]),
            cards_reviewed=row["cards_reviewed"] or 0,
            cards_new=row["cards_new"] or 0,
            time_spent_ms=row["time_spent_ms"] or 0,
            domains_touched=json.loads(row["domains_touched"] or "[]"),
        )
