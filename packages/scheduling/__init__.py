"""Spaced-repetition scheduling: memory model, reviews, undo and due set."""

from packages.scheduling.fsrs import MemoryModel, SchedulerParameters, SchedulingResult
from packages.scheduling.models import (
    Card,
    CardState,
    CardType,
    DailyStats,
    MemoryState,
    Rating,
    ReviewLog,
)
from packages.scheduling.queue import get_due_cards
from packages.scheduling.service import ReviewResult, ReviewService

__all__ = [
    "Card",
    "CardState",
    "CardType",
    "DailyStats",
    "MemoryModel",
    "MemoryState",
    "Rating",
    "ReviewLog",
    "ReviewResult",
    "ReviewService",
    "SchedulerParameters",
    "SchedulingResult",
    "get_due_cards",
]
