"""FSRS memory model.

Pure scheduling math: given a card's memory state, a rating and the current
instant, compute the next memory state. Nothing here touches storage.

The model tracks two numbers per card:

- stability S: days until recall probability decays to 90%.
- difficulty D: intrinsic hardness in [1, 10], scaling how fast S grows.

Retrievability after t days is ``R(t, S) = (1 + FACTOR * t / S) ** DECAY``.
A successful recall grows S by an amount that is larger when D is low, S is
small and R had already dropped (harder recalls strengthen memory more).
A lapse resets S through a separate forgetting formula.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import assert_never

from packages.common.config import DEFAULT_FSRS_WEIGHTS, Settings
from packages.scheduling.models import CardState, MemoryState, Rating

DECAY = -0.5
FACTOR = 0.9 ** (1 / DECAY) - 1  # 19/81, so that R(S, S) = 0.9

MIN_STABILITY = 0.1
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0

# Good and Easy graduate a (re)learning card; Hard only once stability
# reaches a full day.
GRADUATING_STABILITY = 1.0

# Steps used while a card stays in Learning or Relearning. Easy always
# reaches Review, so it has no step.
LEARNING_STEPS: dict[Rating, timedelta] = {
    Rating.AGAIN: timedelta(minutes=1),
    Rating.HARD: timedelta(minutes=5),
    Rating.GOOD: timedelta(minutes=10),
}

SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class SchedulerParameters:
    """Tunable inputs of the memory model."""

    request_retention: float = 0.9
    maximum_interval: int = 36500
    weights: tuple[float, ...] = DEFAULT_FSRS_WEIGHTS

    def __post_init__(self) -> None:
        if len(self.weights) != 17:
            raise ValueError(f"expected 17 weights, got {len(self.weights)}")
        if not 0.0 < self.request_retention < 1.0:
            raise ValueError("request_retention must be between 0 and 1")
        if self.maximum_interval <= 0:
            raise ValueError("maximum_interval must be positive")

    @classmethod
    def from_settings(cls, settings: Settings) -> "SchedulerParameters":
        return cls(
            request_retention=settings.request_retention,
            maximum_interval=settings.maximum_interval,
            weights=tuple(settings.fsrs_weights),
        )


@dataclass(frozen=True)
class SchedulingResult:
    """Outcome of applying one rating."""

    memory: MemoryState
    retrievability: float
    interval: timedelta


class MemoryModel:
    """FSRS scheduler over a fixed set of parameters."""

    def __init__(self, params: SchedulerParameters | None = None) -> None:
        self.params = params or SchedulerParameters()
        self.w = self.params.weights

    # Formula pieces

    def retrievability(self, elapsed_days: float, stability: float) -> float:
        """Probability of recall after ``elapsed_days`` at the given stability."""
        if stability <= 0:
            return 0.0
        return (1 + FACTOR * max(elapsed_days, 0.0) / stability) ** DECAY

    def next_interval(self, stability: float) -> int:
        """Whole days until retrievability falls to the requested retention."""
        raw = stability / FACTOR * (self.params.request_retention ** (1 / DECAY) - 1)
        return max(1, min(round(raw), self.params.maximum_interval))

    def init_stability(self, rating: Rating) -> float:
        return max(self.w[rating - 1], MIN_STABILITY)

    def init_difficulty(self, rating: Rating) -> float:
        return _clamp_difficulty(self.w[4] - (rating - 3) * self.w[5])

    def next_difficulty(self, difficulty: float, rating: Rating) -> float:
        shifted = difficulty - self.w[6] * (rating - 3)
        # Mean reversion towards the difficulty of a first "Good".
        reverted = self.w[7] * self.init_difficulty(Rating.GOOD) + (1 - self.w[7]) * shifted
        return _clamp_difficulty(reverted)

    def next_recall_stability(
        self,
        difficulty: float,
        stability: float,
        retrievability: float,
        rating: Rating,
    ) -> float:
        if rating is Rating.HARD:
            modifier = self.w[15]
        elif rating is Rating.EASY:
            modifier = self.w[16]
        elif rating is Rating.GOOD:
            modifier = 1.0
        elif rating is Rating.AGAIN:
            raise ValueError("recall stability is undefined for Again")
        else:
            assert_never(rating)

        growth = (
            math.exp(self.w[8])
            * (11 - difficulty)
            * stability ** (-self.w[9])
            * (math.exp(self.w[10] * (1 - retrievability)) - 1)
            * modifier
        )
        return stability * (1 + growth)

    def next_forget_stability(
        self,
        difficulty: float,
        stability: float,
        retrievability: float,
    ) -> float:
        forgotten = (
            self.w[11]
            * difficulty ** (-self.w[12])
            * ((stability + 1) ** self.w[13] - 1)
            * math.exp(self.w[14] * (1 - retrievability))
        )
        return max(MIN_STABILITY, min(forgotten, stability))

    def elapsed_days(self, memory: MemoryState, now: datetime) -> float:
        """Real days since the last review; 0 if never reviewed or clock went back."""
        if memory.state is CardState.NEW or memory.last_review is None:
            return 0.0
        seconds = (now - memory.last_review).total_seconds()
        return max(seconds / SECONDS_PER_DAY, 0.0)

    # Transitions

    def next_state(self, state: CardState, rating: Rating, stability: float) -> CardState:
        """Discrete lifecycle transition for one rating.

        Good and Easy graduate a Learning or Relearning card to Review whatever
        its stability; only Hard waits for ``GRADUATING_STABILITY``.
        """
        if state is CardState.NEW:
            return CardState.REVIEW if rating is Rating.EASY else CardState.LEARNING
        if state is CardState.LEARNING or state is CardState.RELEARNING:
            if rating is Rating.AGAIN:
                return state
            if rating is Rating.HARD and stability < GRADUATING_STABILITY:
                return state
            return CardState.REVIEW
        if state is CardState.REVIEW:
            return CardState.RELEARNING if rating is Rating.AGAIN else CardState.REVIEW
        assert_never(state)

    def schedule(self, memory: MemoryState, rating: Rating, now: datetime) -> SchedulingResult:
        """Apply ``rating`` to ``memory`` at ``now``.

        Args:
            memory: Memory state before the review.
            rating: Answer grade.
            now: Review instant (timezone-aware).

        Returns:
            The next memory state, the retrievability the card had at review
            time and the interval until it is due again.
        """
        rating = Rating(rating)
        elapsed = self.elapsed_days(memory, now)

        # Cards without a usable stability (never reviewed, or reset by an
        # approximate undo) start over from the rating's initial values.
        if memory.state is CardState.NEW or memory.stability <= 0:
            retrievability = 1.0
            stability = self.init_stability(rating)
            difficulty = self.init_difficulty(rating)
        else:
            retrievability = self.retrievability(elapsed, memory.stability)
            difficulty = self.next_difficulty(memory.difficulty or self.init_difficulty(rating), rating)
            if rating is Rating.AGAIN:
                stability = self.next_forget_stability(difficulty, memory.stability, retrievability)
            else:
                stability = self.next_recall_stability(
                    difficulty, memory.stability, retrievability, rating
                )

        state = self.next_state(memory.state, rating, stability)

        if state is CardState.REVIEW:
            interval = timedelta(days=self.next_interval(stability))
        else:
            interval = LEARNING_STEPS[rating]

        lapses = memory.lapses
        if memory.state is CardState.REVIEW and rating is Rating.AGAIN:
            lapses += 1

        next_memory = MemoryState(
            state=state,
            stability=stability,
            difficulty=difficulty,
            due=now + interval,
            last_review=now,
            reps=memory.reps + 1,
            lapses=lapses,
            elapsed_days=elapsed,
            scheduled_days=interval.total_seconds() / SECONDS_PER_DAY,
        )
        return SchedulingResult(
            memory=next_memory,
            retrievability=retrievability,
            interval=interval,
        )

    def preview(self, memory: MemoryState, now: datetime) -> dict[Rating, SchedulingResult]:
        """Outcome of every rating, e.g. to label answer buttons."""
        return {rating: self.schedule(memory, rating, now) for rating in Rating}


def _clamp_difficulty(value: float) -> float:
    return min(max(value, MIN_DIFFICULTY), MAX_DIFFICULTY)
