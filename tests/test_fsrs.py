"""Tests for the FSRS memory model."""

from datetime import UTC, datetime, timedelta

import pytest

from packages.scheduling.fsrs import (
    FACTOR,
    LEARNING_STEPS,
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    MIN_STABILITY,
    MemoryModel,
    SchedulerParameters,
)
from packages.scheduling.models import CardState, MemoryState, Rating

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def model() -> MemoryModel:
    return MemoryModel()


def review_state(stability: float = 10.0, difficulty: float = 5.0, days_ago: float = 10) -> MemoryState:
    last = NOW - timedelta(days=days_ago)
    return MemoryState(
        state=CardState.REVIEW,
        stability=stability,
        difficulty=difficulty,
        due=last + timedelta(days=stability),
        last_review=last,
        reps=3,
        lapses=0,
    )


class TestSchedulerParameters:
    """Tests for parameter validation."""

    def test_defaults(self) -> None:
        """Test default parameters."""
        params = SchedulerParameters()
        assert params.request_retention == 0.9
        assert params.maximum_interval == 36500
        assert len(params.weights) == 17

    def test_wrong_weight_count_rejected(self) -> None:
        """Test that a weight vector of the wrong length is rejected."""
        with pytest.raises(ValueError, match="17 weights"):
            SchedulerParameters(weights=(1.0,) * 16)

    @pytest.mark.parametrize("retention", [0.0, 1.0, 1.5, -0.1])
    def test_retention_out_of_range_rejected(self, retention: float) -> None:
        """Test that retention outside (0, 1) is rejected."""
        with pytest.raises(ValueError):
            SchedulerParameters(request_retention=retention)


class TestFormulas:
    """Tests for the individual formula pieces."""

    def test_factor_value(self) -> None:
        """Test FACTOR is 19/81."""
        assert FACTOR == pytest.approx(19 / 81)

    def test_retrievability_is_one_right_after_review(self, model: MemoryModel) -> None:
        """Test R(0, S) = 1."""
        assert model.retrievability(0.0, 5.0) == pytest.approx(1.0)

    def test_retrievability_is_ninety_percent_at_stability(self, model: MemoryModel) -> None:
        """Test that stability is the time to fall to 90% recall."""
        assert model.retrievability(7.0, 7.0) == pytest.approx(0.9)

    def test_retrievability_decreases_over_time(self, model: MemoryModel) -> None:
        """Test R is monotonically decreasing in elapsed time."""
        values = [model.retrievability(t, 5.0) for t in (0, 1, 5, 20, 100)]
        assert values == sorted(values, reverse=True)

    def test_interval_equals_stability_at_default_retention(self, model: MemoryModel) -> None:
        """Test that at 90% retention the interval is the rounded stability."""
        assert model.next_interval(12.3) == 12
        assert model.next_interval(2.4) == 2

    def test_interval_has_floor_of_one_day(self, model: MemoryModel) -> None:
        """Test tiny stability still schedules at least one day."""
        assert model.next_interval(0.1) == 1

    def test_interval_clamped_to_maximum(self) -> None:
        """Test the maximum interval cap."""
        model = MemoryModel(SchedulerParameters(maximum_interval=30))
        assert model.next_interval(1000.0) == 30

    def test_higher_retention_shortens_interval(self) -> None:
        """Test that asking for more retention schedules sooner."""
        strict = MemoryModel(SchedulerParameters(request_retention=0.95))
        assert strict.next_interval(20.0) < MemoryModel().next_interval(20.0)

    @pytest.mark.parametrize(
        ("rating", "expected"),
        [(Rating.AGAIN, 0.4), (Rating.HARD, 0.6), (Rating.GOOD, 2.4), (Rating.EASY, 5.8)],
    )
    def test_init_stability(self, model: MemoryModel, rating: Rating, expected: float) -> None:
        """Test initial stability comes from the first four weights."""
        assert model.init_stability(rating) == pytest.approx(expected)

    @pytest.mark.parametrize(
        ("rating", "expected"),
        [(Rating.AGAIN, 6.81), (Rating.HARD, 5.87), (Rating.GOOD, 4.93), (Rating.EASY, 3.99)],
    )
    def test_init_difficulty(self, model: MemoryModel, rating: Rating, expected: float) -> None:
        """Test initial difficulty w4 - (rating - 3) * w5."""
        assert model.init_difficulty(rating) == pytest.approx(expected)

    def test_difficulty_stays_in_bounds(self, model: MemoryModel) -> None:
        """Test difficulty is clamped to [1, 10]."""
        assert model.next_difficulty(MAX_DIFFICULTY, Rating.AGAIN) <= MAX_DIFFICULTY
        assert model.next_difficulty(MIN_DIFFICULTY, Rating.EASY) >= MIN_DIFFICULTY

    def test_good_keeps_difficulty_near_mean(self, model: MemoryModel) -> None:
        """Test Good does not shift difficulty, only reverts it slightly."""
        assert model.next_difficulty(4.93, Rating.GOOD) == pytest.approx(4.93)

    def test_again_raises_difficulty(self, model: MemoryModel) -> None:
        """Test Again makes a card harder and Easy makes it easier."""
        assert model.next_difficulty(5.0, Rating.AGAIN) > 5.0
        assert model.next_difficulty(5.0, Rating.EASY) < 5.0

    def test_recall_stability_grows(self, model: MemoryModel) -> None:
        """Test any successful recall increases stability."""
        for rating in (Rating.HARD, Rating.GOOD, Rating.EASY):
            assert model.next_recall_stability(5.0, 10.0, 0.85, rating) > 10.0

    def test_recall_stability_orders_by_rating(self, model: MemoryModel) -> None:
        """Test Hard < Good < Easy for the same inputs."""
        hard = model.next_recall_stability(5.0, 10.0, 0.85, Rating.HARD)
        good = model.next_recall_stability(5.0, 10.0, 0.85, Rating.GOOD)
        easy = model.next_recall_stability(5.0, 10.0, 0.85, Rating.EASY)
        assert hard < good < easy

    def test_recall_stability_undefined_for_again(self, model: MemoryModel) -> None:
        """Test the recall branch refuses Again."""
        with pytest.raises(ValueError):
            model.next_recall_stability(5.0, 10.0, 0.85, Rating.AGAIN)

    def test_forget_stability_never_exceeds_prior(self, model: MemoryModel) -> None:
        """Test a lapse can never increase stability."""
        assert model.next_forget_stability(1.0, 0.15, 0.0) == pytest.approx(0.15)
        assert model.next_forget_stability(5.0, 50.0, 0.9) < 50.0

    def test_forget_stability_has_floor(self, model: MemoryModel) -> None:
        """Test forget stability does not drop below the minimum."""
        assert model.next_forget_stability(10.0, 0.01, 1.0) >= MIN_STABILITY

    def test_elapsed_days_zero_for_new_card(self, model: MemoryModel) -> None:
        """Test never-reviewed cards have no elapsed time."""
        assert model.elapsed_days(MemoryState.new(), NOW) == 0.0

    def test_elapsed_days_real_valued(self, model: MemoryModel) -> None:
        """Test elapsed days counts fractional days."""
        memory = review_state(days_ago=1.5)
        assert model.elapsed_days(memory, NOW) == pytest.approx(1.5)

    def test_elapsed_days_clamped_when_clock_goes_back(self, model: MemoryModel) -> None:
        """Test a review timestamp in the future yields 0, not a negative value."""
        memory = review_state(days_ago=-2)
        assert model.elapsed_days(memory, NOW) == 0.0


class TestStateTransitions:
    """Tests for next_state."""

    @pytest.mark.parametrize("rating", [Rating.AGAIN, Rating.HARD, Rating.GOOD])
    def test_new_goes_to_learning(self, model: MemoryModel, rating: Rating) -> None:
        """Test a first non-Easy answer starts learning."""
        assert model.next_state(CardState.NEW, rating, 1.0) is CardState.LEARNING

    def test_new_easy_goes_to_review(self, model: MemoryModel) -> None:
        """Test Easy on a new card skips learning."""
        assert model.next_state(CardState.NEW, Rating.EASY, 5.8) is CardState.REVIEW

    @pytest.mark.parametrize("state", [CardState.LEARNING, CardState.RELEARNING])
    def test_again_keeps_learning(self, model: MemoryModel, state: CardState) -> None:
        """Test Again never graduates."""
        assert model.next_state(state, Rating.AGAIN, 50.0) is state

    @pytest.mark.parametrize("state", [CardState.LEARNING, CardState.RELEARNING])
    def test_good_graduates(self, model: MemoryModel, state: CardState) -> None:
        """Test Good and Easy graduate a (re)learning card."""
        assert model.next_state(state, Rating.GOOD, 0.5) is CardState.REVIEW
        assert model.next_state(state, Rating.EASY, 0.5) is CardState.REVIEW

    @pytest.mark.parametrize("state", [CardState.LEARNING, CardState.RELEARNING])
    def test_hard_graduates_only_with_enough_stability(
        self, model: MemoryModel, state: CardState
    ) -> None:
        """Test Hard graduates once stability reaches a day."""
        assert model.next_state(state, Rating.HARD, 0.6) is state
        assert model.next_state(state, Rating.HARD, 1.0) is CardState.REVIEW

    def test_review_again_relearns(self, model: MemoryModel) -> None:
        """Test Again on a review card starts relearning."""
        assert model.next_state(CardState.REVIEW, Rating.AGAIN, 2.0) is CardState.RELEARNING

    @pytest.mark.parametrize("rating", [Rating.HARD, Rating.GOOD, Rating.EASY])
    def test_review_success_stays_review(self, model: MemoryModel, rating: Rating) -> None:
        """Test successful reviews keep the card in Review."""
        assert model.next_state(CardState.REVIEW, rating, 20.0) is CardState.REVIEW


class TestSchedule:
    """Tests for schedule()."""

    def test_new_card_good(self, model: MemoryModel) -> None:
        """Test first Good answer initializes memory and starts learning."""
        result = model.schedule(MemoryState.new(), Rating.GOOD, NOW)
        memory = result.memory

        assert memory.state is CardState.LEARNING
        assert memory.stability == pytest.approx(2.4)
        assert memory.difficulty == pytest.approx(4.93)
        assert memory.reps == 1
        assert memory.lapses == 0
        assert memory.last_review == NOW
        assert memory.due == NOW + LEARNING_STEPS[Rating.GOOD]
        assert memory.scheduled_days == pytest.approx(10 / 1440)
        assert memory.elapsed_days == 0.0
        assert result.retrievability == 1.0

    def test_new_card_easy_schedules_days(self, model: MemoryModel) -> None:
        """Test first Easy answer goes straight to Review with a day interval."""
        result = model.schedule(MemoryState.new(), Rating.EASY, NOW)
        assert result.memory.state is CardState.REVIEW
        assert result.interval == timedelta(days=6)
        assert result.memory.due == NOW + timedelta(days=6)
        assert result.memory.scheduled_days == pytest.approx(6.0)

    @pytest.mark.parametrize(
        ("rating", "step"),
        [(Rating.AGAIN, timedelta(minutes=1)), (Rating.HARD, timedelta(minutes=5))],
    )
    def test_new_card_learning_steps(
        self, model: MemoryModel, rating: Rating, step: timedelta
    ) -> None:
        """Test short steps while a card is learning."""
        result = model.schedule(MemoryState.new(), rating, NOW)
        assert result.memory.state is CardState.LEARNING
        assert result.interval == step

    def test_easy_has_no_learning_step(self, model: MemoryModel) -> None:
        """Test Easy on a low-stability learning card still schedules days."""
        learning = MemoryState(
            state=CardState.LEARNING,
            stability=0.2,
            difficulty=7.0,
            due=NOW,
            last_review=NOW - timedelta(minutes=1),
            reps=1,
            lapses=0,
        )
        result = model.schedule(learning, Rating.EASY, NOW)

        assert Rating.EASY not in LEARNING_STEPS
        assert result.memory.state is CardState.REVIEW
        assert result.interval >= timedelta(days=1)

    def test_learning_card_graduates_on_good(self, model: MemoryModel) -> None:
        """Test a learning card rated Good moves to Review with a day-based interval."""
        first = model.schedule(MemoryState.new(), Rating.GOOD, NOW).memory
        later = NOW + timedelta(minutes=10)
        second = model.schedule(first, Rating.GOOD, later)

        assert second.memory.state is CardState.REVIEW
        assert second.memory.stability > first.stability
        assert second.interval >= timedelta(days=1)
        assert second.memory.reps == 2

    def test_review_again_counts_lapse(self, model: MemoryModel) -> None:
        """Test Again on a review card relearns, shrinks stability and counts a lapse."""
        memory = review_state(stability=10.0)
        result = model.schedule(memory, Rating.AGAIN, NOW)

        assert result.memory.state is CardState.RELEARNING
        assert result.memory.lapses == 1
        assert result.memory.stability < 10.0
        assert result.interval == LEARNING_STEPS[Rating.AGAIN]

    def test_learning_again_does_not_count_lapse(self, model: MemoryModel) -> None:
        """Test lapses only count when leaving Review."""
        first = model.schedule(MemoryState.new(), Rating.GOOD, NOW).memory
        result = model.schedule(first, Rating.AGAIN, NOW + timedelta(minutes=10))
        assert result.memory.lapses == 0
        assert result.memory.state is CardState.LEARNING

    def test_review_good_uses_elapsed_time(self, model: MemoryModel) -> None:
        """Test retrievability at review time reflects elapsed days."""
        memory = review_state(stability=10.0, days_ago=10)
        result = model.schedule(memory, Rating.GOOD, NOW)

        assert result.retrievability == pytest.approx(0.9)
        assert result.memory.elapsed_days == pytest.approx(10.0)
        assert result.memory.state is CardState.REVIEW
        assert result.memory.stability > 10.0

    def test_interval_never_exceeds_maximum(self) -> None:
        """Test the day interval respects maximum_interval."""
        model = MemoryModel(SchedulerParameters(maximum_interval=5))
        memory = review_state(stability=100.0, days_ago=100)
        result = model.schedule(memory, Rating.EASY, NOW)
        assert result.interval == timedelta(days=5)

    def test_zero_stability_card_is_reinitialized(self, model: MemoryModel) -> None:
        """Test a card without usable stability starts from initial values."""
        memory = MemoryState(state=CardState.LEARNING, stability=0.0, difficulty=0.0, reps=1)
        result = model.schedule(memory, Rating.GOOD, NOW)
        assert result.memory.stability == pytest.approx(2.4)
        assert result.memory.difficulty == pytest.approx(4.93)

    def test_schedule_is_pure(self, model: MemoryModel) -> None:
        """Test the input state is not modified."""
        memory = review_state()
        before = memory.model_dump()
        model.schedule(memory, Rating.AGAIN, NOW)
        assert memory.model_dump() == before

    def test_preview_covers_every_rating(self, model: MemoryModel) -> None:
        """Test preview returns one outcome per rating."""
        outcomes = model.preview(MemoryState.new(), NOW)
        assert set(outcomes) == set(Rating)
        assert outcomes[Rating.EASY].memory.state is CardState.REVIEW
