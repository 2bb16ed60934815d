"""Review and undo transactions."""

import sqlite3
from dataclasses import dataclass
from datetime import tzinfo

import structlog

from packages.common.clock import Clock, local_date, to_iso, truncate_ms, utcnow
from packages.common.config import Settings, get_settings
from packages.common.database import Database
from packages.common.exceptions import CardNotFoundError
from packages.common.logging import get_logger
from packages.scheduling.fsrs import MemoryModel, SchedulerParameters, SchedulingResult
from packages.scheduling.models import Card, CardState, MemoryState, Rating, ReviewLog
from packages.scheduling.queue import get_due_cards

logger = get_logger(module=__name__)


@dataclass
class ReviewResult:
    """Card and log entry written by one review."""

    updated_card: Card
    log: ReviewLog


class ReviewService:
    """Applies ratings to cards and reverts them.

    Every review writes the card, one review log row and the day's statistics
    in a single transaction; undo reverses all three in a single transaction.
    """

    def __init__(
        self,
        db: Database,
        settings: Settings | None = None,
        *,
        model: MemoryModel | None = None,
        clock: Clock = utcnow,
        tz: tzinfo | None = None,
    ) -> None:
        """Initialize review service.

        Args:
            db: Open database handle.
            settings: Application settings.
            model: Memory model; built from settings when omitted.
            clock: Source of the current instant.
            tz: Timezone deciding which calendar day a review counts for.
        """
        self.db = db
        self.settings = settings or get_settings()
        self.model = model or MemoryModel(SchedulerParameters.from_settings(self.settings))
        self.clock = clock
        self.tz = tz or self.settings.tzinfo

    def get_due_cards(self, limit: int | None = None) -> list[Card]:
        """Cards to show in a review session right now."""
        if limit is None:
            limit = self.settings.review_session_limit
        return get_due_cards(self.db, self.clock(), limit)

    def preview(self, card_id: int) -> dict[Rating, SchedulingResult]:
        """What each rating would do to a card, without writing anything."""
        with self.db.read() as conn:
            card = _load_card(conn, card_id)
        return self.model.preview(card.memory, truncate_ms(self.clock()))

    def process_review(self, card_id: int, rating: Rating, duration_ms: int = 0) -> ReviewResult:
        """Apply a rating to a card.

        Args:
            card_id: Card being reviewed.
            rating: Answer grade.
            duration_ms: Time spent answering; negative values count as 0.

        Returns:
            The updated card and the review log entry.

        Raises:
            CardNotFoundError: The card does not exist. Nothing is written.
            DatabaseError: Storage failure. Nothing is written.
        """
        with structlog.contextvars.bound_contextvars(card_id=card_id):
            rating = Rating(rating)
            duration_ms = max(int(duration_ms), 0)
            now = truncate_ms(self.clock())

            with self.db.transaction() as conn:
                card = _load_card(conn, card_id)
                before = card.memory
                result = self.model.schedule(before, rating, now)
                after = result.memory

                _write_memory(conn, card_id, after)

                cursor = conn.execute(
                    """
                    INSERT INTO review_logs (
                        card_id, rating, review_at, elapsed_days, scheduled_days, state, duration_ms,
                        prev_stability, prev_difficulty, prev_due, prev_last_review,
                        prev_elapsed_days, prev_scheduled_days, prev_reps, prev_lapses
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        card_id,
                        int(rating),
                        to_iso(now),
                        after.elapsed_days,
                        after.scheduled_days,
                        int(before.state),
                        duration_ms,
                        before.stability,
                        before.difficulty,
                        to_iso(before.due) if before.due else None,
                        to_iso(before.last_review) if before.last_review else None,
                        before.elapsed_days,
                        before.scheduled_days,
                        before.reps,
                        before.lapses,
                    ),
                )
                log_id = cursor.lastrowid
                if log_id is None:
                    raise sqlite3.DatabaseError("review log insert returned no row id")

                is_new = 1 if before.state is CardState.NEW else 0
                conn.execute(
                    """
                    INSERT INTO daily_stats (date, cards_reviewed, cards_new, time_spent_ms, domains_touched)
                    VALUES (?, 1, ?, ?, '[]')
                    ON CONFLICT(date) DO UPDATE SET
                        cards_reviewed = cards_reviewed + 1,
                        cards_new = cards_new + excluded.cards_new,
                        time_spent_ms = time_spent_ms + excluded.time_spent_ms
                    """,
                    (local_date(now, self.tz).isoformat(), is_new, duration_ms),
                )

            log = ReviewLog(
                id=log_id,
                card_id=card_id,
                rating=rating,
                review_at=now,
                elapsed_days=after.elapsed_days,
                scheduled_days=after.scheduled_days,
                state=before.state,
                duration_ms=duration_ms,
                previous=before,
            )

            logger.info(
                "review_processed",
                rating=rating.name,
                state_before=before.state.name,
                state_after=after.state.name,
                retrievability=round(result.retrievability, 4),
                scheduled_days=round(after.scheduled_days, 4),
            )
            return ReviewResult(updated_card=card.with_memory(after), log=log)

    def undo_review(self, card_id: int) -> Card | None:
        """Revert the most recent review of a card.

        Restores the card's memory state, deletes the log entry and takes the
        review back out of that day's statistics. Calling it again walks one
        more review back.

        Returns:
            The restored card, or None if the card has no reviews to undo.

        Raises:
            CardNotFoundError: The card does not exist.
        """
        with structlog.contextvars.bound_contextvars(card_id=card_id):
            with self.db.transaction() as conn:
                card = _load_card(conn, card_id)
                rows = conn.execute(
                    """
                    SELECT * FROM review_logs
                    WHERE card_id = ?
                    ORDER BY review_at DESC, id DESC
                    LIMIT 2
                    """,
                    (card_id,),
                ).fetchall()

                if not rows:
                    logger.debug("undo_nothing_to_revert")
                    return None

                undone = ReviewLog.from_row(rows[0])
                preceding = ReviewLog.from_row(rows[1]) if len(rows) > 1 else None
                restored = _restore_memory(card.memory, undone, preceding)

                _write_memory(conn, card_id, restored)
                conn.execute("DELETE FROM review_logs WHERE id = ?", (undone.id,))

                was_new = 1 if undone.state is CardState.NEW else 0
                conn.execute(
                    """
                    UPDATE daily_stats SET
                        cards_reviewed = MAX(cards_reviewed - 1, 0),
                        cards_new = MAX(cards_new - ?, 0),
                        time_spent_ms = MAX(time_spent_ms - ?, 0)
                    WHERE date = ?
                    """,
                    (was_new, undone.duration_ms, local_date(undone.review_at, self.tz).isoformat()),
                )

            logger.info(
                "review_undone",
                log_id=undone.id,
                rating=undone.rating.name,
                restored_state=restored.state.name,
                exact=preceding is None or undone.previous is not None,
            )
            return card.with_memory(restored)


def _load_card(conn: sqlite3.Connection, card_id: int) -> Card:
    row = conn.execute("SELECT * FROM cards WHERE id = ?", (card_id,)).fetchone()
    if row is None:
        raise CardNotFoundError(card_id)
    return Card.from_row(row)


def _write_memory(conn: sqlite3.Connection, card_id: int, memory: MemoryState) -> None:
    conn.execute(
        """
        UPDATE cards SET
            stability = ?,
            difficulty = ?,
            due = ?,
            last_review = ?,
            reps = ?,
            lapses = ?,
            state = ?,
            elapsed_days = ?,
            scheduled_days = ?
        WHERE id = ?
        """,
        (
            memory.stability,
            memory.difficulty,
            to_iso(memory.due) if memory.due else None,
            to_iso(memory.last_review) if memory.last_review else None,
            memory.reps,
            memory.lapses,
            int(memory.state),
            memory.elapsed_days,
            memory.scheduled_days,
            card_id,
        ),
    )


def _restore_memory(
    current: MemoryState,
    undone: ReviewLog,
    preceding: ReviewLog | None,
) -> MemoryState:
    """Memory state a card had before ``undone`` was applied."""
    if preceding is None or undone.state is CardState.NEW:
        return MemoryState.new()

    if undone.previous is not None:
        return undone.previous

    # Row written without a snapshot: stability and difficulty cannot be
    # recovered, the schedule falls back to the preceding review instant.
    lapsed = undone.state is CardState.REVIEW and undone.rating is Rating.AGAIN
    return MemoryState(
        state=undone.state,
        stability=0.0,
        difficulty=0.0,
        due=preceding.review_at,
        last_review=preceding.review_at,
        reps=max(current.reps - 1, 0),
        lapses=max(current.lapses - (1 if lapsed else 0), 0),
        elapsed_days=0.0,
        scheduled_days=0.0,
    )
