"""Daily statistics reads and study streak."""

from datetime import date, datetime, timedelta

from pydantic import BaseModel, Field

from packages.common.clock import to_iso
from packages.common.database import Database
from packages.scheduling.models import CardState, DailyStats

STREAK_LOOKBACK_DAYS = 365
RECENT_ACTIVITY_DAYS = 7


class PillarProgress(BaseModel):
    """Card totals for one pillar."""

    pillar_id: str
    total: int = 0
    mastered: int = 0


class DashboardData(BaseModel):
    """Everything the dashboard shows at a glance."""

    due_today: int = 0
    new_available: int = 0
    reviewed_today: int = 0
    streak: int = 0
    pillar_progress: list[PillarProgress] = Field(default_factory=list)
    recent_activity: list[DailyStats] = Field(default_factory=list)


def calculate_streak(db: Database, today: date) -> int:
    """Consecutive study days ending today.

    Walks days with at least one review, newest first, and stops at the first
    calendar day without one. A day without reviews yet today means 0.
    """
    with db.read() as conn:
        rows = conn.execute(
            """
            SELECT date FROM daily_stats
            WHERE cards_reviewed > 0
            ORDER BY date DESC
            LIMIT ?
            """,
            (STREAK_LOOKBACK_DAYS,),
        ).fetchall()

    streak = 0
    for offset, row in enumerate(rows):
        expected = today - timedelta(days=offset)
        if row["date"] != expected.isoformat():
            break
        streak += 1
    return streak


def get_daily_stats(db: Database, day: date) -> DailyStats | None:
    with db.read() as conn:
        row = conn.execute(
            "SELECT * FROM daily_stats WHERE date = ?", (day.isoformat(),)
        ).fetchone()
    return DailyStats.from_row(row) if row else None


def get_stats_range(db: Database, start: date, end: date) -> list[DailyStats]:
    """Daily stats between two dates, both inclusive, oldest first."""
    with db.read() as conn:
        rows = conn.execute(
            "SELECT * FROM daily_stats WHERE date BETWEEN ? AND ? ORDER BY date",
            (start.isoformat(), end.isoformat()),
        ).fetchall()
    return [DailyStats.from_row(row) for row in rows]


def get_dashboard_data(db: Database, now: datetime, today: date) -> DashboardData:
    """Aggregate counts for the dashboard.

    Args:
        db: Open database handle.
        now: Current instant; cards due at or before it count as due.
        today: Current study day in the configured timezone.
    """
    review = int(CardState.REVIEW)
    new = int(CardState.NEW)

    with db.read() as conn:
        due_row = conn.execute(
            """
            SELECT COUNT(*) AS count FROM cards
            WHERE due IS NOT NULL AND due <= ? AND state != ?
            """,
            (to_iso(now), new),
        ).fetchone()
        new_row = conn.execute(
            "SELECT COUNT(*) AS count FROM cards WHERE state = ?", (new,)
        ).fetchone()
        reviewed_row = conn.execute(
            "SELECT cards_reviewed FROM daily_stats WHERE date = ?", (today.isoformat(),)
        ).fetchone()
        progress_rows = conn.execute(
            """
            SELECT
                p.id AS pillar_id,
                COUNT(c.id) AS total,
                SUM(CASE WHEN c.state = ? THEN 1 ELSE 0 END) AS mastered
            FROM pillars p
            LEFT JOIN domains d ON d.pillar_id = p.id
            LEFT JOIN topics t ON t.domain_id = d.id
            LEFT JOIN cards c ON c.topic_id = t.id
            GROUP BY p.id
            ORDER BY p.sort_order
            """,
            (review,),
        ).fetchall()
        activity_rows = conn.execute(
            "SELECT * FROM daily_stats WHERE date >= ? ORDER BY date DESC",
            ((today - timedelta(days=RECENT_ACTIVITY_DAYS)).isoformat(),),
        ).fetchall()

    return DashboardData(
        due_today=due_row["count"],
        new_available=new_row["count"],
        reviewed_today=reviewed_row["cards_reviewed"] if reviewed_row else 0,
        streak=calculate_streak(db, today),
        pillar_progress=[
            PillarProgress(
                pillar_id=row["pillar_id"],
                total=row["total"] or 0,
                mastered=row["mastered"] or 0,
            )
            for row in progress_rows
        ],
        recent_activity=[DailyStats.from_row(row) for row in activity_rows],
    )
