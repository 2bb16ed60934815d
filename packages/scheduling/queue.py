"""Selection of the cards a review session should show."""

from datetime import datetime

from packages.common.clock import to_iso
from packages.common.database import Database
from packages.scheduling.models import Card, CardState

DEFAULT_SESSION_LIMIT = 50

_DUE_CARDS_SQL = """
    SELECT * FROM cards
    WHERE state = :new OR (due IS NOT NULL AND due <= :now)
    ORDER BY
        CASE WHEN state = :new THEN 1 ELSE 0 END,
        due ASC,
        id ASC
    LIMIT :limit
"""


def get_due_cards(
    db: Database,
    now: datetime,
    limit: int = DEFAULT_SESSION_LIMIT,
) -> list[Card]:
    """Cards eligible for review at ``now``.

    Overdue learning/review cards come first, oldest due date first; new
    cards follow in creation order.
    """
    if limit <= 0:
        return []

    with db.read() as conn:
        rows = conn.execute(
            _DUE_CARDS_SQL,
            {"new": int(CardState.NEW), "now": to_iso(now), "limit": limit},
        ).fetchall()
    return [Card.from_row(row) for row in rows]
