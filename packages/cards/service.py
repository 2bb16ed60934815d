"""Card content CRUD.

Content writes keep the full-text index in step with the card table: every
insert, edit and delete touches both inside one transaction.
"""

import sqlite3

from packages.common.database import Database
from packages.common.exceptions import TopicNotFoundError
from packages.common.logging import get_logger
from packages.scheduling.models import Card, CardType
from packages.search.fts import index_document, remove_document

logger = get_logger(module=__name__)


def _check_topic(conn: sqlite3.Connection, topic_id: str | None) -> None:
    if topic_id is None:
        return
    if conn.execute("SELECT 1 FROM topics WHERE id = ?", (topic_id,)).fetchone() is None:
        raise TopicNotFoundError(topic_id)


def insert_card(
    conn: sqlite3.Connection,
    topic_id: str | None,
    front: str,
    back: str,
    card_type: CardType = "basic",
    image_url: str | None = None,
) -> int:
    """Insert a new card and its search document on an open transaction.

    Raises:
        TopicNotFoundError: If ``topic_id`` names no existing topic.
    """
    _check_topic(conn, topic_id)
    cursor = conn.execute(
        "INSERT INTO cards (topic_id, front, back, card_type, image_url) VALUES (?, ?, ?, ?, ?)",
        (topic_id, front, back, card_type, image_url),
    )
    card_id = cursor.lastrowid
    if card_id is None:
        raise sqlite3.DatabaseError("card insert returned no row id")
    index_document(conn, card_id, "card", front, back)
    return card_id


def create_card(
    db: Database,
    topic_id: str | None,
    front: str,
    back: str,
    card_type: CardType = "basic",
    image_url: str | None = None,
) -> int:
    """Create a New card.

    Returns:
        The new card's id.
    """
    with db.transaction() as conn:
        card_id = insert_card(conn, topic_id, front, back, card_type, image_url)

    logger.info("card_created", card_id=card_id, topic_id=topic_id, card_type=card_type)
    return card_id


def update_card(
    db: Database,
    card_id: int,
    *,
    front: str | None = None,
    back: str | None = None,
    topic_id: str | None = None,
) -> bool:
    """Edit a card's content or topic.

    Memory state is never touched here. Returns False when there is nothing
    to change or the card does not exist.

    Raises:
        TopicNotFoundError: If ``topic_id`` names no existing topic.
    """
    assignments: list[str] = []
    values: list[object] = []

    if front is not None:
        assignments.append("front = ?")
        values.append(front)
    if back is not None:
        assignments.append("back = ?")
        values.append(back)
    if topic_id is not None:
        assignments.append("topic_id = ?")
        values.append(topic_id)

    if not assignments:
        return False

    with db.transaction() as conn:
        _check_topic(conn, topic_id)
        cursor = conn.execute(
            f"UPDATE cards SET {', '.join(assignments)} WHERE id = ?",
            (*values, card_id),
        )
        if cursor.rowcount == 0:
            return False

        if front is not None or back is not None:
            row = conn.execute(
                "SELECT front, back FROM cards WHERE id = ?", (card_id,)
            ).fetchone()
            index_document(conn, card_id, "card", row["front"], row["back"])

    logger.info(
        "card_updated",
        card_id=card_id,
        fields=[a.split(" ", 1)[0] for a in assignments],
    )
    return True


def delete_card(db: Database, card_id: int) -> bool:
    """Delete a card, its search document and (by cascade) its review history.

    Returns:
        True if a card was deleted.
    """
    with db.transaction() as conn:
        remove_document(conn, card_id, "card")
        cursor = conn.execute("DELETE FROM cards WHERE id = ?", (card_id,))
        deleted = cursor.rowcount > 0

    if deleted:
        logger.info("card_deleted", card_id=card_id)
    return deleted


def get_card(db: Database, card_id: int) -> Card | None:
    with db.read() as conn:
        row = conn.execute("SELECT * FROM cards WHERE id = ?", (card_id,)).fetchone()
    return Card.from_row(row) if row else None


def get_cards_by_topic(db: Database, topic_id: str) -> list[Card]:
    """Cards of one topic in creation order."""
    with db.read() as conn:
        rows = conn.execute(
            "SELECT * FROM cards WHERE topic_id = ? ORDER BY created_at, id",
            (topic_id,),
        ).fetchall()
    return [Card.from_row(row) for row in rows]


def count_cards(db: Database) -> int:
    with db.read() as conn:
        row = conn.execute("SELECT COUNT(*) AS count FROM cards").fetchone()
    return int(row["count"])
