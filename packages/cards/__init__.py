"""Card content management."""

from packages.cards.service import (
    count_cards,
    create_card,
    delete_card,
    get_card,
    get_cards_by_topic,
    insert_card,
    update_card,
)

__all__ = [
    "count_cards",
    "create_card",
    "delete_card",
    "get_card",
    "get_cards_by_topic",
    "insert_card",
    "update_card",
]
