"""Custom exception hierarchy for Corpus.

This module defines application-specific exceptions that provide:
- Clear error categorization for debugging
- Consistent HTTP status code mapping in API
- Structured logging context
"""

from __future__ import annotations


class CorpusError(Exception):
    """Base exception for all application errors.

    All custom exceptions inherit from this to enable:
    - Centralized exception handling in API routes
    - Consistent error logging patterns
    - Type-safe error catching
    """

    def __init__(self, message: str, *, context: dict[str, object] | None = None) -> None:
        """Initialize error with message and optional context.

        Args:
            message: Human-readable error description.
            context: Additional key-value pairs for structured logging.
        """
        super().__init__(message)
        self.context = context or {}


class DatabaseError(CorpusError):
    """Storage failure (I/O, constraint violation, locked database)."""


class DatabaseConnectionError(DatabaseError):
    """Database file could not be opened or the handle is closed."""


class MigrationError(DatabaseError):
    """Database migration failed."""


class ConfigurationError(CorpusError):
    """Invalid or missing configuration."""


class NotFoundError(CorpusError):
    """Requested resource not found."""


class CardNotFoundError(NotFoundError):
    """Referenced card does not exist."""

    def __init__(self, card_id: int) -> None:
        super().__init__(f"Card {card_id} not found", context={"card_id": card_id})
        self.card_id = card_id


class TopicNotFoundError(NotFoundError):
    """Referenced topic does not exist."""

    def __init__(self, topic_id: str) -> None:
        super().__init__(f"Topic not found: {topic_id}", context={"topic_id": topic_id})
        self.topic_id = topic_id
