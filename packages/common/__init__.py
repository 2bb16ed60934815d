# Common utilities

from packages.common.exceptions import (
    CardNotFoundError,
    ConfigurationError,
    CorpusError,
    DatabaseConnectionError,
    DatabaseError,
    MigrationError,
    NotFoundError,
    TopicNotFoundError,
)
from packages.common.logging import (
    bind_request_id,
    clear_request_context,
    configure_logging,
    get_logger,
)

__all__ = [
    "CardNotFoundError",
    "ConfigurationError",
    "CorpusError",
    "DatabaseConnectionError",
    "DatabaseError",
    "MigrationError",
    "NotFoundError",
    "TopicNotFoundError",
    "bind_request_id",
    "clear_request_context",
    "configure_logging",
    "get_logger",
]
