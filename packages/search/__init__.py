"""Full-text search over cards and other indexed documents."""

from packages.search.fts import (
    EntityType,
    LexicalSearchResult,
    SearchFilters,
    SearchHit,
    index_document,
    remove_document,
    search,
    tokenize_query,
)

__all__ = [
    "EntityType",
    "LexicalSearchResult",
    "SearchFilters",
    "SearchHit",
    "index_document",
    "remove_document",
    "search",
    "tokenize_query",
]
