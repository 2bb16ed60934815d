"""Lexical search over the SQLite FTS5 document table."""

import re
import sqlite3
from dataclasses import dataclass
from typing import Any, Literal

from packages.common.config import Settings, get_settings
from packages.common.database import Database
from packages.common.logging import get_logger

logger = get_logger(module=__name__)

EntityType = Literal["card", "note", "topic"]

SNIPPET_TOKENS = 32

_TOKEN_RE = re.compile(r"[^\W_]+")


@dataclass
class SearchHit:
    """One matching document."""

    entity_id: str
    entity_type: str
    title: str
    snippet: str
    rank: float  # bm25; lower is better


@dataclass
class LexicalSearchResult:
    """Result bundle for lexical search with fallback metadata."""

    results: list[SearchHit]
    mode: Literal["all", "any", "none"] = "none"
    used_fallback: bool = False


@dataclass
class SearchFilters:
    """Filters for search queries."""

    entity_types: list[EntityType] | None = None


def tokenize_query(query: str) -> list[str]:
    """Split free text into FTS5 terms.

    Every term is double-quoted so FTS5 operators and punctuation in user
    input are treated as text. The last term matches as a prefix, which
    gives search-as-you-type behaviour.
    """
    words = _TOKEN_RE.findall(query)
    terms = [f'"{word}"' for word in words]
    if terms:
        terms[-1] += "*"
    return terms


def index_document(
    conn: sqlite3.Connection,
    entity_id: str | int,
    entity_type: EntityType,
    title: str,
    content: str,
) -> None:
    """(Re)index one document. Runs inside the caller's transaction."""
    remove_document(conn, entity_id, entity_type)
    conn.execute(
        "INSERT INTO search_index (entity_id, entity_type, title, content) VALUES (?, ?, ?, ?)",
        (str(entity_id), entity_type, title, content),
    )


def remove_document(conn: sqlite3.Connection, entity_id: str | int, entity_type: EntityType) -> None:
    """Drop a document from the index. Runs inside the caller's transaction."""
    conn.execute(
        "DELETE FROM search_index WHERE entity_id = ? AND entity_type = ?",
        (str(entity_id), entity_type),
    )


def search(
    db: Database,
    query: str,
    limit: int | None = None,
    filters: SearchFilters | None = None,
    settings: Settings | None = None,
) -> LexicalSearchResult:
    """Search indexed documents.

    All terms must match first. When that finds nothing the terms are
    OR-ed instead and the result is flagged as a fallback.

    Args:
        db: Open database handle.
        query: Free-text query.
        limit: Maximum number of hits; defaults to ``settings.search_limit``.
        filters: Optional filters to apply.
        settings: Application settings.

    Returns:
        LexicalSearchResult with hits ordered best first.
    """
    terms = tokenize_query(query)
    if not terms:
        return LexicalSearchResult(results=[], mode="none")

    if limit is None:
        limit = (settings or get_settings()).search_limit
    if limit <= 0:
        return LexicalSearchResult(results=[], mode="none")

    with db.read() as conn:
        hits = _execute_match(conn, " ".join(terms), filters, limit)
        if hits:
            mode: Literal["all", "any", "none"] = "all"
            used_fallback = False
        elif len(terms) > 1:
            hits = _execute_match(conn, " OR ".join(terms), filters, limit)
            mode = "any" if hits else "none"
            used_fallback = bool(hits)
        else:
            mode = "none"
            used_fallback = False

    logger.debug(
        "search_completed",
        query=query,
        terms=len(terms),
        mode=mode,
        results=len(hits),
    )
    return LexicalSearchResult(results=hits, mode=mode, used_fallback=used_fallback)


def _execute_match(
    conn: sqlite3.Connection,
    match: str,
    filters: SearchFilters | None,
    limit: int,
) -> list[SearchHit]:
    sql_parts = [
        f"""
        SELECT
            entity_id,
            entity_type,
            title,
            snippet(search_index, 3, '<mark>', '</mark>', '...', {SNIPPET_TOKENS}) AS snippet,
            rank
        FROM search_index
        """
    ]
    where_clauses = ["search_index MATCH :match"]
    params: dict[str, Any] = {"match": match, "limit": limit}

    if filters and filters.entity_types:
        placeholders = []
        for i, entity_type in enumerate(filters.entity_types):
            params[f"type_{i}"] = entity_type
            placeholders.append(f":type_{i}")
        where_clauses.append(f"entity_type IN ({', '.join(placeholders)})")

    sql_parts.append("WHERE " + " AND ".join(where_clauses))
    sql_parts.append("ORDER BY rank LIMIT :limit")

    rows = conn.execute("\n".join(sql_parts), params).fetchall()
    return [
        SearchHit(
            entity_id=row["entity_id"],
            entity_type=row["entity_type"],
            title=row["title"] or "",
            snippet=row["snippet"] or "",
            rank=float(row["rank"]),
        )
        for row in rows
    ]
