"""Knowledge graph built from topics and their links."""

from typing import Any

from packages.common.database import Database
from packages.scheduling.models import CardState
from packages.taxonomy.models import GraphEdge, GraphNode


def get_graph_nodes(db: Database, pillar_filter: str | None = None) -> list[GraphNode]:
    """One node per topic with card and mastery counts.

    A card counts as mastered once it is in the Review state.
    """
    sql_parts = [
        """
        SELECT
            t.id,
            t.name AS label,
            d.pillar_id,
            d.tier,
            COUNT(c.id) AS card_count,
            SUM(CASE WHEN c.state = :review THEN 1 ELSE 0 END) AS mastered_count
        FROM topics t
        JOIN domains d ON t.domain_id = d.id
        LEFT JOIN cards c ON c.topic_id = t.id
        """
    ]
    params: dict[str, Any] = {"review": int(CardState.REVIEW)}

    if pillar_filter:
        sql_parts.append("WHERE d.pillar_id = :pillar")
        params["pillar"] = pillar_filter

    sql_parts.append("GROUP BY t.id ORDER BY d.pillar_id, d.tier, t.sort_order, t.id")

    with db.read() as conn:
        rows = conn.execute("\n".join(sql_parts), params).fetchall()

    return [
        GraphNode(
            id=row["id"],
            label=row["label"],
            type="topic",
            pillar_id=row["pillar_id"],
            tier=row["tier"],
            card_count=row["card_count"] or 0,
            mastered_count=row["mastered_count"] or 0,
        )
        for row in rows
    ]


def get_graph_edges(db: Database, pillar_filter: str | None = None) -> list[GraphEdge]:
    """Links between entities; with a filter, only links leaving that pillar's topics."""
    sql_parts = ["SELECT l.id, l.source_id, l.target_id, l.relation, l.weight FROM links l"]
    params: dict[str, Any] = {}

    if pillar_filter:
        sql_parts.append(
            """
            JOIN topics ts ON l.source_id = ts.id
            JOIN domains ds ON ts.domain_id = ds.id
            WHERE ds.pillar_id = :pillar
            """
        )
        params["pillar"] = pillar_filter

    sql_parts.append("ORDER BY l.id")

    with db.read() as conn:
        rows = conn.execute("\n".join(sql_parts), params).fetchall()

    return [
        GraphEdge(
            id=str(row["id"]),
            source=row["source_id"],
            target=row["target_id"],
            relation=row["relation"] or "related",
            weight=row["weight"] if row["weight"] is not None else 1.0,
        )
        for row in rows
    ]


def add_link(
    db: Database,
    source_id: str,
    target_id: str,
    relation: str = "related",
    weight: float = 1.0,
) -> int:
    """Record a directed link between two entities and return its id."""
    with db.transaction() as conn:
        cursor = conn.execute(
            "INSERT INTO links (source_id, target_id, relation, weight) VALUES (?, ?, ?, ?)",
            (source_id, target_id, relation, weight),
        )
        link_id = cursor.lastrowid
    return int(link_id or 0)
